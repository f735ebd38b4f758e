"""One-shot shutdown signal derived from SIGINT/SIGTERM."""

from __future__ import annotations

import asyncio
import signal
from typing import Optional

from utils.logging import get_logger

logger = get_logger("relay.shutdown")

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownSignal:
    """
    Fires at most once. Safe to inspect from anywhere; exactly one caller
    (the controlling path) is expected to block on wait().
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._signum: Optional[int] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def fired(self) -> bool:
        return self._event.is_set()

    @property
    def signal_name(self) -> Optional[str]:
        if self._signum is None:
            return None
        return signal.Signals(self._signum).name

    def arm(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Install SIGINT/SIGTERM handlers on the running event loop."""
        if self.fired:
            raise RuntimeError("Shutdown signal already fired and cannot be re-armed")
        if self._loop is not None:
            return
        loop = loop or asyncio.get_running_loop()
        for signum in SHUTDOWN_SIGNALS:
            loop.add_signal_handler(signum, self.fire, signum)
        self._loop = loop

    def disarm(self) -> None:
        """Remove the handlers installed by arm()."""
        if self._loop is None:
            return
        for signum in SHUTDOWN_SIGNALS:
            self._loop.remove_signal_handler(signum)
        self._loop = None

    def fire(self, signum: int = signal.SIGTERM) -> None:
        if self.fired:
            logger.debug(f"[SHUTDOWN] Ignoring repeated {signal.Signals(signum).name}")
            return
        self._signum = signum
        self._event.set()
        logger.info(f"[SHUTDOWN] Received {self.signal_name}")

    async def wait(self) -> None:
        await self._event.wait()
