"""
Process lifecycle controller for the Relay server.

Owns the uvicorn server from construction to drain:

    IDLE -> STARTING -> RUNNING -> DRAINING -> STOPPED
                  \\          \\
                   -> FAILED   -> FAILED

The accept loop runs as one supervised asyncio task. The controlling path
blocks on the ShutdownSignal (or on the accept loop dying), then drains the
server within settings.shutdown_timeout.
"""

from __future__ import annotations

import asyncio
import contextlib
import socket
from dataclasses import dataclass
from typing import Optional, Union

import uvicorn
from fastapi import FastAPI

from api.server import create_app
from app_settings import Settings
from core.exceptions import (
    AcceptLoopError,
    ControllerStateError,
    StartupError,
    UnsupportedEnvironmentError,
)
from core.shutdown import ShutdownSignal
from core.state_machine import ControllerEvent, ControllerState, LifecycleStateMachine
from utils.logging import get_logger

logger = get_logger("relay.lifecycle")

# An empty host part (":3000") listens on all interfaces
_ALL_INTERFACES = "0.0.0.0"

_STARTUP_POLL_INTERVAL = 0.01
DEFAULT_STARTUP_TIMEOUT = 5.0

# Extra time granted after the drain deadline before the accept loop is cancelled
DRAIN_GRACE = 1.0


class _ManagedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the controller."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


def parse_address(address: str) -> tuple[str, int]:
    """
    Parse a listener address string.

    Accepts ':<port>' (all interfaces) and '<host>:<port>'.

    Raises:
        StartupError: If the address has no numeric port.
    """
    host, sep, number = address.strip().rpartition(":")
    # isdigit() alone admits non-ASCII digits such as '³'
    if not sep or not (number.isascii() and number.isdigit()) or int(number) > 65535:
        raise StartupError(
            f"Invalid listen address {address!r}, expected ':<port>' or '<host>:<port>'",
            address=address,
        )
    host = host.strip("[]") or _ALL_INTERFACES
    return host, int(number)


@dataclass(frozen=True)
class DrainReport:
    """Outcome of a drain: forced is True when the deadline was exceeded."""

    forced: bool
    elapsed: float
    deadline: float


class ServerHandle:
    """The built server, its listening socket and its accept-loop task."""

    def __init__(self, server: uvicorn.Server, host: str, port: int):
        self.server = server
        self.host = host
        self.port = port
        self.task: Optional[asyncio.Task] = None
        self._socket: Optional[socket.socket] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def url(self) -> str:
        """Base URL a local client can connect to."""
        host = "127.0.0.1" if self.host == _ALL_INTERFACES else self.host
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self.port}"

    def bind(self) -> None:
        """Bind the listening socket. Raises OSError (e.g. port in use)."""
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
        except OSError:
            sock.close()
            raise
        sock.set_inheritable(True)
        self._socket = sock
        # Port 0 asks the OS for a free port
        self.port = sock.getsockname()[1]

    def launch(self) -> asyncio.Task:
        """Start the accept loop on its own task."""
        if self._socket is None:
            raise RuntimeError("bind() must be called before launch()")
        self.task = asyncio.create_task(
            self._serve(),
            name=f"relay-accept-loop-{self.port}",
        )
        return self.task

    async def _serve(self) -> None:
        # uvicorn calls sys.exit() when the application lifespan fails
        try:
            await self.server.serve(sockets=[self._socket])
        except SystemExit as exc:
            raise StartupError(
                f"Application startup failed (exit status {exc.code})",
                address=self.address,
            ) from exc

    def done(self) -> bool:
        return self.task is not None and self.task.done()

    def exception(self) -> Optional[BaseException]:
        """The error that ended the accept loop, if any."""
        if not self.done() or self.task.cancelled():
            return None
        return self.task.exception()

    async def drain(self, deadline: float) -> DrainReport:
        """
        Stop accepting and wait for in-flight connections.

        The listeners are closed before the first await, so no connection is
        accepted once draining begins. uvicorn then waits for open connections
        and cancels remaining request tasks once timeout_graceful_shutdown
        elapses. If the accept loop is still alive DRAIN_GRACE seconds after
        that, it is cancelled outright.
        """
        loop = asyncio.get_running_loop()
        started_at = loop.time()
        for listener in self.server.servers:
            listener.close()
        self.server.should_exit = True

        forced = False
        if self.task is not None and not self.task.done():
            done, _ = await asyncio.wait({self.task}, timeout=deadline + DRAIN_GRACE)
            if not done:
                forced = True
                self.server.force_exit = True
                self.task.cancel()
                await asyncio.gather(self.task, return_exceptions=True)

        elapsed = loop.time() - started_at
        if elapsed >= deadline:
            forced = True

        exc = self.exception()
        if exc is not None:
            logger.error(f"[SHUTDOWN] Accept loop failed during drain: {exc!r}")

        self.close()
        return DrainReport(forced=forced, elapsed=elapsed, deadline=deadline)

    def close(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None


@dataclass(frozen=True)
class Started:
    handle: ServerHandle


@dataclass(frozen=True)
class UnsupportedEnvironment:
    name: str


StartOutcome = Union[Started, UnsupportedEnvironment]


def build_server(settings: Settings, app: FastAPI) -> StartOutcome:
    """
    Construct (but do not start) the server for the configured environment.

    Raises:
        StartupError: If settings.port is not a valid address string.
    """
    if not settings.is_development:
        return UnsupportedEnvironment(settings.environment)

    host, port = parse_address(settings.port)
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        lifespan="on",
        log_config=None,
        timeout_keep_alive=settings.idle_timeout,
        timeout_graceful_shutdown=settings.shutdown_timeout,
    )
    return Started(ServerHandle(_ManagedServer(config), host, port))


class LifecycleController:
    """Starts the server, waits for a shutdown signal and drains it."""

    def __init__(
        self,
        settings: Settings,
        app: Optional[FastAPI] = None,
        startup_timeout: float = DEFAULT_STARTUP_TIMEOUT,
    ):
        self._settings = settings
        self._app = app if app is not None else create_app(settings)
        self._startup_timeout = startup_timeout
        self._machine = LifecycleStateMachine()
        self._handle: Optional[ServerHandle] = None

    @property
    def state(self) -> ControllerState:
        return self._machine.state

    @property
    def handle(self) -> Optional[ServerHandle]:
        return self._handle

    def _require(self, state: ControllerState, operation: str) -> None:
        if self._machine.state is not state:
            raise ControllerStateError(operation, self._machine.state.name)

    def _fail(self) -> None:
        self._machine.transition(ControllerEvent.FAIL)

    async def start(self) -> ServerHandle:
        """
        Build, bind and launch the server, returning once it accepts connections.

        Raises:
            UnsupportedEnvironmentError: ENV is not 'development'.
            StartupError: The address is invalid, the port cannot be bound,
                or the server exits before it starts accepting.
        """
        self._require(ControllerState.IDLE, "start")
        self._machine.transition(ControllerEvent.START)

        try:
            outcome = build_server(self._settings, self._app)
        except StartupError as exc:
            self._fail()
            logger.error(f"[STARTUP] Error while starting the server: {exc.message}")
            raise

        if isinstance(outcome, UnsupportedEnvironment):
            self._fail()
            logger.error(f"[STARTUP] No server available for environment {outcome.name!r}")
            raise UnsupportedEnvironmentError(outcome.name)

        handle = outcome.handle
        try:
            handle.bind()
        except OSError as exc:
            self._fail()
            logger.error(f"[STARTUP] Error while starting the server on {handle.address}: {exc}")
            raise StartupError(f"Cannot listen on {handle.address}: {exc}", address=handle.address) from exc

        handle.launch()
        try:
            await self._wait_until_started(handle)
        except StartupError as exc:
            self._fail()
            logger.error(f"[STARTUP] {exc.message}")
            handle.close()
            raise

        self._handle = handle
        self._machine.transition(ControllerEvent.STARTED)
        logger.info(f"[STARTUP] Relay backend server listening on {handle.address}")
        if self._settings.host:
            logger.info(f"[STARTUP] HOST={self._settings.host!r} is informational and not bound")
        return handle

    async def _wait_until_started(self, handle: ServerHandle) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._startup_timeout
        while not handle.server.started:
            if handle.done():
                exc = handle.exception()
                if isinstance(exc, StartupError):
                    raise exc
                reason = repr(exc) if exc is not None else "application startup failed"
                raise StartupError(f"Server exited during startup: {reason}", address=handle.address)
            if loop.time() >= deadline:
                handle.server.should_exit = True
                handle.task.cancel()
                await asyncio.gather(handle.task, return_exceptions=True)
                raise StartupError(
                    f"Server did not start within {self._startup_timeout}s",
                    address=handle.address,
                )
            await asyncio.sleep(_STARTUP_POLL_INTERVAL)

    async def wait_for_shutdown(self, shutdown_signal: ShutdownSignal) -> None:
        """
        Block until the shutdown signal fires.

        Raises:
            AcceptLoopError: The accept loop ended before any signal arrived.
        """
        self._require(ControllerState.RUNNING, "wait for shutdown")
        handle = self._handle

        waiter = asyncio.ensure_future(shutdown_signal.wait())
        try:
            await asyncio.wait({waiter, handle.task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not waiter.done():
                waiter.cancel()

        if shutdown_signal.fired:
            return

        exc = handle.exception()
        self._fail()
        handle.close()
        if exc is not None:
            logger.error(f"[SERVER] Error while serving: {exc!r}")
            raise AcceptLoopError(f"Accept loop failed: {exc!r}") from exc
        logger.error("[SERVER] Accept loop ended unexpectedly")
        raise AcceptLoopError()

    async def shutdown(self) -> DrainReport:
        """Drain the running server within settings.shutdown_timeout."""
        self._require(ControllerState.RUNNING, "shut down")
        self._machine.transition(ControllerEvent.SIGNAL)
        logger.info("[SHUTDOWN] Shutdown signal received, shutting down the server gracefully")

        report = await self._handle.drain(self._settings.shutdown_timeout)
        if report.forced:
            logger.error(
                f"[SHUTDOWN] Server forced to shutdown: drain deadline of "
                f"{report.deadline}s exceeded ({report.elapsed:.2f}s)"
            )

        self._machine.transition(ControllerEvent.DRAINED)
        logger.info("[SHUTDOWN] Server exited")
        return report

    async def run(self, shutdown_signal: ShutdownSignal) -> DrainReport:
        """Start, wait for the shutdown signal, then drain."""
        await self.start()
        await self.wait_for_shutdown(shutdown_signal)
        return await self.shutdown()
