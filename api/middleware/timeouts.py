"""
Connection read/write timeout middleware.

uvicorn only exposes a keep-alive (idle) timeout, so per-request read and
write deadlines are enforced here at the ASGI layer:
- read_timeout bounds reading the whole request body, counted from the
  moment the request reaches the middleware
- write_timeout bounds writing the whole response, counted from
  http.response.start

A client that trickles its body or drains the response slowly is cut off
once the total time runs out, not when a single chunk stalls.

Usage:
    app.add_middleware(
        ConnectionTimeoutMiddleware,
        read_timeout=settings.read_timeout,
        write_timeout=settings.write_timeout,
    )
"""

import asyncio
import json
from typing import Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from utils.logging import get_logger

logger = get_logger("api.timeouts")


class _ReadTimeout(Exception):
    pass


class _WriteTimeout(Exception):
    pass


class ConnectionTimeoutMiddleware:
    """Pure ASGI middleware bounding request reads and response writes."""

    def __init__(self, app: ASGIApp, read_timeout: float, write_timeout: float):
        self.app = app
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        loop = asyncio.get_running_loop()
        read_deadline = loop.time() + self.read_timeout
        write_deadline: Optional[float] = None
        body_complete = False
        response_started = False

        async def timed_receive() -> Message:
            nonlocal body_complete
            # Once the body is in, receive() only waits for a disconnect
            if body_complete:
                return await receive()
            remaining = read_deadline - loop.time()
            if remaining <= 0:
                raise _ReadTimeout()
            try:
                message = await asyncio.wait_for(receive(), remaining)
            except asyncio.TimeoutError as exc:
                raise _ReadTimeout() from exc
            if message["type"] != "http.request" or not message.get("more_body", False):
                body_complete = True
            return message

        async def timed_send(message: Message) -> None:
            nonlocal response_started, write_deadline
            if message["type"] == "http.response.start":
                response_started = True
                write_deadline = loop.time() + self.write_timeout
            if write_deadline is None:
                await send(message)
                return
            remaining = write_deadline - loop.time()
            if remaining <= 0:
                raise _WriteTimeout()
            try:
                await asyncio.wait_for(send(message), remaining)
            except asyncio.TimeoutError as exc:
                raise _WriteTimeout() from exc

        path = scope.get("path", "")
        # Function middleware runs the app inside a task group, so the timeouts
        # may arrive wrapped in an ExceptionGroup
        try:
            await self.app(scope, timed_receive, timed_send)
        except* _WriteTimeout:
            logger.warning(f"[TIMEOUT] Write timeout ({self.write_timeout}s) on {path}, dropping response")
        except* _ReadTimeout:
            logger.warning(f"[TIMEOUT] Read timeout ({self.read_timeout}s) on {path}")
            if not response_started:
                await self._send_timeout_response(send)

    async def _send_timeout_response(self, send: Send) -> None:
        body = json.dumps({"error": "Request timeout"}).encode("utf-8")
        await send({
            "type": "http.response.start",
            "status": 408,
            "headers": [
                (b"content-type", b"application/json"),
                (b"content-length", str(len(body)).encode("latin-1")),
                (b"connection", b"close"),
            ],
        })
        await send({"type": "http.response.body", "body": body})
