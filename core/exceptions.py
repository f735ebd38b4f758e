"""
Exception classes for the Relay lifecycle.

Every startup or supervision failure the controlling path can observe is a
RelayError carrying a stable error code, so the entry point can log it and
turn it into an exit status.
"""

from typing import Any, Dict, Optional


class RelayError(Exception):
    """
    Base exception for lifecycle errors.

    All custom Relay exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or "RELAY_ERROR"
        self.details = details or {}
        super().__init__(message)


class UnsupportedEnvironmentError(RelayError):
    """No server can be built for the configured environment."""

    def __init__(self, environment: str):
        self.environment = environment
        super().__init__(
            message=f"Unsupported environment {environment!r}: only 'development' can start a server",
            error_code="UNSUPPORTED_ENVIRONMENT",
            details={"environment": environment},
        )


class StartupError(RelayError):
    """The listener could not be started (bad address, port in use, ...)."""

    def __init__(self, message: str, address: Optional[str] = None):
        details = {}
        if address is not None:
            details["address"] = address

        super().__init__(
            message=message,
            error_code="STARTUP_FAILED",
            details=details,
        )


class AcceptLoopError(RelayError):
    """The accept loop ended while the controller was running."""

    def __init__(self, message: str = "Accept loop ended unexpectedly"):
        super().__init__(
            message=message,
            error_code="ACCEPT_LOOP_FAILED",
        )


class ControllerStateError(RelayError):
    """A controller operation was invoked in the wrong state."""

    def __init__(self, operation: str, state: str):
        super().__init__(
            message=f"Cannot {operation} while controller is {state}",
            error_code="INVALID_STATE",
            details={"operation": operation, "state": state},
        )
