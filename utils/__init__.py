# Utils - Shared utilities

from utils.logging import (
    configure_logging,
    get_logger,
    get_request_id,
    request_context,
    setup_logging,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "get_request_id",
    "request_context",
    "setup_logging",
]
