"""
Liveness endpoint.

Provides:
- /: fixed payload confirming the process is accepting connections
"""

from fastapi import APIRouter

router = APIRouter(tags=["health"])

LIVENESS_MESSAGE = "Relay Service Started"


@router.get("/")
async def liveness():
    """Liveness check. Not part of the product API."""
    return {"message": LIVENESS_MESSAGE}
