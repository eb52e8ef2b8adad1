"""Security middleware: rate limiting and metrics token authentication."""

import logging
from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

# Rate limiter using client IP
limiter = Limiter(key_func=get_remote_address)


def verify_bearer_token(authorization: Optional[str], expected: str) -> Optional[str]:
    """
    Check an "Authorization: Bearer <token>" header.

    Returns None when access is allowed, otherwise the reason it was refused.
    An empty expected token disables the check.
    """
    if not expected:
        return None
    if not authorization:
        return "Missing Authorization header"
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return "Invalid Authorization format"
    if parts[1] != expected:
        logger.warning("[SECURITY] Rejected metrics request with invalid token")
        return "Invalid token"
    return None
