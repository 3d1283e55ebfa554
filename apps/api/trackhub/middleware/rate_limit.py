"""
Rate Limiting - Track-Hub
Per-route rate limiting using slowapi (Redis storage in production).
Applied to project creation, credit checks and commit pushes.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from trackhub.core.config import settings
from trackhub.core.deps import get_user_id_or_ip

logger = logging.getLogger(__name__)

# ────────────────────────────────────────────────
# Global Limiter Configuration
# ────────────────────────────────────────────────
limiter = Limiter(
    key_func=get_user_id_or_ip,           # per-account first, fallback to IP
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.RATE_LIMIT_ENABLED,
    headers_enabled=False,
    strategy="fixed-window",
)

# Route limits
CREATE_PROJECT_LIMIT = "5/minute"
CHECK_CREDITS_LIMIT = "20/minute"
COMMIT_LIMIT = "10/minute"
CHECKOUT_LIMIT = "5/minute"


# ────────────────────────────────────────────────
# Custom exception handler for rate limit exceeded
# ────────────────────────────────────────────────
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    Handles 429 responses with a Retry-After header.
    """
    logger.warning(
        f"Rate limit exceeded on {request.url.path}",
        extra={"key": get_user_id_or_ip(request), "limit_detail": exc.detail},
    )
    retry_after = getattr(exc, "retry_after", 60)
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "detail": "Rate limit exceeded. Please try again later.",
            "retry_after_seconds": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )
