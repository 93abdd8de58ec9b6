# middleware/rate_limit.py
"""
Rate limiting configuration using slowapi.

Usage in route files:
    from middleware.rate_limit import limiter

    @router.post("/portfolio")
    @limiter.limit(settings.RATE_LIMIT_SYNC)
    async def sync_portfolio(request: Request):
        ...
"""
import hashlib
import logging
import os

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"


def _get_rate_limit_key(request: Request) -> str:
    """
    Identify the caller for rate-limiting.

    Schedulers send an API key header; bucket on a digest of it so the key
    itself never lands in limiter storage. Everyone else is bucketed by IP.
    """
    api_key = (request.headers.get(API_KEY_HEADER) or "").strip()
    if api_key:
        return "key:" + hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]
    return get_remote_address(request)


# ─── Default limits ────────────────────────────────────────────────
DEFAULT_RATE_LIMIT = os.getenv("RATE_LIMIT_DEFAULT", "60/minute")

limiter = Limiter(
    key_func=_get_rate_limit_key,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri=os.getenv("REDIS_URL", "memory://"),
    strategy="fixed-window",
)
