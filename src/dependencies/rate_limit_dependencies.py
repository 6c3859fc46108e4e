from fastapi import Depends
from fastapi_limiter.depends import RateLimiter

from src.config.settings import settings


def rate_limit(times: int, seconds: int):
    """Limiter dependencies for a router or route; empty when rate limiting is switched off"""
    if not settings.rate_limiting_enabled:
        return []
    return [Depends(RateLimiter(times=times, seconds=seconds))]
