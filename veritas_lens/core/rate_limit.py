"""
rate_limit.py — Global rate limiter instance.

Uses slowapi (a Starlette-compatible wrapper around the `limits` library).
Requests are keyed by client IP address.

Usage in routes:
    from fastapi import Request
    from veritas_lens.core.rate_limit import limiter

    @router.post("/sessions/{session_id}/run")
    @limiter.limit(settings.analysis_rate_limit)
    async def run_analysis(request: Request, session_id: str):
        ...

The limiter is attached to app.state in main.py together with
slowapi's RateLimitExceeded handler (HTTP 429).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

# Key requests by client IP. Only analysis runs are limited.
limiter = Limiter(key_func=get_remote_address)
