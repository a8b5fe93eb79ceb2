"""
Rate limiting configuration for API endpoints.

Uses slowapi (FastAPI-compatible rate limiter) to keep a single client from
flooding the directory with submissions.

- Listing creation: CREATE_RATE_LIMIT per client
- Reads and the health check are not limited

There is no authentication, so clients are keyed by the connecting peer
address. Request headers such as X-Forwarded-For are client-controlled and
are not consulted here; behind a reverse proxy run uvicorn with
``--proxy-headers --forwarded-allow-ips=<proxy>`` so the peer address is
the real client.

Each application gets its own Limiter, built from its own settings.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import Settings


def get_client_identifier(request: Request) -> str:
    """Rate limit key: the peer address of the connection."""
    return f"ip:{get_remote_address(request)}"


def create_limiter(app_settings: Settings) -> Limiter:
    return Limiter(
        key_func=get_client_identifier,
        storage_uri="memory://",  # Single process; per-instance counters are enough
        strategy="fixed-window",
        enabled=app_settings.RATE_LIMIT_ENABLED,
    )
