"""Rate limiting middleware using slowapi."""
from fastapi import Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.config import settings
from app.auth.utils import decode_access_token


def tenant_or_address(request: Request) -> str:
    """Limit per organization for authenticated calls, per IP otherwise."""
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        payload = decode_access_token(auth[7:])
        if payload and payload.get("org"):
            return f"org:{payload['org']}"
    return get_remote_address(request)


limiter = Limiter(
    key_func=tenant_or_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=None,  # In-memory storage
)


def setup_rate_limiting(app):
    """Configure rate limiting for the FastAPI app."""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
