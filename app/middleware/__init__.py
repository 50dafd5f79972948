"""Middleware package."""
from app.middleware.errors import register_error_handlers
from app.middleware.rate_limit import limiter, setup_rate_limiting

__all__ = ["limiter", "register_error_handlers", "setup_rate_limiting"]
