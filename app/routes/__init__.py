"""
Consolidated routes module.

All API routers are exported from this module for centralized access.
Routes remain in their domain directories but are re-exported here.

Usage:
    from app.routes import auth_router, audit_router, data_router

    # Or register everything
    from app.routes import register_all_routes
"""
from typing import List, Tuple
from fastapi import APIRouter

from app.audit.routes import router as audit_router
from app.auth.routes import router as auth_router
from app.data.routes import router as data_router


# Router configuration for easy registration
# Each tuple: (router, prefix, tags)
ROUTER_CONFIGS: List[Tuple[APIRouter, str, List[str]]] = [
    (auth_router, "/auth", ["Auth"]),
    (audit_router, "/audit", ["Audit"]),
    (data_router, "", []),
]


def register_all_routes(app, api_prefix: str = "/api") -> None:
    """
    Register all routers with the FastAPI app.

    Args:
        app: FastAPI application instance
        api_prefix: API prefix (default: /api)
    """
    for router, prefix, tags in ROUTER_CONFIGS:
        full_prefix = f"{api_prefix}{prefix}" if prefix else api_prefix
        app.include_router(router, prefix=full_prefix, tags=tags)


__all__ = [
    "auth_router",
    "data_router",
    "audit_router",
    "ROUTER_CONFIGS",
    "register_all_routes",
]
