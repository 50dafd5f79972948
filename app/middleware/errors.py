"""Translate domain and datastore errors into HTTP responses."""
import logging

from fastapi import HTTPException, Request
from fastapi.exception_handlers import http_exception_handler
from sqlalchemy.exc import SQLAlchemyError

from app.funding.errors import FundingError

logger = logging.getLogger(__name__)


async def funding_error_handler(request: Request, exc: FundingError):
    return await http_exception_handler(
        request, HTTPException(status_code=exc.status_code, detail=exc.to_dict())
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return await http_exception_handler(
        request,
        HTTPException(
            status_code=500,
            detail={"code": "database_error", "message": "Database error", "details": {"error": str(exc)}},
        ),
    )


def register_error_handlers(app) -> None:
    app.add_exception_handler(FundingError, funding_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
