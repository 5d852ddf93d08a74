"""Maps domain rejections onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from bikerental.domain.errors import DomainError, NotFound

logger = logging.getLogger(__name__)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = 404 if isinstance(exc, NotFound) else 409
    logger.info(
        "%s %s rejected: %s (%s)",
        request.method,
        request.url.path,
        exc.kind,
        exc.message,
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "kind": exc.kind},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
