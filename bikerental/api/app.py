"""
FastAPI application factory.

* Registers routes for bicycles, rentals, events, maintenance and admin.
* Maps domain rejections onto 404 / 409 responses.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from bikerental.api.errors import register_error_handlers
from bikerental.api.middleware import limiter
from bikerental.api.routes import admin, bicycles, events, maintenance, rentals
from bikerental.config import settings
from bikerental.infrastructure.database import engine

logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release pooled connections on shutdown."""
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Bike Rental API",
        description=(
            "Rents bicycles by the hour with socio-economic discounts, "
            "keeps the fleet's status and maintenance history, and runs "
            "community cycling events with capped registration."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_error_handlers(app)

    # Routers
    app.include_router(bicycles.router, prefix="/api/v1")
    app.include_router(rentals.router, prefix="/api/v1")
    app.include_router(events.router, prefix="/api/v1")
    app.include_router(maintenance.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
