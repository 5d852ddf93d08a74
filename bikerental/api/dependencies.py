"""FastAPI dependency injection helpers."""

from typing import Optional

from fastapi import Header
from sqlalchemy.ext.asyncio import AsyncSession

from bikerental.infrastructure.database import async_session_factory


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_current_user_id(
    x_user_id: int = Header(..., alias="X-User-Id", ge=1),
) -> int:
    """Caller identity as resolved by the upstream authentication layer."""
    return x_user_id


async def get_optional_user_id(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id", ge=1),
) -> Optional[int]:
    return x_user_id
