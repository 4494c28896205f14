"""
campus_gateway.db.init_db

DB initialization helper (dev/test convenience). Production runs Alembic migrations.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine

from campus_gateway.db import models  # noqa: F401  # register tables on Base.metadata
from campus_gateway.db.base import Base


async def init_db(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
