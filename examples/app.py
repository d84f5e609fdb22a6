"""Litestar example app running the expresso router on SQLite.

Evidence files are written to a local directory instead of object storage.
Run with ``litestar --app examples.app:app run`` and send the actor headers
(``X-Actor-Id``, ``X-Actor-Role``) a gateway would normally set.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import anyio
from litestar import Litestar
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from litestar_expresso.config import ExpressoConfig
from litestar_expresso.contrib.sqlalchemy.models import Base
from litestar_expresso.contrib.sqlalchemy.repository import (
    SQLAlchemyB2BRepository,
    SQLAlchemyShipmentRepository,
)
from litestar_expresso.contrib.sqlalchemy.retry_store import SQLAlchemyRetryStore
from litestar_expresso.plugin import create_expresso_router

logger = logging.getLogger(__name__)

DATABASE_URL = os.environ.get("EXPRESSO_EXAMPLE_DB", "sqlite+aiosqlite:///example.db")
MEDIA_DIR = Path(
    os.environ.get("EXPRESSO_EXAMPLE_MEDIA", Path(__file__).parent / "media")
)

engine = create_async_engine(DATABASE_URL)
async_session = async_sessionmaker(engine, expire_on_commit=False)


class LocalDirectoryStorage:
    """Evidence storage writing into a local directory."""

    def __init__(self, root: Path, base_url: str = "/media") -> None:
        self.root = root
        self.base_url = base_url.rstrip("/")

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        target = anyio.Path(self.root / path)
        await target.parent.mkdir(parents=True, exist_ok=True)
        await target.write_bytes(content)
        logger.info("Stored %s (%s, %d bytes)", path, content_type, len(content))
        return f"{self.base_url}/{path}"

    async def delete(self, path: str) -> None:
        await anyio.Path(self.root / path).unlink(missing_ok=True)


async def init_db() -> None:
    """Create all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def lifespan(app: Litestar) -> AsyncGenerator[None, None]:
    await init_db()
    yield


config = ExpressoConfig()
retry_store = SQLAlchemyRetryStore(
    async_session, backoff_seconds=config.retry_backoff_seconds
)

expresso_router = create_expresso_router(
    config=config,
    repository=SQLAlchemyShipmentRepository(async_session),
    b2b_repository=SQLAlchemyB2BRepository(async_session),
    storage=LocalDirectoryStorage(MEDIA_DIR),
    retry_store=retry_store,
)

app = Litestar(
    route_handlers=[expresso_router],
    lifespan=[lifespan],
    debug=True,
)
