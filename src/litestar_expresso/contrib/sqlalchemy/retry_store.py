"""SQLAlchemy-backed retry store for webhook deliveries."""

from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from litestar_expresso.contrib.sqlalchemy.models import WebhookRetryModel
from litestar_expresso.retry import compute_next_retry_at


class SQLAlchemyRetryStore:
    """Webhook retry store backed by SQLAlchemy.

    Implements the WebhookRetryStore protocol.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        backoff_seconds: int = 60,
    ) -> None:
        self._session_factory = session_factory
        self._backoff_seconds = backoff_seconds

    async def store_failed_delivery(
        self,
        url: str,
        payload: dict,
        error: str,
    ) -> str:
        """Store a failed webhook delivery for later retry."""
        async with self._session_factory() as session:
            retry = WebhookRetryModel(
                url=url,
                payload=payload,
                last_error=error,
                attempts=0,
                next_retry_at=compute_next_retry_at(
                    attempt=1,
                    backoff_seconds=self._backoff_seconds,
                ),
                status="pending",
            )
            session.add(retry)
            await session.commit()
            await session.refresh(retry)
            return retry.id

    async def get_due_retries(self, limit: int = 10) -> list[dict]:
        """Get retries that are due for processing."""
        now = datetime.now(tz=UTC)
        async with self._session_factory() as session:
            stmt = (
                select(WebhookRetryModel)
                .where(WebhookRetryModel.status == "pending")
                .where(WebhookRetryModel.next_retry_at <= now)
                .order_by(WebhookRetryModel.next_retry_at.asc())
                .limit(limit)
            )
            result = await session.execute(stmt)
            retries = result.scalars().all()
            return [
                {
                    "id": r.id,
                    "url": r.url,
                    "payload": r.payload,
                    "attempts": r.attempts,
                }
                for r in retries
            ]

    async def _set(self, retry_id: str, **values) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(WebhookRetryModel)
                .where(WebhookRetryModel.id == retry_id)
                .values(**values)
            )
            await session.commit()

    async def mark_succeeded(self, retry_id: str) -> None:
        """Mark a retry as successfully processed."""
        await self._set(retry_id, status="succeeded")

    async def mark_failed(self, retry_id: str, error: str) -> None:
        """Mark a retry as failed and schedule next attempt."""
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(WebhookRetryModel)
                    .where(WebhookRetryModel.id == retry_id)
                    .values(
                        attempts=WebhookRetryModel.attempts + 1,
                        last_error=error,
                        status="pending",
                    )
                )
                retry = await session.get(WebhookRetryModel, retry_id)
                if retry is not None:
                    retry.next_retry_at = compute_next_retry_at(
                        attempt=retry.attempts + 1,
                        backoff_seconds=self._backoff_seconds,
                    )

    async def mark_exhausted(self, retry_id: str) -> None:
        """Mark a retry as exhausted (dead letter)."""
        await self._set(retry_id, status="exhausted")
