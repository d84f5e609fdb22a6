"""Fire-and-forget webhook notifications for status changes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import httpx

from litestar_expresso.config import ExpressoConfig
from litestar_expresso.enums import SubjectKind
from litestar_expresso.protocols import WebhookRetryStore
from litestar_expresso.retry import enqueue_webhook_retry

logger = logging.getLogger(__name__)

STATUS_CHANGED = "status_changed"


def build_status_event(
    subject: SubjectKind,
    record: Any,
    previous_status: str | None,
) -> dict[str, Any]:
    """JSON payload describing a record's new status."""
    return {
        "event": STATUS_CHANGED,
        "subject": str(subject),
        "id": str(record.id),
        "tracking_code": getattr(record, "tracking_code", None)
        or getattr(record, "eti_code", None),
        "status": str(record.status),
        "previous_status": previous_status,
        "occurred_at": datetime.now(tz=UTC).isoformat(),
    }


class WebhookDispatcher:
    """Best-effort outbound queue of webhook POSTs.

    :meth:`dispatch` schedules one task per endpoint and returns at once;
    a failed delivery is logged and, with a retry store, queued for retry.
    Callers never await deliveries for correctness; :meth:`drain` exists for
    shutdown and observability.
    """

    def __init__(
        self,
        urls: Sequence[str] = (),
        *,
        timeout: float = 10.0,
        enabled: bool = True,
        retry_store: WebhookRetryStore | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._urls = list(urls)
        self._timeout = timeout
        self._enabled = enabled
        self._retry_store = retry_store
        self._client = client
        self._tasks: set[asyncio.Task[None]] = set()

    @classmethod
    def from_config(
        cls,
        config: ExpressoConfig,
        retry_store: WebhookRetryStore | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> WebhookDispatcher:
        return cls(
            config.webhook_urls,
            timeout=config.webhook_timeout_seconds,
            enabled=config.webhook_enabled,
            retry_store=retry_store if config.retry_enabled else None,
            client=client,
        )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, payload: dict[str, Any]) -> None:
        """Schedule delivery of ``payload`` to every configured endpoint."""
        if not self._enabled or not self._urls:
            return
        for url in self._urls:
            task = asyncio.create_task(self._send(url, payload))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def deliver(self, url: str, payload: dict[str, Any]) -> None:
        """POST ``payload`` to ``url``, raising on transport or HTTP errors."""
        if self._client is not None:
            response = await self._client.post(
                url, json=payload, timeout=self._timeout
            )
            response.raise_for_status()
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(url, json=payload)
            response.raise_for_status()

    async def _send(self, url: str, payload: dict[str, Any]) -> None:
        try:
            await self.deliver(url, payload)
        except Exception as exc:
            logger.warning("Webhook delivery to %s failed: %s", url, exc)
            try:
                await enqueue_webhook_retry(
                    self._retry_store,
                    url=url,
                    payload=payload,
                    reason=str(exc),
                )
            except Exception:
                logger.exception("Could not queue webhook retry for %s", url)
        else:
            logger.debug(
                "Webhook delivered to %s: %s %s",
                url,
                payload.get("subject"),
                payload.get("status"),
            )

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
