"""Webhook retry mechanism with exponential backoff."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from litestar_expresso.config import ExpressoConfig
from litestar_expresso.protocols import WebhookRetryStore

if TYPE_CHECKING:
    from litestar_expresso.webhooks import WebhookDispatcher

logger = logging.getLogger(__name__)


def compute_next_retry_at(
    attempt: int,
    backoff_seconds: int,
) -> datetime:
    """Compute the next retry time with exponential backoff.

    delay = backoff_seconds * 2^(attempt - 1)
    """
    delay = backoff_seconds * (2 ** (attempt - 1))
    return datetime.now(tz=UTC) + timedelta(seconds=delay)


async def enqueue_webhook_retry(
    store: WebhookRetryStore | None,
    *,
    url: str,
    payload: dict,
    reason: str,
) -> None:
    """Persist a failed webhook delivery when a retry store is configured."""
    if store is None:
        return

    await store.store_failed_delivery(url=url, payload=payload, error=reason)
    logger.warning(
        "Webhook to %s for %s %s failed, queued for retry: %s",
        url,
        payload.get("subject"),
        payload.get("id"),
        reason,
    )


async def process_due_retries(
    *,
    retry_store: WebhookRetryStore,
    dispatcher: WebhookDispatcher,
    config: ExpressoConfig,
    limit: int = 10,
) -> int:
    """Redeliver all due webhook retries.

    Returns the number of retries processed.
    """
    retries = await retry_store.get_due_retries(limit=limit)
    processed = 0

    for retry in retries:
        retry_id = retry["id"]
        url = retry["url"]
        attempts = retry["attempts"]

        try:
            await dispatcher.deliver(url, retry["payload"])
            await retry_store.mark_succeeded(retry_id)
            logger.info("Retry %s: webhook to %s succeeded", retry_id, url)
        except Exception as exc:
            if attempts >= config.retry_max_attempts:
                await retry_store.mark_exhausted(retry_id)
                logger.warning(
                    "Retry %s: exhausted after %d attempts: %s",
                    retry_id,
                    attempts,
                    exc,
                )
            else:
                await retry_store.mark_failed(
                    retry_id,
                    error=str(exc),
                )
                logger.info(
                    "Retry %s: attempt %d failed: %s",
                    retry_id,
                    attempts,
                    exc,
                )

        processed += 1

    return processed
