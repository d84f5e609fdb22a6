"""Litestar adapter configuration."""

from __future__ import annotations

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExpressoConfig(BaseSettings):
    """Runtime config for the shipment lifecycle adapter.

    Reads from environment variables with EXPRESSO_ prefix.
    """

    model_config = SettingsConfigDict(env_prefix="EXPRESSO_")

    # Webhook notifications
    webhook_urls: list[str] = Field(default_factory=list)
    webhook_enabled: bool = True
    webhook_timeout_seconds: float = 10.0

    # Retry settings
    retry_max_attempts: int = 5
    retry_backoff_seconds: int = 60
    retry_enabled: bool = True

    # Evidence object storage
    storage_url: str = ""
    storage_bucket: str = "shipment-photos"
    storage_api_key: str = ""

    # Quote pricing: kg equivalent of one cubic meter (0 disables cubage)
    cubic_meter_kg_equivalent: Decimal = Decimal(0)
