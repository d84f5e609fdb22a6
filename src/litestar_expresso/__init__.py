# src/litestar_expresso/__init__.py
"""Litestar adapter for the express shipment and B2B volume lifecycle."""

from typing import TYPE_CHECKING

__version__ = "0.1.0"

__all__ = [
    "B2BFlow",
    "ConfigurationError",
    "ExpressoConfig",
    "ExpressoError",
    "SessionContext",
    "ShipmentFlow",
    "ShipmentNotFoundError",
    "WebhookRetryStore",
    "__version__",
    "create_expresso_router",
]

if TYPE_CHECKING:
    from litestar_expresso.config import ExpressoConfig
    from litestar_expresso.exceptions import (
        ConfigurationError,
        ExpressoError,
        ShipmentNotFoundError,
    )
    from litestar_expresso.flow import B2BFlow, ShipmentFlow
    from litestar_expresso.plugin import create_expresso_router
    from litestar_expresso.protocols import WebhookRetryStore
    from litestar_expresso.session import SessionContext


def __getattr__(name: str):
    # Lazy imports to avoid loading all submodules on package import.
    if name == "ExpressoConfig":
        from litestar_expresso.config import ExpressoConfig

        return ExpressoConfig
    if name == "create_expresso_router":
        from litestar_expresso.plugin import create_expresso_router

        return create_expresso_router
    if name in ("ShipmentFlow", "B2BFlow"):
        from litestar_expresso import flow

        return getattr(flow, name)
    if name == "SessionContext":
        from litestar_expresso.session import SessionContext

        return SessionContext
    if name in ("ExpressoError", "ShipmentNotFoundError", "ConfigurationError"):
        from litestar_expresso import exceptions

        return getattr(exceptions, name)
    if name == "WebhookRetryStore":
        from litestar_expresso import protocols

        return getattr(protocols, name)
    raise AttributeError(
        f"module 'litestar_expresso' has no attribute {name!r}"
    )
