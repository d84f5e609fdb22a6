"""Tests for the per-request session context."""

from typing import Annotated

import pytest
from litestar import Litestar, get
from litestar.di import Provide
from litestar.params import Dependency
from litestar.testing import TestClient

from litestar_expresso.enums import ActorRole
from litestar_expresso.exceptions import (
    EXCEPTION_HANDLERS,
    AuthenticationRequiredError,
    PermissionDeniedError,
)
from litestar_expresso.session import SessionContext, provide_session_context


def test_anonymous_context_owns_by_session():
    ctx = SessionContext.anonymous("sess-1")
    assert ctx.owner_reference() == (None, "sess-1")
    with pytest.raises(AuthenticationRequiredError):
        ctx.require_actor()


def test_driver_context_owns_by_actor():
    ctx = SessionContext.driver("m-1")
    assert ctx.role is ActorRole.DRIVER
    assert ctx.owner_reference() == ("m-1", None)
    assert ctx.require_actor() == "m-1"
    assert not ctx.is_admin


def test_require_role():
    assert SessionContext.admin("a-1").require_role(ActorRole.ADMIN) == "a-1"
    with pytest.raises(PermissionDeniedError):
        SessionContext.driver("m-1").require_role(ActorRole.ADMIN, ActorRole.CD)


@get("/whoami")
async def whoami(
    ctx: Annotated[SessionContext, Dependency(skip_validation=True)],
) -> dict[str, str | None]:
    return {
        "actor_id": ctx.actor_id,
        "role": str(ctx.role),
        "session_id": ctx.session_id,
    }


def _client() -> TestClient:
    app = Litestar(
        route_handlers=[whoami],
        dependencies={
            "ctx": Provide(provide_session_context, sync_to_thread=False)
        },
        exception_handlers=EXCEPTION_HANDLERS,
    )
    return TestClient(app)


def test_context_built_from_headers():
    with _client() as client:
        resp = client.get(
            "/whoami",
            headers={
                "X-Actor-Id": "a-1",
                "X-Actor-Role": "admin",
                "X-Session-Id": "sess-9",
            },
        )
    assert resp.json() == {
        "actor_id": "a-1",
        "role": "admin",
        "session_id": "sess-9",
    }


def test_actor_without_role_is_a_driver():
    with _client() as client:
        resp = client.get("/whoami", headers={"X-Actor-Id": "m-1"})
    assert resp.json()["role"] == "motorista"


def test_no_headers_is_anonymous():
    with _client() as client:
        resp = client.get("/whoami")
    assert resp.json() == {
        "actor_id": None,
        "role": "anonymous",
        "session_id": None,
    }


def test_unknown_role_rejected():
    with _client() as client:
        resp = client.get(
            "/whoami", headers={"X-Actor-Id": "x", "X-Actor-Role": "root"}
        )
    assert resp.status_code == 401
    assert resp.json()["code"] == "authentication_required"
