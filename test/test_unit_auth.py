# Test type: Unit Test
# Validation to be executed: Validates bearer-token handling against the
#   identity provider (mocked with httpx.MockTransport).
# Command: pytest test/test_unit_auth.py -v

"""Unit tests for chronyx_tax.auth module."""

import httpx
import pytest
from fastapi import HTTPException

from chronyx_tax import auth

pytestmark = pytest.mark.anyio


@pytest.fixture
def identity_provider(monkeypatch):
    """Route the module's AsyncClient through a mock transport."""
    calls = []
    responses = {}
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        token = request.headers["Authorization"].removeprefix("Bearer ")
        status, body = responses.get(token, (401, {"msg": "invalid JWT"}))
        return httpx.Response(status, json=body)

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(auth.httpx, "AsyncClient", factory)
    return calls, responses


async def test_valid_token(identity_provider):
    calls, responses = identity_provider
    responses["good"] = (200, {"id": "u-42", "email": "ravi@example.com"})

    user = await auth.get_current_user(authorization="Bearer good")

    assert user == auth.CurrentUser(id="u-42", email="ravi@example.com")
    assert len(calls) == 1


async def test_rejected_token(identity_provider):
    with pytest.raises(HTTPException) as exc:
        await auth.get_current_user(authorization="Bearer bad")
    assert exc.value.status_code == 401


async def test_response_without_id(identity_provider):
    _, responses = identity_provider
    responses["odd"] = (200, {"email": "x@example.com"})
    with pytest.raises(HTTPException) as exc:
        await auth.get_current_user(authorization="Bearer odd")
    assert exc.value.status_code == 401


@pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer ", "token-only"])
async def test_malformed_header_never_calls_provider(identity_provider, header):
    calls, _ = identity_provider
    with pytest.raises(HTTPException) as exc:
        await auth.get_current_user(authorization=header)
    assert exc.value.status_code == 401
    assert calls == []
