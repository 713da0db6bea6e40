from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from workorders.identity.provider import AuthSession, HostedIdentityClient, IdentityProviderError


def _client(handler, **kwargs) -> HostedIdentityClient:
    return HostedIdentityClient(
        base_url="https://auth.example.com/auth/v1/",
        api_key="anon-key",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_get_session_never_hits_the_network():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be called
        raise AssertionError("unexpected request")

    live = AuthSession(access_token="at", user_id="user-1")
    assert await _client(handler, session=live).get_session() is live

    expired = AuthSession(
        access_token="at", user_id="user-1", expires_at=datetime.now(timezone.utc) - timedelta(seconds=1)
    )
    assert await _client(handler, session=expired).get_session() is None
    assert await _client(handler).get_session() is None


@pytest.mark.asyncio
async def test_get_user_sends_bearer_and_api_key():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "user-7", "email": "tech@example.com"})

    user_id = await _client(handler, access_token="token-1").get_user()

    assert user_id == "user-7"
    assert seen[0].url.path == "/auth/v1/user"
    assert seen[0].headers["Authorization"] == "Bearer token-1"
    assert seen[0].headers["apikey"] == "anon-key"


@pytest.mark.asyncio
async def test_get_user_without_token_returns_none():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be called
        raise AssertionError("unexpected request")

    assert await _client(handler).get_user() is None


@pytest.mark.asyncio
async def test_refresh_session_stores_new_session():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["grant_type"] == "refresh_token"
        assert json.loads(request.content) == {"refresh_token": "rt-1"}
        return httpx.Response(
            200,
            json={
                "access_token": "at-2",
                "refresh_token": "rt-2",
                "expires_in": 3600,
                "user": {"id": "user-9"},
            },
        )

    client = _client(handler)
    session = await client.refresh_session("rt-1")

    assert session is not None
    assert session.user_id == "user-9"
    assert session.refresh_token == "rt-2"
    assert client.session is session
    assert await client.get_session() is session


@pytest.mark.asyncio
async def test_error_payload_is_surfaced():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error_description": "Invalid Refresh Token"})

    with pytest.raises(IdentityProviderError) as exc:
        await _client(handler).refresh_session("stale")

    assert exc.value.status_code == 401
    assert "Invalid Refresh Token" in str(exc.value)
