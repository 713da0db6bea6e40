"""Client for the hosted identity provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Protocol

import httpx

logger = logging.getLogger(__name__)


class IdentityProviderError(RuntimeError):
    """Raised when the identity provider answers with an error."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        prefix = f"[{self.status_code}] " if self.status_code is not None else ""
        return f"{prefix}{super().__str__()}"


@dataclass(slots=True)
class AuthSession:
    """Session issued by the identity provider."""

    access_token: str
    user_id: str
    refresh_token: str | None = None
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at


class IdentityProvider(Protocol):
    async def get_session(self) -> AuthSession | None:
        ...

    async def get_user(self) -> str | None:
        ...

    async def refresh_session(self, refresh_token: str) -> AuthSession | None:
        ...


def _extract_error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or "Unknown identity provider error"

    if isinstance(data, Mapping):
        for key in ("error_description", "msg", "message", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return "Identity provider request failed"


class HostedIdentityClient:
    """Speaks to a GoTrue-style auth API.

    ``get_session`` only looks at the session held locally and never goes to
    the network; ``get_user`` asks the provider who owns the access token;
    ``refresh_session`` trades a refresh token for a new session and keeps it.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None = None,
        access_token: str | None = None,
        session: AuthSession | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._access_token = access_token
        self._session = session
        self._timeout = timeout
        self._transport = transport

    @property
    def session(self) -> AuthSession | None:
        return self._session

    async def get_session(self) -> AuthSession | None:
        if self._session is None:
            return None
        if self._session.is_expired():
            logger.debug("Local session for user %s has expired", self._session.user_id)
            return None
        return self._session

    async def get_user(self) -> str | None:
        token = self._session.access_token if self._session else self._access_token
        if not token:
            return None
        data = await self._request("GET", "/user", token=token)
        user_id = data.get("id") if isinstance(data, Mapping) else None
        return str(user_id) if user_id else None

    async def refresh_session(self, refresh_token: str) -> AuthSession | None:
        data = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        if not isinstance(data, Mapping):
            return None
        session = _session_from_payload(data)
        if session is not None:
            self._session = session
            self._access_token = session.access_token
        return session

    async def _request(self, method: str, path: str, *, token: str | None = None, **kwargs: Any) -> Any:
        headers: dict[str, str] = {"Accept": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.request(method, f"{self._base_url}{path}", headers=headers, **kwargs)
            except httpx.HTTPError as exc:
                raise IdentityProviderError(f"Identity provider request failed: {exc}") from exc

        if response.status_code >= 400:
            raise IdentityProviderError(_extract_error_message(response), status_code=response.status_code)
        if not response.content:
            return None
        return response.json()


def _session_from_payload(data: Mapping[str, Any]) -> AuthSession | None:
    access_token = data.get("access_token")
    user = data.get("user")
    user_id = user.get("id") if isinstance(user, Mapping) else None
    if not access_token or not user_id:
        return None
    expires_at: datetime | None = None
    expires_in = data.get("expires_in")
    if isinstance(expires_in, (int, float)):
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=float(expires_in))
    return AuthSession(
        access_token=str(access_token),
        user_id=str(user_id),
        refresh_token=data.get("refresh_token"),
        expires_at=expires_at,
    )
