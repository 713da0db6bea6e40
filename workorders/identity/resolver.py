"""Resolution of the acting user for audit attribution."""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from workorders.core.cache import CacheKey, QueryCache
from workorders.metrics import ACTOR_RESOLUTION_TOTAL, MetricsRegistry, metrics_registry

from .provider import IdentityProvider

logger = logging.getLogger(__name__)


class ActorProvider(Protocol):
    """Anything able to name the user performing a mutation."""

    async def resolve_actor_id(self) -> str | None:
        ...


class ActorStrategy(Protocol):
    name: str

    async def resolve(self) -> str | None:
        ...


def current_user_key(access_token: str | None) -> CacheKey:
    return ("current-user", access_token or "")


class CachedUserStrategy:
    """Reuse a previously resolved current user from the query cache."""

    name = "cache"

    def __init__(self, cache: QueryCache, key: CacheKey) -> None:
        self._cache = cache
        self._key = key

    async def resolve(self) -> str | None:
        cached = self._cache.get(self._key)
        return str(cached) if cached else None


class SessionStrategy:
    """Use the session the identity provider already holds."""

    name = "session"

    def __init__(self, provider: IdentityProvider) -> None:
        self._provider = provider

    async def resolve(self) -> str | None:
        session = await self._provider.get_session()
        return session.user_id if session is not None else None


class WhoAmIStrategy:
    """Ask the identity provider who owns the current access token."""

    name = "whoami"

    def __init__(self, provider: IdentityProvider) -> None:
        self._provider = provider

    async def resolve(self) -> str | None:
        return await self._provider.get_user()


class RefreshStrategy:
    """Refresh the session from the persisted refresh token, if one exists."""

    name = "refresh"

    def __init__(self, provider: IdentityProvider, refresh_token: str | None) -> None:
        self._provider = provider
        self._refresh_token = refresh_token

    async def resolve(self) -> str | None:
        if not self._refresh_token:
            return None
        session = await self._provider.refresh_session(self._refresh_token)
        return session.user_id if session is not None else None


class ActorResolver:
    """Try each strategy in order and return the first actor id found.

    A strategy that raises is logged and skipped. ``None`` means every
    strategy came up empty; it is returned, never raised.
    """

    def __init__(
        self,
        strategies: Sequence[ActorStrategy],
        *,
        cache: QueryCache | None = None,
        cache_key: CacheKey | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._strategies = tuple(strategies)
        self._cache = cache
        self._cache_key = cache_key
        self._metrics = metrics or metrics_registry

    @property
    def strategies(self) -> tuple[ActorStrategy, ...]:
        return self._strategies

    async def resolve_actor_id(self) -> str | None:
        for strategy in self._strategies:
            try:
                actor_id = await strategy.resolve()
            except Exception:
                logger.warning("Actor resolution via %s failed", strategy.name, exc_info=True)
                continue
            if actor_id:
                logger.debug("Resolved actor %s via %s", actor_id, strategy.name)
                self._record(strategy.name)
                if self._cache is not None and self._cache_key is not None:
                    self._cache.set(self._cache_key, actor_id)
                return actor_id
            logger.debug("Actor strategy %s returned nothing", strategy.name)

        logger.error("Could not resolve the acting user after %d strategies", len(self._strategies))
        self._record("none")
        return None

    def _record(self, strategy: str) -> None:
        self._metrics.counter(ACTOR_RESOLUTION_TOTAL, label_names=("strategy",)).inc(
            labels={"strategy": strategy}
        )


class StaticActorProvider:
    """Fixed actor, for system-initiated work and tests."""

    def __init__(self, actor_id: str | None) -> None:
        self._actor_id = actor_id

    async def resolve_actor_id(self) -> str | None:
        return self._actor_id


def build_actor_resolver(
    provider: IdentityProvider,
    *,
    cache: QueryCache | None = None,
    access_token: str | None = None,
    refresh_token: str | None = None,
) -> ActorResolver:
    """Standard chain: cached user, session, who-am-I, then refresh.

    ``cache`` holds the current user for one client session and must not
    outlive it. Without one the resolver keeps its own.
    """

    session_cache = cache if cache is not None else QueryCache()
    strategies: list[ActorStrategy] = []
    key = current_user_key(access_token)
    if access_token:
        strategies.append(CachedUserStrategy(session_cache, key))
    strategies.extend(
        [
            SessionStrategy(provider),
            WhoAmIStrategy(provider),
            RefreshStrategy(provider, refresh_token),
        ]
    )
    return ActorResolver(
        strategies,
        cache=session_cache if access_token else None,
        cache_key=key if access_token else None,
    )
