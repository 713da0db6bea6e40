"""Identity resolution for audit attribution."""

from .provider import AuthSession, HostedIdentityClient, IdentityProvider, IdentityProviderError
from .resolver import (
    ActorProvider,
    ActorResolver,
    CachedUserStrategy,
    RefreshStrategy,
    SessionStrategy,
    StaticActorProvider,
    WhoAmIStrategy,
    build_actor_resolver,
)

__all__ = [
    "ActorProvider",
    "ActorResolver",
    "AuthSession",
    "CachedUserStrategy",
    "HostedIdentityClient",
    "IdentityProvider",
    "IdentityProviderError",
    "RefreshStrategy",
    "SessionStrategy",
    "StaticActorProvider",
    "WhoAmIStrategy",
    "build_actor_resolver",
]
