from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from workorders.core.config import get_settings
from workorders.identity.provider import HostedIdentityClient
from workorders.identity.resolver import ActorProvider, build_actor_resolver
from workorders.users.models import Role, SystemUser
from workorders.users.repository import SystemUserRepository

from .services import get_user_repository

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_actor_resolver(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    x_refresh_token: Annotated[str | None, Header()] = None,
) -> ActorProvider:
    """Per-request actor resolver built from the bearer and refresh tokens."""

    cached = getattr(request.state, "actor_resolver", None)
    if cached is not None:
        return cached

    settings = get_settings()
    access_token = credentials.credentials if credentials is not None else None
    provider = HostedIdentityClient(
        base_url=settings.auth_url,
        api_key=settings.auth_api_key,
        access_token=access_token,
        timeout=settings.auth_timeout_seconds,
    )
    resolver = build_actor_resolver(
        provider,
        access_token=access_token,
        refresh_token=x_refresh_token,
    )
    request.state.actor_resolver = resolver
    return resolver


Actor = Annotated[ActorProvider, Depends(get_actor_resolver)]


async def get_current_user(
    request: Request,
    actor: Actor,
    users: Annotated[SystemUserRepository, Depends(get_user_repository)],
) -> SystemUser:
    cached = getattr(request.state, "user", None)
    if isinstance(cached, SystemUser):
        return cached

    actor_id = await actor.resolve_actor_id()
    if actor_id is None:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")

    user = await users.get_user(actor_id)
    if user is None or not user.active:
        logger.warning("Authenticated user %s is not an active system user", actor_id)
        raise HTTPException(status_code=403, detail="User is not an active system user")

    request.state.user = user
    return user


def role_required(role: Role) -> Callable[[SystemUser], SystemUser]:
    """Dependency factory ensuring the current user has the requested role."""

    async def dependency(user: Annotated[SystemUser, Depends(get_current_user)]) -> SystemUser:
        if not user.has_role(role):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


require_admin = role_required(Role.ADMIN)

CurrentUser = Annotated[SystemUser, Depends(get_current_user)]
AdminUser = Annotated[SystemUser, Depends(require_admin)]
