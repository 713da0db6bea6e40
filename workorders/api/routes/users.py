from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict

from workorders.dependencies.auth import CurrentUser
from workorders.dependencies.services import get_user_repository
from workorders.users.models import Role
from workorders.users.repository import SystemUserRepository

router = APIRouter(prefix="/users", tags=["users"])


class SystemUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    role: Role
    active: bool
    created_at: datetime | None = None


UserRepositoryDep = Annotated[SystemUserRepository, Depends(get_user_repository)]


@router.get("", response_model=list[SystemUserResponse], summary="List system users")
async def list_users(
    users: UserRepositoryDep,
    _: CurrentUser,
    active_only: bool = Query(default=False),
) -> list[SystemUserResponse]:
    items = await users.list_users(active_only=active_only)
    return [SystemUserResponse.model_validate(item) for item in items]


@router.get("/me", response_model=SystemUserResponse, summary="Current user profile")
async def current_user(user: CurrentUser) -> SystemUserResponse:
    return SystemUserResponse.model_validate(user)
