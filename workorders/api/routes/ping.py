from fastapi import APIRouter

from workorders.dependencies.auth import AdminUser, CurrentUser

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health check")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/secure", summary="Authenticated health check")
async def secure_ping(user: CurrentUser) -> dict[str, str]:
    return {"status": "ok", "user": user.email}


@router.get("/admin", summary="Admin-only health check")
async def admin_ping(user: AdminUser) -> dict[str, str]:
    return {"status": "ok", "user": user.email}
