from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from workorders.dependencies.auth import CurrentUser
from workorders.dependencies.services import get_equipment_service
from workorders.equipment.models import Equipment, EquipmentCondition, EquipmentStatus
from workorders.equipment.service import (
    EquipmentInUseError,
    EquipmentRecordNotFoundError,
    EquipmentService,
    EquipmentServiceError,
    EquipmentValidationError,
)
from workorders.tickets.errors import StoreWriteError

router = APIRouter(prefix="/equipment", tags=["equipment"])


class EquipmentCreateRequest(BaseModel):
    client_id: str
    equipamento: str = Field(..., min_length=1, max_length=255)
    condicao: EquipmentCondition
    numero_serie: str | None = Field(default=None, max_length=255)
    observacoes: str | None = None
    ticket_id: str | None = None


class EquipmentUpdateRequest(BaseModel):
    equipamento: str | None = Field(default=None, min_length=1, max_length=255)
    numero_serie: str | None = Field(default=None, max_length=255)
    condicao: EquipmentCondition | None = None
    observacoes: str | None = None


class EquipmentTicketRequest(BaseModel):
    ticket_id: str


class EquipmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    codigo: str
    client_id: str
    ticket_id: str | None
    equipamento: str
    numero_serie: str | None
    condicao: EquipmentCondition
    observacoes: str | None
    status: EquipmentStatus
    delivered: bool
    entregue_at: datetime | None
    created_at: datetime
    updated_at: datetime


EquipmentServiceDep = Annotated[EquipmentService, Depends(get_equipment_service)]


def _to_response(equipment: Equipment) -> EquipmentResponse:
    return EquipmentResponse.model_validate(equipment)


def _http_error(exc: EquipmentServiceError | StoreWriteError) -> HTTPException:
    if isinstance(exc, EquipmentRecordNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, EquipmentValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, EquipmentInUseError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=502, detail="The change could not be saved")


@router.get("", response_model=list[EquipmentResponse])
async def list_equipment(
    service: EquipmentServiceDep,
    _: CurrentUser,
    client_id: str | None = Query(default=None),
    ticket_id: str | None = Query(default=None),
) -> list[EquipmentResponse]:
    items = await service.list_equipment(client_id=client_id, ticket_id=ticket_id)
    return [_to_response(item) for item in items]


@router.post("", response_model=EquipmentResponse, status_code=status.HTTP_201_CREATED)
async def register_equipment(
    payload: EquipmentCreateRequest, service: EquipmentServiceDep, _: CurrentUser
) -> EquipmentResponse:
    try:
        equipment = await service.register_equipment(**payload.model_dump())
    except (EquipmentServiceError, StoreWriteError) as exc:
        raise _http_error(exc) from exc
    return _to_response(equipment)


@router.get("/{equipment_id}", response_model=EquipmentResponse)
async def get_equipment(equipment_id: str, service: EquipmentServiceDep, _: CurrentUser) -> EquipmentResponse:
    try:
        equipment = await service.get_equipment(equipment_id)
    except EquipmentServiceError as exc:
        raise _http_error(exc) from exc
    return _to_response(equipment)


@router.patch("/{equipment_id}", response_model=EquipmentResponse)
async def update_equipment(
    equipment_id: str,
    payload: EquipmentUpdateRequest,
    service: EquipmentServiceDep,
    _: CurrentUser,
) -> EquipmentResponse:
    try:
        equipment = await service.update_equipment(equipment_id, **payload.model_dump(exclude_unset=True))
    except (EquipmentServiceError, StoreWriteError) as exc:
        raise _http_error(exc) from exc
    return _to_response(equipment)


@router.post("/{equipment_id}/ticket", response_model=EquipmentResponse)
async def associate_ticket(
    equipment_id: str,
    payload: EquipmentTicketRequest,
    service: EquipmentServiceDep,
    _: CurrentUser,
) -> EquipmentResponse:
    try:
        equipment = await service.associate_ticket(equipment_id, payload.ticket_id)
    except (EquipmentServiceError, StoreWriteError) as exc:
        raise _http_error(exc) from exc
    return _to_response(equipment)


@router.delete("/{equipment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_equipment(equipment_id: str, service: EquipmentServiceDep, _: CurrentUser) -> None:
    try:
        await service.delete_equipment(equipment_id)
    except (EquipmentServiceError, StoreWriteError) as exc:
        raise _http_error(exc) from exc
