from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from workorders.clients.models import Client
from workorders.clients.service import (
    ClientInUseError,
    ClientNotFoundError,
    ClientService,
    ClientServiceError,
    ClientValidationError,
    DuplicateClientError,
)
from workorders.dependencies.auth import AdminUser, CurrentUser
from workorders.dependencies.services import get_client_service
from workorders.tickets.errors import StoreWriteError

router = APIRouter(prefix="/clients", tags=["clients"])


class ClientDetails(BaseModel):
    nome_fantasia: str | None = Field(default=None, max_length=255)
    endereco: str | None = None
    cep: str | None = Field(default=None, max_length=16)
    telefone: str | None = Field(default=None, max_length=32)
    email: str | None = Field(default=None, max_length=255)
    observacoes: str | None = None


class ClientCreateRequest(ClientDetails):
    cnpj: str = Field(..., min_length=14, max_length=18)
    razao_social: str = Field(..., min_length=1, max_length=255)


class ClientUpdateRequest(ClientDetails):
    cnpj: str | None = Field(default=None, min_length=14, max_length=18)
    razao_social: str | None = Field(default=None, min_length=1, max_length=255)


class ClientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    cnpj: str
    razao_social: str
    nome_fantasia: str | None
    endereco: str | None
    cep: str | None
    telefone: str | None
    email: str | None
    observacoes: str | None
    created_at: datetime | None


ClientServiceDep = Annotated[ClientService, Depends(get_client_service)]


def _to_response(client: Client) -> ClientResponse:
    return ClientResponse.model_validate(client)


def _http_error(exc: ClientServiceError | StoreWriteError) -> HTTPException:
    if isinstance(exc, ClientNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ClientValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, (ClientInUseError, DuplicateClientError)):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=502, detail="The change could not be saved")


@router.get("", response_model=list[ClientResponse])
async def list_clients(
    service: ClientServiceDep,
    _: CurrentUser,
    search: str | None = Query(default=None, max_length=255),
) -> list[ClientResponse]:
    clients = await service.list_clients(search=search)
    return [_to_response(client) for client in clients]


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(payload: ClientCreateRequest, service: ClientServiceDep, _: AdminUser) -> ClientResponse:
    try:
        client = await service.create_client(**payload.model_dump())
    except (ClientServiceError, StoreWriteError) as exc:
        raise _http_error(exc) from exc
    return _to_response(client)


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(client_id: str, service: ClientServiceDep, _: CurrentUser) -> ClientResponse:
    try:
        client = await service.get_client(client_id)
    except ClientServiceError as exc:
        raise _http_error(exc) from exc
    return _to_response(client)


@router.patch("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: str,
    payload: ClientUpdateRequest,
    service: ClientServiceDep,
    _: AdminUser,
) -> ClientResponse:
    try:
        client = await service.update_client(client_id, **payload.model_dump(exclude_unset=True))
    except (ClientServiceError, StoreWriteError) as exc:
        raise _http_error(exc) from exc
    return _to_response(client)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(client_id: str, service: ClientServiceDep, _: AdminUser) -> None:
    try:
        await service.delete_client(client_id)
    except (ClientServiceError, StoreWriteError) as exc:
        raise _http_error(exc) from exc
