from __future__ import annotations

import logging
import re
from typing import Any, Sequence

from workorders.core.cache import CLIENTS_CACHE_PREFIX, TICKETS_CACHE_PREFIX, QueryCache

from .models import Client
from .repository import ClientRepository, DuplicateClientError

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = (
    "razao_social",
    "nome_fantasia",
    "endereco",
    "cep",
    "telefone",
    "email",
    "observacoes",
)


class ClientServiceError(RuntimeError):
    """Base error for client registry issues."""


class ClientNotFoundError(ClientServiceError):
    """Raised when a client could not be located."""


class ClientValidationError(ClientServiceError, ValueError):
    """Raised when client data is incomplete or malformed."""


class ClientInUseError(ClientServiceError):
    """Raised when deleting a client that tickets or equipment still reference."""


def normalize_cnpj(value: str | None) -> str:
    """Strip punctuation from a CNPJ and check it has 14 digits."""

    digits = re.sub(r"\D", "", value or "")
    if len(digits) != 14:
        raise ClientValidationError("CNPJ must have 14 digits")
    return digits


class ClientService:
    def __init__(self, repository: ClientRepository, *, cache: QueryCache | None = None) -> None:
        self._repository = repository
        self._cache = cache

    async def create_client(self, *, cnpj: str, razao_social: str, **details: Any) -> Client:
        if not (razao_social or "").strip():
            raise ClientValidationError("Legal name is required")
        values = _clean_details(details)
        client = await self._repository.create_client(
            cnpj=normalize_cnpj(cnpj), razao_social=razao_social.strip(), **values
        )
        logger.info("Client %s registered (%s)", client.id, client.cnpj)
        self._invalidate()
        return client

    async def update_client(self, client_id: str, **changes: Any) -> Client:
        values = _clean_details({key: value for key, value in changes.items() if key != "cnpj"})
        if "razao_social" in values and not values["razao_social"]:
            raise ClientValidationError("Legal name is required")
        if changes.get("cnpj") is not None:
            values["cnpj"] = normalize_cnpj(changes["cnpj"])
        client = await self._repository.update_client(client_id, **values)
        if client is None:
            raise ClientNotFoundError(f"Client {client_id} not found")
        self._invalidate()
        return client

    async def get_client(self, client_id: str) -> Client:
        client = await self._repository.get_client(client_id)
        if client is None:
            raise ClientNotFoundError(f"Client {client_id} not found")
        return client

    async def list_clients(self, *, search: str | None = None) -> Sequence[Client]:
        if self._cache is None:
            return await self._repository.list_clients(search=search)
        return await self._cache.get_or_load(
            (*CLIENTS_CACHE_PREFIX, search or ""), lambda: self._repository.list_clients(search=search)
        )

    async def delete_client(self, client_id: str) -> None:
        await self.get_client(client_id)
        if await self._repository.is_referenced(client_id):
            raise ClientInUseError(f"Client {client_id} still has tickets or equipment")
        await self._repository.delete_client(client_id)
        logger.info("Client %s deleted", client_id)
        self._invalidate()

    def _invalidate(self) -> None:
        if self._cache is not None:
            self._cache.invalidate(CLIENTS_CACHE_PREFIX, TICKETS_CACHE_PREFIX)


def _clean_details(details: dict[str, Any]) -> dict[str, Any]:
    unknown = set(details) - set(_EDITABLE_FIELDS)
    if unknown:
        raise ClientValidationError(f"Unknown client fields: {', '.join(sorted(unknown))}")
    cleaned: dict[str, Any] = {}
    for key, value in details.items():
        if isinstance(value, str):
            value = value.strip() or None
        cleaned[key] = value
    return cleaned


__all__ = [
    "ClientInUseError",
    "ClientNotFoundError",
    "ClientService",
    "ClientServiceError",
    "ClientValidationError",
    "DuplicateClientError",
    "normalize_cnpj",
]
