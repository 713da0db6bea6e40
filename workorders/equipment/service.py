from __future__ import annotations

import logging
from typing import Any, Sequence

from workorders.core.cache import EQUIPMENT_CACHE_PREFIX, TICKETS_CACHE_PREFIX, QueryCache

from .models import Equipment, EquipmentCondition
from .repository import EquipmentRepository

logger = logging.getLogger(__name__)


class EquipmentServiceError(RuntimeError):
    """Base error for equipment registry issues."""


class EquipmentRecordNotFoundError(EquipmentServiceError):
    """Raised when an equipment record could not be located."""


class EquipmentValidationError(EquipmentServiceError, ValueError):
    """Raised when equipment data or a ticket link is invalid."""


class EquipmentInUseError(EquipmentServiceError):
    """Raised when deleting equipment that is still linked to a ticket."""


class EquipmentService:
    """Registry of items picked up from clients."""

    def __init__(self, repository: EquipmentRepository, *, cache: QueryCache | None = None) -> None:
        self._repository = repository
        self._cache = cache

    async def register_equipment(
        self,
        *,
        client_id: str,
        equipamento: str,
        condicao: EquipmentCondition | str,
        numero_serie: str | None = None,
        observacoes: str | None = None,
        ticket_id: str | None = None,
    ) -> Equipment:
        if not client_id:
            raise EquipmentValidationError("A client is required")
        if not (equipamento or "").strip():
            raise EquipmentValidationError("Equipment description is required")
        if ticket_id is not None:
            await self._assert_same_client(ticket_id, client_id)

        equipment = await self._repository.create_equipment(
            client_id=client_id,
            equipamento=equipamento.strip(),
            condicao=_as_condition(condicao),
            numero_serie=_strip(numero_serie),
            observacoes=_strip(observacoes),
            ticket_id=ticket_id,
        )
        logger.info("Equipment %s registered for client %s", equipment.codigo, client_id)
        self._invalidate(*_linked_listings(equipment))
        return equipment

    async def update_equipment(
        self,
        equipment_id: str,
        *,
        equipamento: str | None = None,
        numero_serie: str | None = None,
        condicao: EquipmentCondition | str | None = None,
        observacoes: str | None = None,
    ) -> Equipment:
        values: dict[str, Any] = {}
        if equipamento is not None:
            if not equipamento.strip():
                raise EquipmentValidationError("Equipment description is required")
            values["equipamento"] = equipamento.strip()
        if numero_serie is not None:
            values["numero_serie"] = _strip(numero_serie)
        if condicao is not None:
            values["condicao"] = _as_condition(condicao).value
        if observacoes is not None:
            values["observacoes"] = _strip(observacoes)

        equipment = await self._repository.update_equipment(equipment_id, **values)
        if equipment is None:
            raise EquipmentRecordNotFoundError(f"Equipment {equipment_id} not found")
        self._invalidate(*_linked_listings(equipment))
        return equipment

    async def associate_ticket(self, equipment_id: str, ticket_id: str) -> Equipment:
        current = await self.get_equipment(equipment_id)
        await self._assert_same_client(ticket_id, current.client_id)
        equipment = await self._repository.update_equipment(equipment_id, ticket_id=ticket_id)
        if equipment is None:
            raise EquipmentRecordNotFoundError(f"Equipment {equipment_id} not found")
        logger.info("Equipment %s linked to ticket %s", equipment.codigo, ticket_id)
        self._invalidate(TICKETS_CACHE_PREFIX)
        return equipment

    async def get_equipment(self, equipment_id: str) -> Equipment:
        equipment = await self._repository.get_equipment(equipment_id)
        if equipment is None:
            raise EquipmentRecordNotFoundError(f"Equipment {equipment_id} not found")
        return equipment

    async def list_equipment(
        self, *, client_id: str | None = None, ticket_id: str | None = None
    ) -> Sequence[Equipment]:
        if self._cache is None:
            return await self._repository.list_equipment(client_id=client_id, ticket_id=ticket_id)
        return await self._cache.get_or_load(
            (*EQUIPMENT_CACHE_PREFIX, client_id, ticket_id),
            lambda: self._repository.list_equipment(client_id=client_id, ticket_id=ticket_id),
        )

    async def delete_equipment(self, equipment_id: str) -> None:
        current = await self.get_equipment(equipment_id)
        if current.ticket_id is not None:
            raise EquipmentInUseError(f"Equipment {current.codigo} is linked to a ticket")
        await self._repository.delete_equipment(equipment_id)
        logger.info("Equipment %s deleted", current.codigo)
        self._invalidate()

    async def _assert_same_client(self, ticket_id: str, client_id: str) -> None:
        ticket_client = await self._repository.get_ticket_client(ticket_id)
        if ticket_client is None:
            raise EquipmentValidationError(f"Ticket {ticket_id} not found")
        if ticket_client != client_id:
            raise EquipmentValidationError("Equipment and ticket must belong to the same client")

    def _invalidate(self, *extra: tuple[str, ...]) -> None:
        if self._cache is not None:
            self._cache.invalidate(EQUIPMENT_CACHE_PREFIX, *extra)


def _linked_listings(equipment: Equipment) -> tuple[tuple[str, ...], ...]:
    return (TICKETS_CACHE_PREFIX,) if equipment.ticket_id is not None else ()


def _as_condition(value: EquipmentCondition | str) -> EquipmentCondition:
    try:
        return EquipmentCondition(value)
    except ValueError as exc:
        raise EquipmentValidationError(f"Unknown equipment condition: {value!r}") from exc


def _strip(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None
