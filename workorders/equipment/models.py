from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class EquipmentCondition(str, Enum):
    """Condition an item was in when it was picked up."""

    NEW = "NOVO"
    USED = "USADO"
    DEFECTIVE = "DEFEITO"


class EquipmentStatus(str, Enum):
    """Delivery state; only ever moves from WITHDRAWN to DELIVERED."""

    WITHDRAWN = "RETIRADO"
    DELIVERED = "ENTREGUE"


@dataclass(slots=True)
class Equipment:
    id: str
    codigo: str
    client_id: str
    ticket_id: str | None
    equipamento: str
    numero_serie: str | None
    condicao: EquipmentCondition
    observacoes: str | None
    status: EquipmentStatus
    entregue_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @property
    def delivered(self) -> bool:
        return self.status == EquipmentStatus.DELIVERED
