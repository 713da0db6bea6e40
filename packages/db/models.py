"""SQLModel table definitions for the work order data layer."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    """Generate a random UUID string."""

    return str(uuid.uuid4())


class ClientTable(SQLModel, table=True):
    """Companies served by the field-service team."""

    __tablename__ = "clients"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    cnpj: str = Field(sa_column=Column(String(14), nullable=False, unique=True))
    razao_social: str = Field(sa_column=Column(String(255), nullable=False))
    nome_fantasia: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    endereco: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    cep: str | None = Field(default=None, sa_column=Column(String(16), nullable=True))
    telefone: str | None = Field(default=None, sa_column=Column(String(32), nullable=True))
    email: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    observacoes: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class SystemUserTable(SQLModel, table=True):
    """Internal technicians and administrators."""

    __tablename__ = "system_users"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    name: str = Field(sa_column=Column(String(255), nullable=False))
    email: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    role: str = Field(default="user", sa_column=Column(String(20), nullable=False, default="user"))
    active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketTable(SQLModel, table=True):
    """Service requests tracked through the status lifecycle."""

    __tablename__ = "tickets"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    codigo: str = Field(sa_column=Column(String(32), nullable=False, unique=True))
    client_id: str = Field(
        sa_column=Column(String(36), ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False)
    )
    description: str = Field(sa_column=Column(Text, nullable=False))
    scheduled_for: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    status: str = Field(sa_column=Column(String(20), nullable=False))
    faturado: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    faturado_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    assigned_to: str | None = Field(
        default=None,
        sa_column=Column(String(36), ForeignKey("system_users.id"), nullable=True),
    )
    created_by: str = Field(sa_column=Column(String(36), ForeignKey("system_users.id"), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class EquipmentTable(SQLModel, table=True):
    """Physical items picked up from a client, optionally tied to a ticket."""

    __tablename__ = "equipamentos"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    codigo: str = Field(sa_column=Column(String(32), nullable=False, unique=True))
    client_id: str = Field(
        sa_column=Column(String(36), ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False)
    )
    ticket_id: str | None = Field(
        default=None,
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="SET NULL"), nullable=True),
    )
    equipamento: str = Field(sa_column=Column(String(255), nullable=False))
    numero_serie: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    condicao: str = Field(sa_column=Column(String(20), nullable=False))
    observacoes: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    status: str = Field(default="RETIRADO", sa_column=Column(String(20), nullable=False, default="RETIRADO"))
    entregue_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketHistoryTable(SQLModel, table=True):
    """Append-only ledger of every action taken on a ticket."""

    __tablename__ = "ticket_history"
    __table_args__ = (UniqueConstraint("ticket_id", "sequence", name="uq_ticket_history_ticket_sequence"),)

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    sequence: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    action_type: str = Field(sa_column=Column(String(32), nullable=False))
    status: str = Field(sa_column=Column(String(20), nullable=False))
    previous_status: str | None = Field(default=None, sa_column=Column(String(20), nullable=True))
    reason: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_by: str = Field(sa_column=Column(String(36), ForeignKey("system_users.id"), nullable=False))
    previous_assigned_to: str | None = Field(
        default=None, sa_column=Column(String(36), ForeignKey("system_users.id"), nullable=True)
    )
    new_assigned_to: str | None = Field(
        default=None, sa_column=Column(String(36), ForeignKey("system_users.id"), nullable=True)
    )
    equipment_id: str | None = Field(default=None, sa_column=Column(String(36), nullable=True))
    equipment_codigo: str | None = Field(default=None, sa_column=Column(String(32), nullable=True))
    equipment_status: str | None = Field(default=None, sa_column=Column(String(20), nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
