from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class Client:
    """Company the tickets and equipment belong to."""

    id: str
    cnpj: str
    razao_social: str
    nome_fantasia: str | None = None
    endereco: str | None = None
    cep: str | None = None
    telefone: str | None = None
    email: str | None = None
    observacoes: str | None = None
    created_at: datetime | None = None

    @property
    def display_name(self) -> str:
        return self.nome_fantasia or self.razao_social
