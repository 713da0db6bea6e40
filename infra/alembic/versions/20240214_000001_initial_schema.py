"""Initial work order schema."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20240214_000001"
down_revision = None
branch_labels = None
depends_on = None


_CODE_TRIGGERS = (
    ("tickets", "ticket_code_seq", "generate_ticket_code", "TK"),
    ("equipamentos", "equipment_code_seq", "generate_equipment_code", "EQ"),
)


def upgrade() -> None:
    op.create_table(
        "clients",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("cnpj", sa.String(length=14), nullable=False, unique=True),
        sa.Column("razao_social", sa.String(length=255), nullable=False),
        sa.Column("nome_fantasia", sa.String(length=255), nullable=True),
        sa.Column("endereco", sa.Text(), nullable=True),
        sa.Column("cep", sa.String(length=16), nullable=True),
        sa.Column("telefone", sa.String(length=32), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("observacoes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "system_users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default=sa.text("'user'")),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('admin', 'user')", name="system_users_role_check"),
    )

    op.create_table(
        "tickets",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("codigo", sa.String(length=32), nullable=False, unique=True),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("scheduled_for", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default=sa.text("'PENDENTE'")),
        sa.Column("faturado", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("faturado_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("assigned_to", sa.String(length=36), sa.ForeignKey("system_users.id"), nullable=True),
        sa.Column("created_by", sa.String(length=36), sa.ForeignKey("system_users.id"), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('PENDENTE', 'EM_ANDAMENTO', 'CONCLUIDO', 'CANCELADO')",
            name="tickets_status_check",
        ),
    )

    op.create_table(
        "equipamentos",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("codigo", sa.String(length=32), nullable=False, unique=True),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("ticket_id", sa.String(length=36), sa.ForeignKey("tickets.id", ondelete="SET NULL"), nullable=True),
        sa.Column("equipamento", sa.String(length=255), nullable=False),
        sa.Column("numero_serie", sa.String(length=255), nullable=True),
        sa.Column("condicao", sa.String(length=20), nullable=False),
        sa.Column("observacoes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default=sa.text("'RETIRADO'")),
        sa.Column("entregue_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("condicao IN ('NOVO', 'USADO', 'DEFEITO')", name="equipamentos_condicao_check"),
        sa.CheckConstraint("status IN ('RETIRADO', 'ENTREGUE')", name="equipamentos_status_check"),
    )

    op.create_table(
        "ticket_history",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("ticket_id", sa.String(length=36), sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("action_type", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("previous_status", sa.String(length=20), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=36), sa.ForeignKey("system_users.id"), nullable=False),
        sa.Column("previous_assigned_to", sa.String(length=36), sa.ForeignKey("system_users.id"), nullable=True),
        sa.Column("new_assigned_to", sa.String(length=36), sa.ForeignKey("system_users.id"), nullable=True),
        sa.Column("equipment_id", sa.String(length=36), nullable=True),
        sa.Column("equipment_codigo", sa.String(length=32), nullable=True),
        sa.Column("equipment_status", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("ticket_id", "sequence", name="uq_ticket_history_ticket_sequence"),
    )
    op.create_index("ix_ticket_history_ticket_id", "ticket_history", ["ticket_id"])
    op.create_index(
        "ix_ticket_history_ticket_order",
        "ticket_history",
        ["ticket_id", sa.text("created_at DESC"), sa.text("sequence DESC")],
    )

    for table, sequence, function, prefix in _CODE_TRIGGERS:
        op.execute(f"CREATE SEQUENCE IF NOT EXISTS {sequence}")
        op.execute(
            f"""
            CREATE OR REPLACE FUNCTION {function}() RETURNS trigger AS $$
            BEGIN
                IF NEW.codigo IS NULL OR NEW.codigo LIKE 'TEMP-%' THEN
                    NEW.codigo := '{prefix}' || LPAD(nextval('{sequence}')::text, 6, '0');
                END IF;
                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql
            """
        )
        op.execute(
            f"CREATE TRIGGER {function}_trigger BEFORE INSERT ON {table} "
            f"FOR EACH ROW EXECUTE FUNCTION {function}()"
        )


def downgrade() -> None:
    for table, sequence, function, _ in reversed(_CODE_TRIGGERS):
        op.execute(f"DROP TRIGGER IF EXISTS {function}_trigger ON {table}")
        op.execute(f"DROP FUNCTION IF EXISTS {function}()")
        op.execute(f"DROP SEQUENCE IF EXISTS {sequence}")

    op.drop_index("ix_ticket_history_ticket_order", table_name="ticket_history")
    op.drop_index("ix_ticket_history_ticket_id", table_name="ticket_history")
    op.drop_table("ticket_history")
    op.drop_table("equipamentos")
    op.drop_table("tickets")
    op.drop_table("system_users")
    op.drop_table("clients")
