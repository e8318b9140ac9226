"""Create flats and reservas with overlap exclusion constraint

Revision ID: 3f9c2a71d0b4
Revises:
Create Date: 2025-10-02 11:20:14.318402

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3f9c2a71d0b4"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Upgrade schema."""
    # gen_random_uuid() is core since PG13; btree_gist gives "=" on bigint in GiST
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "flats",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("nome", sa.Text(), nullable=False),
        sa.Column("preco_noite", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_hospedes", sa.Integer(), nullable=True),
    )

    op.create_table(
        "reservas",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "flat_id",
            sa.BigInteger(),
            sa.ForeignKey("flats.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("flat_slug", sa.Text(), nullable=False),
        sa.Column("flat_nome", sa.Text(), nullable=False),
        sa.Column("checkin", sa.Date(), nullable=False),
        sa.Column("checkout", sa.Date(), nullable=False),
        sa.Column("noites", sa.Integer(), nullable=False),
        sa.Column("preco_noite", sa.Numeric(10, 2), nullable=False),
        sa.Column("total", sa.Numeric(10, 2), nullable=False),
        sa.Column("hospede_nome", sa.Text(), nullable=False),
        sa.Column("hospede_email", sa.Text(), nullable=False),
        sa.Column("hospede_telefone", sa.Text(), nullable=False),
        sa.Column("hospedes", sa.Integer(), nullable=False),
        sa.Column("hora_chegada", sa.Text(), nullable=False),
        sa.Column("obs", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="pendente"),
        sa.Column("expira_em", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmacao_enviada_em", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint("checkout > checkin", name="reservas_checkout_after_checkin"),
    )
    op.create_index("ix_reservas_flat_id", "reservas", ["flat_id"])
    op.create_index("ix_reservas_status", "reservas", ["status"])

    # Confirmed stays of one flat may never overlap. Pending holds are left to
    # the application check: whether they block depends on now().
    op.execute(
        """
        ALTER TABLE reservas
        ADD CONSTRAINT reservas_no_overlap
        EXCLUDE USING gist (
            flat_id WITH =,
            daterange(checkin, checkout, '[)') WITH &&
        )
        WHERE (status IN ('confirmada', 'pago'))
        """
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.execute("ALTER TABLE reservas DROP CONSTRAINT IF EXISTS reservas_no_overlap")
    op.drop_index("ix_reservas_status", table_name="reservas")
    op.drop_index("ix_reservas_flat_id", table_name="reservas")
    op.drop_table("reservas")
    op.drop_table("flats")
