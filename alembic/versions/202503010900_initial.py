"""document tables for transactions, credit cards and receivables

Revision ID: 202503010900
Revises:
Create Date: 2025-03-01 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "202503010900"
down_revision = None
branch_labels = None
depends_on = None


DOCUMENT_TABLES = ("transactions", "credit_cards", "receivables")


def upgrade():
    document = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
    for name in DOCUMENT_TABLES:
        op.create_table(
            name,
            sa.Column("id", sa.Text(), primary_key=True),
            sa.Column("data", document, nullable=False),
        )


def downgrade():
    for name in reversed(DOCUMENT_TABLES):
        op.drop_table(name)
