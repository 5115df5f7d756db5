from enum import Enum
from typing import Any

from sqlalchemy import JSON, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class PaymentMethod(str, Enum):
    cash = "cash"
    bank = "bank"
    credit_card = "credit_card"


class EntityKind(str, Enum):
    transactions = "transactions"
    credit_cards = "credit_cards"
    receivables = "receivables"

    @property
    def storage_key(self) -> str:
        return LOCAL_STORAGE_KEYS[self]

    @property
    def table(self) -> type["DocumentRow"]:
        return DOCUMENT_TABLES[self]


DOCUMENT_TYPE = JSON().with_variant(JSONB(), "postgresql")


class DocumentRow:
    """A whole record stored as one opaque JSON document keyed by its id."""

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(DOCUMENT_TYPE, nullable=False)


class TransactionRow(Base, DocumentRow):
    __tablename__ = "transactions"


class CreditCardRow(Base, DocumentRow):
    __tablename__ = "credit_cards"


class ReceivableRow(Base, DocumentRow):
    __tablename__ = "receivables"


LOCAL_STORAGE_KEYS: dict[EntityKind, str] = {
    EntityKind.transactions: "finance-app-transactions",
    EntityKind.credit_cards: "finance-app-credit-cards",
    EntityKind.receivables: "finance-app-receivables",
}

DOCUMENT_TABLES: dict[EntityKind, type[DocumentRow]] = {
    EntityKind.transactions: TransactionRow,
    EntityKind.credit_cards: CreditCardRow,
    EntityKind.receivables: ReceivableRow,
}
