import datetime as dt
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator
from pydantic.alias_generators import to_camel

from models import PaymentMethod, TransactionType


INCOME_CATEGORIES = [
    "Salary",
    "Freelance",
    "Investments",
    "Sales",
    "Gifts",
    "Refunds",
    "Other",
]

EXPENSE_CATEGORIES = [
    "Food",
    "Housing",
    "Transportation",
    "Health",
    "Education",
    "Leisure",
    "Clothing",
    "Services",
    "Subscriptions",
    "Taxes",
    "Other",
]


class Record(BaseModel):
    """Base for stored records: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., min_length=1)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Transaction(Record):
    type: TransactionType
    amount: Decimal = Field(..., gt=0)
    date: dt.date
    description: str = Field(..., max_length=200)
    category: str = Field(default="", max_length=100)
    payment_method: PaymentMethod
    credit_card_id: Optional[str] = None
    paid: bool = True

    @model_validator(mode="after")
    def _check_card_reference(self) -> "Transaction":
        if self.payment_method != PaymentMethod.credit_card:
            self.credit_card_id = None
        elif not self.credit_card_id:
            raise ValueError("creditCardId is required for credit card payments")
        if "paid" not in self.model_fields_set:
            self.paid = self.payment_method != PaymentMethod.credit_card
        return self

    @field_serializer("amount", when_used="json")
    def _amount_as_number(self, value: Decimal) -> float:
        return float(value)


class CreditCard(Record):
    name: str = Field(..., min_length=1, max_length=100)
    last_digits: str = Field(..., pattern=r"^[0-9]{4}$")
    limit: Decimal = Field(..., gt=0)
    closing_day: int = Field(..., ge=1, le=31)
    due_day: int = Field(..., ge=1, le=31)

    @field_serializer("limit", when_used="json")
    def _limit_as_number(self, value: Decimal) -> float:
        return float(value)


class ReceivableAmount(Record):
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)
    expected_date: dt.date
    category: str = Field(..., min_length=1, max_length=100)
    received: bool = False

    @field_serializer("amount", when_used="json")
    def _amount_as_number(self, value: Decimal) -> float:
        return float(value)


class ReceivedIn(BaseModel):
    received: bool


class MigrationIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    transactions: Optional[list[Transaction]] = None
    credit_cards: Optional[list[CreditCard]] = None
    receivables: Optional[list[ReceivableAmount]] = None
