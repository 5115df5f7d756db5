from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Optional

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine

from models import EntityKind, PaymentMethod, TransactionType
from schemas import CreditCard, ReceivableAmount, Transaction
from services import (
    CreditCardService,
    DuplicateIdError,
    NotFoundError,
    ReceivableService,
    TransactionFilters,
    TransactionService,
    sort_for_display,
)
from storage import DatabaseStorageProvider, LocalStorageProvider, StorageProvider


def make_provider() -> DatabaseStorageProvider:
    provider = DatabaseStorageProvider(create_engine("sqlite:///:memory:"))
    provider.init_schema()
    return provider


def txn(txn_id: str, **overrides) -> Transaction:
    data = {
        "id": txn_id,
        "type": "expense",
        "amount": "25.50",
        "date": "2024-03-10",
        "description": "Groceries",
        "category": "Food",
        "paymentMethod": "cash",
    }
    data.update(overrides)
    return Transaction.model_validate(data)


def receivable(item_id: str, expected: date, received: bool = False) -> ReceivableAmount:
    return ReceivableAmount(
        id=item_id,
        description="Invoice",
        amount=Decimal("100"),
        expected_date=expected,
        category="Freelance",
        received=received,
    )


class BrokenProvider(StorageProvider):
    name = "broken"

    def read(self, kind: EntityKind) -> Optional[list[dict]]:
        raise OSError("store unreachable")

    def write(self, kind: EntityKind, collection: list[dict]) -> None:
        raise OSError("store unreachable")


def test_add_then_get_all_contains_exactly_the_item() -> None:
    service = TransactionService(make_provider())
    item = txn("t1")

    assert service.add(item) is item

    stored = service.get_all()
    assert [t.to_document() for t in stored] == [item.to_document()]
    assert service.get_by_id("t1").to_document() == item.to_document()
    assert service.get_by_id("missing") is None


def test_add_rejects_duplicate_id() -> None:
    service = TransactionService(make_provider())
    service.add(txn("t1"))

    with pytest.raises(DuplicateIdError):
        service.add(txn("t1", description="Other"))

    assert len(service.get_all()) == 1


def test_update_replaces_matching_record() -> None:
    service = TransactionService(make_provider())
    service.add(txn("t1"))
    service.add(txn("t2"))

    service.update(txn("t2", amount="99"))

    amounts = {t.id: t.amount for t in service.get_all()}
    assert amounts == {"t1": Decimal("25.50"), "t2": Decimal("99")}


def test_update_of_unknown_id_fails_and_leaves_collection_unchanged() -> None:
    provider = make_provider()
    service = TransactionService(provider)
    service.add(txn("t1"))
    before = provider.read(EntityKind.transactions)

    with pytest.raises(NotFoundError):
        service.update(txn("nope"))

    assert provider.read(EntityKind.transactions) == before


def test_delete_of_unknown_id_leaves_stored_bytes_unchanged(tmp_path: Path) -> None:
    service = CreditCardService(LocalStorageProvider(tmp_path))
    service.add(
        CreditCard(
            id="c1",
            name="Visa",
            last_digits="1234",
            limit=Decimal("1000"),
            closing_day=5,
            due_day=12,
        )
    )
    path = tmp_path / "finance-app-credit-cards.json"
    before = path.read_bytes()

    service.delete("missing")

    assert path.read_bytes() == before


def test_delete_removes_every_record_with_the_id() -> None:
    service = TransactionService(make_provider())
    service.add(txn("t1"))
    service.add(txn("t2"))

    service.delete("t1")

    assert [t.id for t in service.get_all()] == ["t2"]


def test_get_all_on_empty_store_is_empty_list(tmp_path: Path) -> None:
    assert TransactionService(LocalStorageProvider(tmp_path)).get_all() == []


def test_get_all_degrades_to_empty_but_mutations_propagate() -> None:
    service = ReceivableService(BrokenProvider())

    assert service.get_all() == []
    with pytest.raises(OSError):
        service.add(receivable("r1", date(2024, 5, 1)))
    with pytest.raises(OSError):
        service.load()


def test_card_reference_only_kept_for_card_payments() -> None:
    cash = txn("t1", creditCardId="c1")
    assert cash.credit_card_id is None
    assert cash.paid is True
    assert "creditCardId" not in cash.to_document()

    card = txn("t2", paymentMethod="credit_card", creditCardId="c1")
    assert card.credit_card_id == "c1"
    assert card.paid is False

    settled = txn("t3", paymentMethod="credit_card", creditCardId="c1", paid=True)
    assert settled.paid is True

    with pytest.raises(ValidationError):
        txn("t4", paymentMethod="credit_card")


def test_record_shape_constraints() -> None:
    with pytest.raises(ValidationError):
        txn("t1", amount="0")
    with pytest.raises(ValidationError):
        CreditCard(
            id="c1",
            name="Visa",
            last_digits="12a4",
            limit=Decimal("10"),
            closing_day=5,
            due_day=12,
        )
    with pytest.raises(ValidationError):
        CreditCard(
            id="c1",
            name="Visa",
            last_digits="1234",
            limit=Decimal("10"),
            closing_day=32,
            due_day=12,
        )


def test_transaction_filters_and_newest_first_order() -> None:
    service = TransactionService(make_provider())
    service.add(txn("t1", date="2024-03-01", description="Market run"))
    service.add(
        txn("t2", date="2024-03-15", type="income", category="Salary", description="Pay")
    )
    service.add(txn("t3", date="2024-02-20", description="Bus", category="Transportation"))
    service.add(txn("t4", date="2023-12-31", description="Dinner"))
    today = date(2024, 3, 20)

    everything = service.filter(TransactionFilters(), today=today)
    assert [t.id for t in everything] == ["t2", "t1", "t3", "t4"]

    this_month = service.filter(TransactionFilters(period="this_month"), today=today)
    assert [t.id for t in this_month] == ["t2", "t1"]

    last_month = service.filter(TransactionFilters(period="last_month"), today=today)
    assert [t.id for t in last_month] == ["t3"]

    this_year = service.filter(TransactionFilters(period="this_year"), today=today)
    assert {t.id for t in this_year} == {"t1", "t2", "t3"}

    searched = service.filter(TransactionFilters(search="TRANSPORT"), today=today)
    assert [t.id for t in searched] == ["t3"]

    incomes = service.filter(
        TransactionFilters(type=TransactionType.income), today=today
    )
    assert [t.id for t in incomes] == ["t2"]

    food = service.filter(TransactionFilters(category="Food"), today=today)
    assert [t.id for t in food] == ["t1", "t4"]

    assert service.categories() == ["Food", "Salary", "Transportation"]


def test_by_credit_card_keeps_orphans_when_card_is_deleted() -> None:
    provider = make_provider()
    cards = CreditCardService(provider)
    txns = TransactionService(provider)
    cards.add(
        CreditCard(
            id="c1",
            name="Visa",
            last_digits="1234",
            limit=Decimal("1000"),
            closing_day=5,
            due_day=12,
        )
    )
    txns.add(txn("t1", paymentMethod="credit_card", creditCardId="c1"))

    cards.delete("c1")

    assert cards.get_all() == []
    orphan = txns.by_credit_card("c1")
    assert [t.id for t in orphan] == ["t1"]
    assert orphan[0].payment_method == PaymentMethod.credit_card


def test_receivables_toggle_and_display_order() -> None:
    service = ReceivableService(make_provider())
    service.add(receivable("r1", date(2024, 5, 1)))
    service.add(receivable("r2", date(2024, 4, 1), received=True))
    service.add(receivable("r3", date(2024, 3, 1)))

    updated = service.set_received("r1", True)

    assert updated.received is True
    assert [r.id for r in service.pending()] == ["r3"]
    assert {r.id for r in service.received()} == {"r1", "r2"}
    assert [r.id for r in sort_for_display(service.get_all())] == ["r3", "r2", "r1"]

    with pytest.raises(NotFoundError):
        service.set_received("missing", True)
