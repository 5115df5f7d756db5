from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Generic, Optional, TypeVar

from pydantic import TypeAdapter

from models import EntityKind, TransactionType
from periods import resolve_period
from schemas import CreditCard, ReceivableAmount, Record, Transaction
from storage import STORAGE_ERRORS, StorageProvider


logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=Record)


class NotFoundError(ValueError):
    pass


class DuplicateIdError(ValueError):
    pass


class CollectionService(Generic[RecordT]):
    """CRUD over one entity kind, always reading and writing the whole collection.

    Every mutation is read-modify-write with no version check, so two
    concurrent mutations can lose one of the updates.
    """

    def __init__(
        self,
        provider: StorageProvider,
        kind: EntityKind,
        record_type: type[RecordT],
    ) -> None:
        self.provider = provider
        self.kind = kind
        self.record_type = record_type
        self._adapter = TypeAdapter(list[record_type])

    def load(self) -> list[RecordT]:
        """Read the collection, letting store failures propagate."""
        documents = self.provider.read(self.kind)
        if documents is None:
            return []
        return self._adapter.validate_python(documents)

    def _store(self, items: list[RecordT]) -> None:
        self.provider.write(self.kind, [item.to_document() for item in items])

    def get_all(self) -> list[RecordT]:
        try:
            return self.load()
        except STORAGE_ERRORS:
            logger.exception(f"collection_read_failed: kind={self.kind.value}")
            return []

    def get_by_id(self, item_id: str) -> Optional[RecordT]:
        for item in self.get_all():
            if item.id == item_id:
                return item
        return None

    def add(self, item: RecordT) -> RecordT:
        items = self.load()
        if any(existing.id == item.id for existing in items):
            raise DuplicateIdError(f"{self.kind.value}: id {item.id} already exists")
        items.append(item)
        self._store(items)
        return item

    def update(self, item: RecordT) -> RecordT:
        items = self.load()
        for idx, existing in enumerate(items):
            if existing.id == item.id:
                items[idx] = item
                self._store(items)
                return item
        raise NotFoundError(f"{self.kind.value}: id {item.id} not found")

    def delete(self, item_id: str) -> None:
        items = self.load()
        remaining = [item for item in items if item.id != item_id]
        if len(remaining) == len(items):
            return
        self._store(remaining)


@dataclass
class TransactionFilters:
    search: Optional[str] = None
    category: Optional[str] = None
    type: Optional[TransactionType] = None
    period: Optional[str] = None


def newest_first(transactions: list[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda txn: txn.date, reverse=True)


class TransactionService(CollectionService[Transaction]):
    def __init__(self, provider: StorageProvider) -> None:
        super().__init__(provider, EntityKind.transactions, Transaction)

    def by_credit_card(self, credit_card_id: str) -> list[Transaction]:
        return [t for t in self.get_all() if t.credit_card_id == credit_card_id]

    def by_type(self, txn_type: TransactionType) -> list[Transaction]:
        return [t for t in self.get_all() if t.type == txn_type]

    def categories(self) -> list[str]:
        seen: dict[str, None] = {}
        for txn in self.get_all():
            if txn.category:
                seen.setdefault(txn.category, None)
        return list(seen)

    def filter(self, filters: TransactionFilters, *, today: date) -> list[Transaction]:
        period = resolve_period(filters.period, today=today)
        needle = (filters.search or "").strip().lower()
        out: list[Transaction] = []
        for txn in self.get_all():
            if needle and not (
                needle in txn.description.lower() or needle in txn.category.lower()
            ):
                continue
            if filters.category and txn.category != filters.category:
                continue
            if filters.type and txn.type != filters.type:
                continue
            if not period.contains(txn.date):
                continue
            out.append(txn)
        return newest_first(out)


class CreditCardService(CollectionService[CreditCard]):
    def __init__(self, provider: StorageProvider) -> None:
        super().__init__(provider, EntityKind.credit_cards, CreditCard)


class ReceivableService(CollectionService[ReceivableAmount]):
    def __init__(self, provider: StorageProvider) -> None:
        super().__init__(provider, EntityKind.receivables, ReceivableAmount)

    def pending(self) -> list[ReceivableAmount]:
        return [r for r in self.get_all() if not r.received]

    def received(self) -> list[ReceivableAmount]:
        return [r for r in self.get_all() if r.received]

    def set_received(self, receivable_id: str, received: bool) -> ReceivableAmount:
        for item in self.load():
            if item.id == receivable_id:
                return self.update(item.model_copy(update={"received": received}))
        raise NotFoundError(f"{self.kind.value}: id {receivable_id} not found")


def sort_for_display(receivables: list[ReceivableAmount]) -> list[ReceivableAmount]:
    """Pending before received, then by expected date."""
    return sorted(receivables, key=lambda r: (r.received, r.expected_date))
