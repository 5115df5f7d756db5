from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from models import EntityKind
from schemas import CreditCard, ReceivableAmount, Record, Transaction
from services import CreditCardService, ReceivableService, TransactionService
from storage import STORAGE_ERRORS, StorageProvider


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationCounts:
    transactions: int
    credit_cards: int
    receivables: int

    def as_payload(self) -> dict[str, int]:
        return {
            "transactions": self.transactions,
            "creditCards": self.credit_cards,
            "receivables": self.receivables,
        }


class MigrationError(RuntimeError):
    def __init__(self, kind: EntityKind, completed: list[EntityKind]) -> None:
        done = ", ".join(k.value for k in completed) or "none"
        super().__init__(f"Migration failed on {kind.value} (already migrated: {done})")
        self.kind = kind
        self.completed = completed


class DataMigrationService:
    """Replaces every collection in ``destination`` with the supplied records.

    All three destination collections are emptied first, then filled one
    kind after another. A failure stops the run: kinds already filled stay
    in place and kinds not reached stay empty.
    """

    def __init__(self, destination: StorageProvider) -> None:
        self.destination = destination

    def migrate(
        self,
        transactions: Optional[Sequence[Transaction]] = None,
        credit_cards: Optional[Sequence[CreditCard]] = None,
        receivables: Optional[Sequence[ReceivableAmount]] = None,
    ) -> MigrationCounts:
        plan: list[tuple[EntityKind, Sequence[Record]]] = [
            (EntityKind.transactions, transactions or []),
            (EntityKind.credit_cards, credit_cards or []),
            (EntityKind.receivables, receivables or []),
        ]
        completed: list[EntityKind] = []
        counts: dict[EntityKind, int] = {}
        for kind, _ in plan:
            try:
                self.destination.write(kind, [])
            except STORAGE_ERRORS as exc:
                logger.exception(f"migration_truncate_failed: kind={kind.value}")
                raise MigrationError(kind, []) from exc
        logger.info("migration_truncated: kinds=" + ",".join(k.value for k, _ in plan))

        for kind, records in plan:
            if not records:
                completed.append(kind)
                counts[kind] = 0
                continue
            logger.info(f"migration_step: kind={kind.value} records={len(records)}")
            try:
                self.destination.write(kind, [r.to_document() for r in records])
            except STORAGE_ERRORS as exc:
                logger.exception(f"migration_failed: kind={kind.value}")
                raise MigrationError(kind, list(completed)) from exc
            completed.append(kind)
            counts[kind] = len(records)

        result = MigrationCounts(
            transactions=counts[EntityKind.transactions],
            credit_cards=counts[EntityKind.credit_cards],
            receivables=counts[EntityKind.receivables],
        )
        logger.info(f"migration_done: counts={result.as_payload()}")
        return result

    def migrate_from(self, source: StorageProvider) -> MigrationCounts:
        return self.migrate(
            transactions=TransactionService(source).load(),
            credit_cards=CreditCardService(source).load(),
            receivables=ReceivableService(source).load(),
        )
