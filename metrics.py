"""Dashboard figures derived from the stored collections.

Everything here is a pure function of the records passed in and an explicit
``today``; nothing is cached between calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable

from models import PaymentMethod, TransactionType
from periods import add_months, clamped_date, trailing_months
from schemas import CreditCard, ReceivableAmount, Transaction


OTHER_LABEL = "Other"
ZERO = Decimal("0")


def _total(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, ZERO)


@dataclass(frozen=True)
class MonthBucket:
    year: int
    month: int
    income: Decimal
    expense: Decimal

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def balance(self) -> Decimal:
        return self.income - self.expense


def monthly_series(
    transactions: list[Transaction], today: date, *, months: int = 6
) -> list[MonthBucket]:
    """Income and expense per calendar month for the window ending at today's month."""
    buckets: list[MonthBucket] = []
    for first in trailing_months(today, months):
        in_month = [
            t
            for t in transactions
            if t.date.year == first.year and t.date.month == first.month
        ]
        buckets.append(
            MonthBucket(
                year=first.year,
                month=first.month,
                income=_total(
                    t.amount for t in in_month if t.type == TransactionType.income
                ),
                expense=_total(
                    t.amount for t in in_month if t.type == TransactionType.expense
                ),
            )
        )
    return buckets


@dataclass(frozen=True)
class CategoryShare:
    name: str
    amount: Decimal
    percent: float


def category_distribution(
    transactions: list[Transaction],
    *,
    top_n: int = 5,
    other_label: str = OTHER_LABEL,
) -> list[CategoryShare]:
    """Per-category sums, largest first, with everything past ``top_n`` folded into one bucket.

    Equal sums keep the order in which their categories were first seen.
    """
    sums: dict[str, Decimal] = {}
    for txn in transactions:
        name = txn.category.strip() or other_label
        sums[name] = sums.get(name, ZERO) + txn.amount

    ranked = sorted(sums.items(), key=lambda item: item[1], reverse=True)
    if len(ranked) > top_n:
        # the uncategorized group joins the tail so only one bucket is named other_label
        head = [item for item in ranked if item[0] != other_label][:top_n]
        kept = {name for name, _ in head}
        collapsed = _total(amount for name, amount in ranked if name not in kept)
        ranked = head + [(other_label, collapsed)]

    grand_total = _total(amount for _, amount in ranked)
    return [
        CategoryShare(
            name=name,
            amount=amount,
            percent=float(amount / grand_total * 100) if grand_total else 0.0,
        )
        for name, amount in ranked
    ]


@dataclass(frozen=True)
class CardStatement:
    card_id: str
    previous_closing_date: date
    closing_date: date
    due_date: date
    total: Decimal
    limit: Decimal
    usage_percent: float
    transactions: list[Transaction] = field(default_factory=list)

    @property
    def available(self) -> Decimal:
        return self.limit - self.total


def statement_cycle(
    card: CreditCard, transactions: list[Transaction], today: date
) -> CardStatement:
    """Resolve the card's upcoming (or just closed) statement as of ``today``.

    A statement covers ``previous_closing < date <= closing``. Days past the
    end of a month (e.g. closing day 31 in April) snap to the month's last day.
    """
    closing = clamped_date(today.year, today.month, card.closing_day)
    if today > closing:
        closing = add_months(closing, 1, day=card.closing_day)
    previous_closing = add_months(closing, -1, day=card.closing_day)

    items = [
        t
        for t in transactions
        if t.type == TransactionType.expense
        and t.credit_card_id == card.id
        and previous_closing < t.date <= closing
    ]
    items.sort(key=lambda t: t.date, reverse=True)
    total = _total(t.amount for t in items)

    due = clamped_date(closing.year, closing.month, card.due_day)
    if due < closing:
        due = add_months(due, 1, day=card.due_day)

    usage = float(total / card.limit * 100) if card.limit > 0 else 0.0
    return CardStatement(
        card_id=card.id,
        previous_closing_date=previous_closing,
        closing_date=closing,
        due_date=due,
        total=total,
        limit=card.limit,
        usage_percent=usage,
        transactions=items,
    )


@dataclass(frozen=True)
class FinancialOverview:
    month_income: Decimal
    month_expenses: Decimal
    total_balance: Decimal
    pending_card_payments: Decimal
    pending_receivables: Decimal

    @property
    def month_balance(self) -> Decimal:
        return self.month_income - self.month_expenses

    @property
    def projected_balance(self) -> Decimal:
        return (
            self.total_balance - self.pending_card_payments + self.pending_receivables
        )


def financial_overview(
    transactions: list[Transaction],
    receivables: list[ReceivableAmount],
    today: date,
) -> FinancialOverview:
    this_month = [
        t
        for t in transactions
        if t.date.year == today.year and t.date.month == today.month
    ]
    income = _total(t.amount for t in transactions if t.type == TransactionType.income)
    expenses = _total(
        t.amount for t in transactions if t.type == TransactionType.expense
    )
    return FinancialOverview(
        month_income=_total(
            t.amount for t in this_month if t.type == TransactionType.income
        ),
        month_expenses=_total(
            t.amount for t in this_month if t.type == TransactionType.expense
        ),
        total_balance=income - expenses,
        pending_card_payments=_total(
            t.amount
            for t in transactions
            if t.type == TransactionType.expense
            and t.payment_method == PaymentMethod.credit_card
            and not t.paid
        ),
        pending_receivables=_total(r.amount for r in receivables if not r.received),
    )
