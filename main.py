import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from config import get_settings
from metrics import (
    CardStatement,
    category_distribution,
    financial_overview,
    monthly_series,
    statement_cycle,
)
from migration import DataMigrationService, MigrationCounts, MigrationError
from models import TransactionType
from periods import PERIOD_SLUGS, local_today
from schemas import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    CreditCard,
    MigrationIn,
    ReceivableAmount,
    ReceivedIn,
    Transaction,
)
from services import (
    CollectionService,
    CreditCardService,
    DuplicateIdError,
    NotFoundError,
    ReceivableService,
    TransactionFilters,
    TransactionService,
    sort_for_display,
)
from storage import (
    STORAGE_ERRORS,
    DatabaseStorageProvider,
    LocalStorageProvider,
    StorageProvider,
    create_storage_provider,
)


logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Dashboard")


@app.on_event("startup")
def startup_event():
    if getattr(app.state, "storage", None) is None:
        app.state.storage = create_storage_provider(get_settings())


def get_storage(request: Request) -> StorageProvider:
    return request.app.state.storage


def get_local_source() -> LocalStorageProvider:
    return LocalStorageProvider(get_settings().data_dir)


def get_today() -> date:
    return local_today(get_settings().timezone)


def error_response(message: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def collection_router(
    prefix: str, service_cls: type[CollectionService], record_type: type
) -> APIRouter:
    """CRUD routes for one collection; every mutation rewrites the stored collection."""
    router = APIRouter(prefix=prefix)
    label = prefix.strip("/")

    @router.get("")
    def list_items(storage: StorageProvider = Depends(get_storage)):
        try:
            items = service_cls(storage).load()
        except STORAGE_ERRORS:
            logger.exception(f"list_failed: collection={label}")
            return error_response(f"Failed to fetch {label}")
        return [item.to_document() for item in items]

    @router.post("")
    def create_item(item: record_type, storage: StorageProvider = Depends(get_storage)):
        try:
            created = service_cls(storage).add(item)
        except DuplicateIdError as exc:
            return error_response(str(exc), status_code=409)
        except STORAGE_ERRORS:
            logger.exception(f"create_failed: collection={label} id={item.id}")
            return error_response(f"Failed to create item in {label}")
        return created.to_document()

    @router.put("/{item_id}")
    def update_item(
        item_id: str, item: record_type, storage: StorageProvider = Depends(get_storage)
    ):
        if item.id != item_id:
            return error_response("ID mismatch", status_code=400)
        try:
            updated = service_cls(storage).update(item)
        except NotFoundError as exc:
            return error_response(str(exc), status_code=404)
        except STORAGE_ERRORS:
            logger.exception(f"update_failed: collection={label} id={item_id}")
            return error_response(f"Failed to update item in {label}")
        return updated.to_document()

    @router.delete("/{item_id}")
    def delete_item(item_id: str, storage: StorageProvider = Depends(get_storage)):
        try:
            service_cls(storage).delete(item_id)
        except STORAGE_ERRORS:
            logger.exception(f"delete_failed: collection={label} id={item_id}")
            return error_response(f"Failed to delete item from {label}")
        return {"success": True}

    return router


app.include_router(collection_router("/transactions", TransactionService, Transaction))
app.include_router(collection_router("/credit-cards", CreditCardService, CreditCard))
app.include_router(
    collection_router("/receivables", ReceivableService, ReceivableAmount)
)


@app.post("/receivables/{receivable_id}/received")
def set_receivable_received(
    receivable_id: str,
    payload: ReceivedIn,
    storage: StorageProvider = Depends(get_storage),
):
    try:
        item = ReceivableService(storage).set_received(receivable_id, payload.received)
    except NotFoundError as exc:
        return error_response(str(exc), status_code=404)
    except STORAGE_ERRORS:
        logger.exception(f"toggle_failed: receivable={receivable_id}")
        return error_response("Failed to update receivable")
    return item.to_document()


def migration_success(counts: MigrationCounts) -> dict[str, object]:
    return {
        "status": "success",
        "message": "Data migrated successfully",
        "counts": counts.as_payload(),
    }


def migration_failure(exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "status": "error",
            "message": "Failed to migrate data",
            "error": str(exc),
        },
    )


@app.post("/migrate-data")
def migrate_data(payload: MigrationIn, storage: StorageProvider = Depends(get_storage)):
    try:
        counts = DataMigrationService(storage).migrate(
            transactions=payload.transactions,
            credit_cards=payload.credit_cards,
            receivables=payload.receivables,
        )
    except MigrationError as exc:
        return migration_failure(exc)
    return migration_success(counts)


@app.post("/migrate-local")
def migrate_local(
    storage: StorageProvider = Depends(get_storage),
    source: LocalStorageProvider = Depends(get_local_source),
):
    if not isinstance(storage, DatabaseStorageProvider):
        return JSONResponse(
            status_code=400,
            content={
                "status": "error",
                "message": "Database storage is not configured",
            },
        )
    try:
        counts = DataMigrationService(storage).migrate_from(source)
    except (MigrationError, *STORAGE_ERRORS) as exc:
        logger.exception("migrate_local_failed")
        return migration_failure(exc)
    return migration_success(counts)


def database_unavailable(message: str, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": message, "error": error},
    )


@app.get("/db-test")
def db_test(storage: StorageProvider = Depends(get_storage)):
    message = "Failed to connect to the database"
    if not isinstance(storage, DatabaseStorageProvider):
        return database_unavailable(message, "Database storage is not configured")
    try:
        server_time = storage.server_time()
    except STORAGE_ERRORS as exc:
        logger.exception("db_test_failed")
        return database_unavailable(message, str(exc))
    if isinstance(server_time, datetime):
        server_time = server_time.isoformat()
    return {
        "status": "success",
        "message": "Database connection established",
        "serverTime": str(server_time),
    }


@app.get("/db-init")
def db_init(storage: StorageProvider = Depends(get_storage)):
    message = "Failed to initialize the database"
    if not isinstance(storage, DatabaseStorageProvider):
        return database_unavailable(message, "Database storage is not configured")
    try:
        storage.init_schema()
    except STORAGE_ERRORS as exc:
        logger.exception("db_init_failed")
        return database_unavailable(message, str(exc))
    return {"status": "success", "message": "Database initialized"}


@app.get("/healthz")
def healthz(storage: StorageProvider = Depends(get_storage)):
    return {"status": "ok", "storage": storage.name}


@app.get("/api/categories")
def api_categories(storage: StorageProvider = Depends(get_storage)):
    return {
        "income": INCOME_CATEGORIES,
        "expense": EXPENSE_CATEGORIES,
        "inUse": TransactionService(storage).categories(),
    }


@app.get("/api/overview")
def api_overview(
    storage: StorageProvider = Depends(get_storage), today: date = Depends(get_today)
):
    overview = financial_overview(
        TransactionService(storage).get_all(),
        ReceivableService(storage).get_all(),
        today,
    )
    return {
        "monthIncome": overview.month_income,
        "monthExpenses": overview.month_expenses,
        "monthBalance": overview.month_balance,
        "totalBalance": overview.total_balance,
        "pendingCreditCardPayments": overview.pending_card_payments,
        "pendingReceivables": overview.pending_receivables,
        "projectedBalance": overview.projected_balance,
    }


@app.get("/api/monthly")
def api_monthly(
    months: int = Query(6, ge=1, le=24),
    storage: StorageProvider = Depends(get_storage),
    today: date = Depends(get_today),
):
    buckets = monthly_series(TransactionService(storage).get_all(), today, months=months)
    return {
        "labels": [b.label for b in buckets],
        "incomeData": [b.income for b in buckets],
        "expenseData": [b.expense for b in buckets],
        "balanceData": [b.balance for b in buckets],
    }


@app.get("/api/category-distribution")
def api_category_distribution(
    txn_type: TransactionType = Query(TransactionType.expense, alias="type"),
    storage: StorageProvider = Depends(get_storage),
):
    shares = category_distribution(TransactionService(storage).by_type(txn_type))
    return [
        {"name": share.name, "amount": share.amount, "percent": share.percent}
        for share in shares
    ]


def statement_payload(statement: CardStatement) -> dict[str, object]:
    return {
        "cardId": statement.card_id,
        "previousClosingDate": statement.previous_closing_date.isoformat(),
        "closingDate": statement.closing_date.isoformat(),
        "dueDate": statement.due_date.isoformat(),
        "currentStatementAmount": statement.total,
        "limit": statement.limit,
        "available": statement.available,
        "usagePercentage": statement.usage_percent,
        "transactions": [t.to_document() for t in statement.transactions],
    }


@app.get("/api/credit-cards/{card_id}/statement")
def api_card_statement(
    card_id: str,
    storage: StorageProvider = Depends(get_storage),
    today: date = Depends(get_today),
):
    card = CreditCardService(storage).get_by_id(card_id)
    if card is None:
        raise HTTPException(status_code=404, detail="Credit card not found")
    statement = statement_cycle(
        card, TransactionService(storage).by_credit_card(card_id), today
    )
    return statement_payload(statement)


@app.get("/api/transactions")
def api_transactions(
    q: Optional[str] = None,
    category: Optional[str] = None,
    txn_type: Optional[TransactionType] = Query(None, alias="type"),
    period: Optional[str] = None,
    storage: StorageProvider = Depends(get_storage),
    today: date = Depends(get_today),
):
    if period and period not in PERIOD_SLUGS:
        raise HTTPException(status_code=400, detail=f"Unknown period: {period}")
    filters = TransactionFilters(search=q, category=category, type=txn_type, period=period)
    items = TransactionService(storage).filter(filters, today=today)
    return [txn.to_document() for txn in items]


@app.get("/api/receivables")
def api_receivables(
    status: str = Query("all", pattern="^(all|pending|received)$"),
    storage: StorageProvider = Depends(get_storage),
):
    service = ReceivableService(storage)
    if status == "pending":
        items = service.pending()
    elif status == "received":
        items = service.received()
    else:
        items = service.get_all()
    return [r.to_document() for r in sort_for_display(items)]


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
