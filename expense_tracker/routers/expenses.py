import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response

from expense_tracker.core.errors import PersistenceFailure
from expense_tracker.db.dal import Database
from expense_tracker.models.constants import ALLOWED_METHODS, IDEMPOTENCY_KEY_HEADER
from expense_tracker.models.expense import Expense, ExpenseIn, ExpenseOut
from expense_tracker.services.expense_service import ExpenseService
from expense_tracker.services.money import to_display_string

router = APIRouter(prefix="/expenses", tags=["expenses"])
logger = logging.getLogger("expense_tracker.expenses")

# Dependencies -----------------------------------------------------


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_expense_service(db: Database = Depends(get_db)) -> ExpenseService:
    return ExpenseService(db)


# Helpers ----------------------------------------------------------


def _expense_to_out(expense: Expense) -> ExpenseOut:
    return ExpenseOut(
        id=expense.id,
        amount=to_display_string(expense.amount_minor),
        category=expense.category,
        description=expense.description,
        date=expense.date,
        created_at=expense.created_at,
    )


# Routes -----------------------------------------------------------
@router.post(
    "",
    response_model=ExpenseOut,
    status_code=201,
    summary="Create an expense (idempotent per Idempotency-Key)",
    responses={200: {"model": ExpenseOut, "description": "Replayed existing expense"}},
)
async def create_expense(
    payload: ExpenseIn,
    response: Response,
    idempotency_key: Optional[str] = Header(None, alias=IDEMPOTENCY_KEY_HEADER),
    service: ExpenseService = Depends(get_expense_service),
):
    try:
        result = service.submit(idempotency_key, payload)
    except PersistenceFailure as e:
        logger.exception("failed to persist expense")
        raise HTTPException(status_code=500, detail="Failed to create expense") from e

    if not result.created:
        response.status_code = 200
    return _expense_to_out(result.expense)


@router.get(
    "",
    response_model=List[ExpenseOut],
    summary="List expenses, optionally filtered by category",
)
async def list_expenses_endpoint(
    category: Optional[str] = Query(
        None, description="Case-insensitive substring of the category"
    ),
    sort: Optional[str] = Query(
        None, description="date_desc | created_desc (default)"
    ),
    service: ExpenseService = Depends(get_expense_service),
):
    try:
        expenses = service.list_expenses(category=category, sort=sort)
    except PersistenceFailure as e:
        logger.exception("failed to fetch expenses")
        raise HTTPException(status_code=500, detail="Failed to fetch expenses") from e
    return [_expense_to_out(e) for e in expenses]


@router.api_route(
    "",
    methods=["PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "TRACE"],
    include_in_schema=False,
)
async def expenses_method_not_allowed(request: Request):
    raise HTTPException(
        status_code=405,
        detail=f"Method {request.method} Not Allowed",
        headers={"Allow": ", ".join(ALLOWED_METHODS)},
    )
