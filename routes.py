"""API Routes for expenses, consultants and reports"""
import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import ValidationError

from database import CONSULTANTS_COLLECTION, EXPENSES_COLLECTION, ConnectionManager
from models.categories import CATEGORIES
from models.consultant import Consultant, ConsultantCreate, ConsultantDeleteResult, ConsultantUpdate
from models.expense import (
    BulkDeleteRequest,
    BulkDeleteResult,
    BulkExpensesRequest,
    Expense,
    ExpenseCreate,
    ExpenseUpdate,
)
from models.report import CategoryGroup, ExpenseReport
from services import consultants_service, expenses_service, reports_service
from services.errors import BulkValidationError, format_validation_errors

router = APIRouter()
logger = logging.getLogger(__name__)


# --- Dependency Functions ---
def get_connection_manager(request: Request) -> ConnectionManager:
    return request.app.state.db


def _collection(manager: ConnectionManager, name: str) -> AsyncIOMotorCollection:
    try:
        return manager.collection(name)
    except ConnectionError:
        logger.error(f"Collection '{name}' requested while database is {manager.status.value}.")
        raise HTTPException(status_code=503, detail="Database service not available.")


def get_expenses_collection(manager: Annotated[ConnectionManager, Depends(get_connection_manager)]) -> AsyncIOMotorCollection:
    """Dependency to get the MongoDB expenses collection; 503 while the database is unreachable."""
    return _collection(manager, EXPENSES_COLLECTION)


def get_consultants_collection(manager: Annotated[ConnectionManager, Depends(get_connection_manager)]) -> AsyncIOMotorCollection:
    return _collection(manager, CONSULTANTS_COLLECTION)


ExpensesCollectionDep = Annotated[AsyncIOMotorCollection, Depends(get_expenses_collection)]
ConsultantsCollectionDep = Annotated[AsyncIOMotorCollection, Depends(get_consultants_collection)]


def to_http_error(error: Exception, action: str) -> HTTPException:
    """Maps a service-layer exception to the single HTTP error reported for it."""
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, BulkValidationError):
        logger.warning(f"Validation failed while {action}: {error}")
        return HTTPException(status_code=400, detail={"message": str(error), "errors": error.errors})
    if isinstance(error, ValidationError):
        logger.warning(f"Validation failed while {action}: {error.error_count()} errors")
        return HTTPException(status_code=400, detail={"message": "Validation failed", "errors": format_validation_errors(error)})
    if isinstance(error, ValueError):
        logger.warning(f"Rejected request while {action}: {error}")
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, LookupError):
        logger.info(f"Not found while {action}: {error}")
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ConnectionError):
        logger.error(f"Connection error while {action}: {error}")
        return HTTPException(status_code=503, detail="Database service not available.")
    logger.exception(f"Unexpected error while {action}: {error}")
    return HTTPException(status_code=500, detail=f"An unexpected server error occurred while {action}.")


# --- Categories ---

@router.get("/categories", response_model=List[str], summary="List Expense Categories")
async def get_categories() -> List[str]:
    return CATEGORIES


# --- Expenses ---

@router.post("/expenses", status_code=201, response_model=Expense, response_model_exclude_none=True, summary="Create Expense")
async def create_expense(collection: ExpensesCollectionDep, payload: ExpenseCreate) -> Expense:
    logger.info(f"POST /expenses called: {payload.category.value} {payload.amount}")
    try:
        return await expenses_service.create_expense(collection, payload)
    except Exception as e:
        raise to_http_error(e, "creating expense")


@router.post("/expenses/bulk", status_code=201, response_model=List[Expense], response_model_exclude_none=True,
             summary="Create Expenses In Bulk", description="Validates every item first; either all expenses are stored or none.")
async def create_expenses_bulk(collection: ExpensesCollectionDep, payload: BulkExpensesRequest) -> List[Expense]:
    logger.info(f"POST /expenses/bulk called with {len(payload.expenses)} items")
    try:
        return await expenses_service.add_multiple_expenses(collection, payload.expenses)
    except Exception as e:
        raise to_http_error(e, "creating expenses in bulk")


@router.get("/expenses", response_model=List[Expense], response_model_exclude_none=True,
            summary="Get All Expenses", description="Retrieves all expense records, newest first.")
async def get_expenses(collection: ExpensesCollectionDep) -> List[Expense]:
    logger.info("GET /expenses endpoint called.")
    try:
        return await expenses_service.get_all_expenses(collection)
    except Exception as e:
        raise to_http_error(e, "fetching expenses")


@router.get("/expenses/monthly", response_model=List[CategoryGroup], response_model_exclude_none=True,
            summary="Category Totals For A Date Range")
async def get_monthly_expenses(
    collection: ExpensesCollectionDep,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
) -> List[CategoryGroup]:
    logger.info(f"GET /expenses/monthly called with startDate={start_date} endDate={end_date}")
    try:
        start, end = reports_service.parse_date_range(start_date, end_date)
        return await reports_service.monthly_aggregate(collection, start, end)
    except Exception as e:
        raise to_http_error(e, "aggregating expenses")


@router.get("/expenses/summary", response_model=ExpenseReport, response_model_exclude_none=True,
            summary="Profit Summary For A Date Range")
async def get_expense_summary(
    request: Request,
    collection: ExpensesCollectionDep,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
) -> ExpenseReport:
    logger.info(f"GET /expenses/summary called with startDate={start_date} endDate={end_date}")
    try:
        start, end = reports_service.parse_date_range(start_date, end_date)
        groups = await reports_service.monthly_aggregate(collection, start, end)
        excluded = request.app.state.settings.summary_excluded_categories
        return ExpenseReport(groups=groups, summary=reports_service.summarize(groups, excluded))
    except Exception as e:
        raise to_http_error(e, "summarizing expenses")


@router.get("/expenses/{expense_id}", response_model=Expense, response_model_exclude_none=True, summary="Get Expense")
async def get_expense(collection: ExpensesCollectionDep, expense_id: str) -> Expense:
    try:
        return await expenses_service.get_expense(collection, expense_id)
    except Exception as e:
        raise to_http_error(e, f"fetching expense {expense_id}")


@router.put("/expenses/{expense_id}", response_model=Expense, response_model_exclude_none=True, summary="Update Expense")
async def update_expense(collection: ExpensesCollectionDep, expense_id: str, changes: ExpenseUpdate) -> Expense:
    logger.info(f"PUT /expenses/{expense_id} called.")
    try:
        return await expenses_service.update_expense(collection, expense_id, changes)
    except Exception as e:
        raise to_http_error(e, f"updating expense {expense_id}")


@router.delete("/expenses/{expense_id}", response_model=Expense, response_model_exclude_none=True, summary="Delete Expense")
async def delete_expense(collection: ExpensesCollectionDep, expense_id: str) -> Expense:
    logger.info(f"DELETE /expenses/{expense_id} called.")
    try:
        return await expenses_service.delete_expense(collection, expense_id)
    except Exception as e:
        raise to_http_error(e, f"deleting expense {expense_id}")


@router.delete("/expenses", response_model=BulkDeleteResult, summary="Delete Expenses By Id")
async def delete_expenses(collection: ExpensesCollectionDep, payload: Annotated[BulkDeleteRequest, Body(...)]) -> BulkDeleteResult:
    logger.warning(f"DELETE /expenses called for {len(payload.ids)} ids.")
    try:
        deleted = await expenses_service.delete_expenses(collection, payload.ids)
        return BulkDeleteResult(message=f"Deleted {deleted} expenses.", deleted_count=deleted)
    except Exception as e:
        raise to_http_error(e, "deleting expenses")


# --- Consultants ---

@router.get("/consultants", response_model=List[Consultant], response_model_exclude_none=True, summary="List Consultants")
async def get_consultants(collection: ConsultantsCollectionDep, active: Optional[bool] = Query(None)) -> List[Consultant]:
    logger.info(f"GET /consultants called (active={active}).")
    try:
        return await consultants_service.get_consultants(collection, active=active)
    except Exception as e:
        raise to_http_error(e, "fetching consultants")


@router.post("/consultants", status_code=201, response_model=Consultant, response_model_exclude_none=True, summary="Add Consultant")
async def create_consultant(collection: ConsultantsCollectionDep, payload: ConsultantCreate) -> Consultant:
    logger.info(f"POST /consultants called for '{payload.name}'.")
    try:
        return await consultants_service.create_consultant(collection, payload)
    except Exception as e:
        raise to_http_error(e, "creating consultant")


@router.put("/consultants/{consultant_id}", response_model=Consultant, response_model_exclude_none=True, summary="Update Consultant",
            description="A rename is also applied to the Consultants expenses recorded under the old name.")
async def update_consultant(
    collection: ConsultantsCollectionDep, expenses: ExpensesCollectionDep, consultant_id: str, changes: ConsultantUpdate
) -> Consultant:
    logger.info(f"PUT /consultants/{consultant_id} called.")
    try:
        return await consultants_service.update_consultant(collection, expenses, consultant_id, changes)
    except Exception as e:
        raise to_http_error(e, f"updating consultant {consultant_id}")


@router.delete("/consultants/{consultant_id}", response_model=ConsultantDeleteResult, response_model_exclude_none=True,
               summary="Delete Consultant", description="Consultants referenced by expenses are marked inactive instead of removed.")
async def delete_consultant(
    collection: ConsultantsCollectionDep, expenses: ExpensesCollectionDep, consultant_id: str
) -> ConsultantDeleteResult:
    logger.info(f"DELETE /consultants/{consultant_id} called.")
    try:
        consultant, deactivated = await consultants_service.delete_consultant(collection, expenses, consultant_id)
    except Exception as e:
        raise to_http_error(e, f"deleting consultant {consultant_id}")
    message = "Consultant marked as inactive because expenses reference it." if deactivated else "Consultant deleted."
    return ConsultantDeleteResult(message=message, consultant=consultant, deactivated=deactivated)
