"""Service layer for handling expense-related logic."""
import logging
from datetime import datetime
from typing import Any, Dict, List

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection  # Type hint for collection
from pydantic import ValidationError
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from models.categories import CONSULTANTS
from models.expense import Expense, ExpenseCreate, ExpenseUpdate
from services.errors import (
    BulkValidationError,
    RecordNotFoundError,
    format_validation_errors,
    to_object_id,
)
from utils.dates import utcnow

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("date", "category", "amount", "description", "consultantName")


async def create_expense(collection: AsyncIOMotorCollection, payload: ExpenseCreate) -> Expense:
    """Stores one validated expense and returns it with its generated id and timestamps."""
    now = utcnow()
    document = payload.to_document()
    document["createdAt"] = now
    document["updatedAt"] = now
    try:
        result = await collection.insert_one(document)
    except PyMongoError as e:
        logger.error(f"Database error inserting expense: {e}")
        raise ConnectionError(f"Database error inserting expense: {e}") from e
    document["_id"] = result.inserted_id
    logger.info(f"Created expense {result.inserted_id} ({payload.category.value}, {payload.amount})")
    return Expense.from_document(document)


def validate_bulk_items(items: List[Any]) -> List[ExpenseCreate]:
    """
    Validates every item of a bulk payload before anything is written.
    Raises BulkValidationError listing each failing index and its field errors.
    """
    if not items:
        raise BulkValidationError("No expenses provided.", [])
    valid = []
    errors = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            errors.append({"index": index, "errors": [{"field": "body", "message": "Expense must be an object"}]})
            continue
        try:
            valid.append(ExpenseCreate.model_validate(item))
        except ValidationError as e:
            errors.append({"index": index, "errors": format_validation_errors(e)})
    if errors:
        logger.warning(f"Bulk payload rejected: {len(errors)} of {len(items)} items invalid.")
        raise BulkValidationError(f"{len(errors)} of {len(items)} expenses are invalid.", errors)
    return valid


async def add_multiple_expenses(collection: AsyncIOMotorCollection, items: List[Any]) -> List[Expense]:
    """
    All-or-nothing bulk insert. Ids are assigned up front so a store failure
    part-way through can be undone by deleting what was already written.
    """
    payloads = validate_bulk_items(items)
    now = utcnow()
    documents = []
    for payload in payloads:
        document = payload.to_document()
        document["_id"] = ObjectId()
        document["createdAt"] = now
        document["updatedAt"] = now
        documents.append(document)

    logger.info(f"Attempting bulk insert of {len(documents)} expenses.")
    try:
        await collection.insert_many(documents, ordered=True)
    except PyMongoError as e:
        logger.error(f"Database error during bulk insert, rolling back: {e}")
        ids = [document["_id"] for document in documents]
        try:
            await collection.delete_many({"_id": {"$in": ids}})
        except PyMongoError as cleanup_error:
            logger.error(f"Rollback of partial bulk insert failed: {cleanup_error}")
        raise ConnectionError(f"Database error during bulk insert: {e}") from e
    logger.info(f"Bulk insert successful. Added {len(documents)} expenses.")
    return [Expense.from_document(document) for document in documents]


async def get_all_expenses(collection: AsyncIOMotorCollection) -> List[Expense]:
    """Fetches all expenses, newest first."""
    logger.info(f"Fetching all expenses from collection '{collection.name}'...")
    expenses = []
    try:
        cursor = collection.find().sort("date", DESCENDING)
        async for doc in cursor:
            try:
                expenses.append(Expense.from_document(doc))
            except ValidationError as e:
                logger.error(f"Data validation error for document ID {doc.get('_id', 'N/A')}: {e}")
                # Skip invalid documents
                continue
    except PyMongoError as e:
        logger.error(f"Database error fetching expenses: {e}")
        raise ConnectionError(f"Database error fetching expenses: {e}") from e
    logger.info(f"Fetched {len(expenses)} expenses successfully.")
    return expenses


async def find_expenses_in_range(collection: AsyncIOMotorCollection, start: datetime, end: datetime) -> List[Dict[str, Any]]:
    """Raw expense documents with start <= date <= end, oldest first."""
    try:
        cursor = collection.find({"date": {"$gte": start, "$lte": end}}).sort("date", ASCENDING)
        return [doc async for doc in cursor]
    except PyMongoError as e:
        logger.error(f"Database error fetching expenses between {start} and {end}: {e}")
        raise ConnectionError(f"Database error fetching expenses: {e}") from e


async def _find_document(collection: AsyncIOMotorCollection, expense_id: str) -> Dict[str, Any]:
    object_id = to_object_id(expense_id, "expense")
    try:
        doc = await collection.find_one({"_id": object_id})
    except PyMongoError as e:
        logger.error(f"Database error fetching expense {expense_id}: {e}")
        raise ConnectionError(f"Database error fetching expense: {e}") from e
    if doc is None:
        raise RecordNotFoundError(f"Expense {expense_id} not found.")
    return doc


async def get_expense(collection: AsyncIOMotorCollection, expense_id: str) -> Expense:
    return Expense.from_document(await _find_document(collection, expense_id))


async def update_expense(collection: AsyncIOMotorCollection, expense_id: str, changes: ExpenseUpdate) -> Expense:
    """Merges the changes into the stored record and re-validates the result as a whole."""
    existing = await _find_document(collection, expense_id)
    merged = {key: existing[key] for key in _EDITABLE_FIELDS if key in existing}
    merged.update(changes.model_dump(exclude_unset=True, by_alias=True))
    payload = ExpenseCreate.model_validate(merged)

    document = payload.to_document()
    document["updatedAt"] = utcnow()
    update: Dict[str, Any] = {"$set": document}
    removed = {key: "" for key in ("description", "consultantName") if key not in document}
    if removed:
        update["$unset"] = removed
    try:
        updated = await collection.find_one_and_update(
            {"_id": existing["_id"]}, update, return_document=ReturnDocument.AFTER
        )
    except PyMongoError as e:
        logger.error(f"Database error updating expense {expense_id}: {e}")
        raise ConnectionError(f"Database error updating expense: {e}") from e
    if updated is None:
        raise RecordNotFoundError(f"Expense {expense_id} not found.")
    logger.info(f"Updated expense {expense_id}")
    return Expense.from_document(updated)


async def delete_expense(collection: AsyncIOMotorCollection, expense_id: str) -> Expense:
    object_id = to_object_id(expense_id, "expense")
    try:
        doc = await collection.find_one_and_delete({"_id": object_id})
    except PyMongoError as e:
        logger.error(f"Database error deleting expense {expense_id}: {e}")
        raise ConnectionError(f"Database error deleting expense: {e}") from e
    if doc is None:
        raise RecordNotFoundError(f"Expense {expense_id} not found.")
    logger.info(f"Deleted expense {expense_id}")
    return Expense.from_document(doc)


async def delete_expenses(collection: AsyncIOMotorCollection, expense_ids: List[str]) -> int:
    """Deletes every expense in the id set. Any malformed id aborts the whole request."""
    if not expense_ids:
        raise ValueError("No expense IDs provided.")
    object_ids = [to_object_id(expense_id, "expense") for expense_id in expense_ids]
    logger.warning(f"Deleting {len(object_ids)} expenses by id.")
    try:
        result = await collection.delete_many({"_id": {"$in": object_ids}})
    except PyMongoError as e:
        logger.error(f"Database error during delete_many operation: {e}")
        raise ConnectionError(f"Database error deleting expenses: {e}") from e
    if result.deleted_count == 0:
        raise RecordNotFoundError("No matching expenses found.")
    logger.info(f"Successfully deleted {result.deleted_count} expenses.")
    return result.deleted_count


async def count_consultant_references(collection: AsyncIOMotorCollection, consultant_name: str) -> int:
    """Number of Consultants-category expenses recorded against this consultant name."""
    try:
        return await collection.count_documents({"category": CONSULTANTS, "consultantName": consultant_name})
    except PyMongoError as e:
        logger.error(f"Database error counting expenses for consultant {consultant_name}: {e}")
        raise ConnectionError(f"Database error counting consultant expenses: {e}") from e


async def rename_consultant_references(collection: AsyncIOMotorCollection, old_name: str, new_name: str) -> int:
    """Points Consultants-category expenses recorded under old_name at new_name. Returns how many changed."""
    try:
        result = await collection.update_many(
            {"category": CONSULTANTS, "consultantName": old_name},
            {"$set": {"consultantName": new_name, "updatedAt": utcnow()}},
        )
    except PyMongoError as e:
        logger.error(f"Database error renaming consultant '{old_name}' on expenses: {e}")
        raise ConnectionError(f"Database error renaming consultant on expenses: {e}") from e
    return result.modified_count
