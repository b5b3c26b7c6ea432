"""
Tests for expense and consultant service behaviour that the HTTP tests cannot reach.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import BulkWriteError, ServerSelectionTimeoutError

from models.consultant import ConsultantUpdate
from models.expense import ExpenseCreate
from services import consultants_service, expenses_service
from services.errors import BulkValidationError, InvalidIdError, RecordNotFoundError


def failing_collection(error: Exception) -> MagicMock:
    collection = MagicMock()
    collection.name = "expenses"
    collection.insert_many = AsyncMock(side_effect=error)
    collection.insert_one = AsyncMock(side_effect=error)
    collection.delete_many = AsyncMock()
    return collection


class TestBulkInsert:
    def test_store_failure_rolls_back_inserted_ids(self):
        collection = failing_collection(BulkWriteError({"nInserted": 1, "writeErrors": []}))
        items = [
            {"date": "2024-01-01", "category": "Rent", "amount": 300},
            {"date": "2024-01-02", "category": "Water", "amount": 50},
        ]

        with pytest.raises(ConnectionError):
            asyncio.run(expenses_service.add_multiple_expenses(collection, items))

        inserted = collection.insert_many.await_args.args[0]
        rollback_filter = collection.delete_many.await_args.args[0]
        assert rollback_filter == {"_id": {"$in": [doc["_id"] for doc in inserted]}}
        assert all(isinstance(doc["_id"], ObjectId) for doc in inserted)

    def test_validation_failure_never_touches_store(self):
        collection = failing_collection(AssertionError("should not be called"))

        with pytest.raises(BulkValidationError) as exc_info:
            asyncio.run(expenses_service.add_multiple_expenses(collection, [{"category": "Rent"}, "not an object"]))

        assert [error["index"] for error in exc_info.value.errors] == [0, 1]
        collection.insert_many.assert_not_awaited()

    def test_all_items_share_timestamps(self):
        collection = MagicMock()
        collection.insert_many = AsyncMock()
        items = [{"date": "2024-01-01", "category": "Rent", "amount": 300}] * 3

        created = asyncio.run(expenses_service.add_multiple_expenses(collection, items))

        assert len(created) == 3
        assert len({expense.id for expense in created}) == 3
        assert len({expense.created_at for expense in created}) == 1


class TestStoreErrors:
    def test_insert_failure_maps_to_connection_error(self):
        collection = failing_collection(ServerSelectionTimeoutError("down"))
        payload = ExpenseCreate(date="2024-01-01", category="Rent", amount=1)

        with pytest.raises(ConnectionError):
            asyncio.run(expenses_service.create_expense(collection, payload))

    def test_invalid_id_checked_before_store(self):
        collection = MagicMock()
        collection.find_one_and_delete = AsyncMock()

        with pytest.raises(InvalidIdError):
            asyncio.run(expenses_service.delete_expense(collection, "123"))

        collection.find_one_and_delete.assert_not_awaited()


class TestConsultantDelete:
    def _collections(self, references: int):
        consultant_id = ObjectId()
        doc = {"_id": consultant_id, "name": "Dr. Mehta", "active": True}
        consultants = MagicMock()
        consultants.find_one = AsyncMock(return_value=doc)
        consultants.find_one_and_update = AsyncMock(return_value={**doc, "active": False})
        consultants.delete_one = AsyncMock()
        expenses = MagicMock()
        expenses.count_documents = AsyncMock(return_value=references)
        return str(consultant_id), consultants, expenses

    def test_soft_delete_when_referenced(self):
        consultant_id, consultants, expenses = self._collections(references=2)

        consultant, deactivated = asyncio.run(consultants_service.delete_consultant(consultants, expenses, consultant_id))

        assert deactivated is True
        assert consultant.active is False
        consultants.delete_one.assert_not_awaited()
        expenses.count_documents.assert_awaited_once_with({"category": "Consultants", "consultantName": "Dr. Mehta"})

    def test_hard_delete_when_unreferenced(self):
        consultant_id, consultants, expenses = self._collections(references=0)

        _, deactivated = asyncio.run(consultants_service.delete_consultant(consultants, expenses, consultant_id))

        assert deactivated is False
        consultants.delete_one.assert_awaited_once()
        consultants.find_one_and_update.assert_not_awaited()

    def test_missing_consultant(self):
        consultants = MagicMock()
        consultants.find_one = AsyncMock(return_value=None)

        with pytest.raises(RecordNotFoundError):
            asyncio.run(consultants_service.delete_consultant(consultants, MagicMock(), str(ObjectId())))


class TestConsultantUpdate:
    def _collections(self, new_name: str):
        consultant_id = ObjectId()
        doc = {"_id": consultant_id, "name": "Dr. Mehta", "active": True}
        consultants = MagicMock()
        consultants.find_one = AsyncMock(side_effect=[doc, None])
        consultants.find_one_and_update = AsyncMock(return_value={**doc, "name": new_name})
        expenses = MagicMock()
        expenses.update_many = AsyncMock(return_value=MagicMock(modified_count=3))
        return str(consultant_id), consultants, expenses

    def test_rename_updates_expense_references(self):
        consultant_id, consultants, expenses = self._collections("Dr. R. Mehta")

        consultant = asyncio.run(
            consultants_service.update_consultant(consultants, expenses, consultant_id, ConsultantUpdate(name="Dr. R. Mehta"))
        )

        assert consultant.name == "Dr. R. Mehta"
        query, update = expenses.update_many.await_args.args
        assert query == {"category": "Consultants", "consultantName": "Dr. Mehta"}
        assert update["$set"]["consultantName"] == "Dr. R. Mehta"
        assert "updatedAt" in update["$set"]

    def test_other_changes_leave_expenses_alone(self):
        consultant_id, consultants, expenses = self._collections("Dr. Mehta")
        consultants.find_one = AsyncMock(return_value={"_id": ObjectId(consultant_id), "name": "Dr. Mehta"})

        asyncio.run(
            consultants_service.update_consultant(consultants, expenses, consultant_id, ConsultantUpdate(specialization="Endo"))
        )

        expenses.update_many.assert_not_awaited()

    def test_store_failure_on_expenses_maps_to_connection_error(self):
        consultant_id, consultants, expenses = self._collections("Dr. R. Mehta")
        expenses.update_many = AsyncMock(side_effect=ServerSelectionTimeoutError("down"))

        with pytest.raises(ConnectionError):
            asyncio.run(
                consultants_service.update_consultant(consultants, expenses, consultant_id, ConsultantUpdate(name="Dr. R. Mehta"))
            )

    def test_missing_consultant(self):
        consultants = MagicMock()
        consultants.find_one = AsyncMock(return_value=None)
        consultants.find_one_and_update = AsyncMock()

        with pytest.raises(RecordNotFoundError):
            asyncio.run(
                consultants_service.update_consultant(consultants, MagicMock(), str(ObjectId()), ConsultantUpdate(name="Dr. Anand"))
            )

        consultants.find_one_and_update.assert_not_awaited()
