"""Pydantic models for Expense data"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from models.categories import CONSULTANTS, ExpenseCategory
from utils.dates import parse_datetime

# Keeps range totals finite when many entries are summed
MAX_AMOUNT = 1_000_000_000_000


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class ExpenseCreate(_CamelModel):
    """
    Payload for a single expense or income entry.
    `consultant_name` is mandatory for the Consultants category and dropped for every other one.
    """
    date: datetime
    category: ExpenseCategory
    amount: float = Field(..., ge=0, le=MAX_AMOUNT, allow_inf_nan=False)
    description: Optional[str] = None
    consultant_name: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> datetime:
        return parse_datetime(value)

    @field_validator("amount", mode="before")
    @classmethod
    def _reject_bool_amount(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("Amount must be a number")
        return value

    @model_validator(mode="after")
    def _check_consultant(self) -> "ExpenseCreate":
        self.description = _clean_text(self.description)
        name = _clean_text(self.consultant_name)
        if self.category == ExpenseCategory.CONSULTANTS:
            if not name:
                raise ValueError(f"consultantName is required for category '{CONSULTANTS}'")
            self.consultant_name = name
        else:
            self.consultant_name = None
        return self

    def to_document(self) -> Dict[str, Any]:
        """Mongo document shape (camelCase field names, no timestamps)."""
        document = {
            "date": self.date,
            "category": self.category.value,
            "amount": self.amount,
        }
        if self.description is not None:
            document["description"] = self.description
        if self.consultant_name is not None:
            document["consultantName"] = self.consultant_name
        return document


class ExpenseUpdate(_CamelModel):
    """Partial update; merged with the stored record and re-validated as an ExpenseCreate."""
    date: Optional[Any] = None
    category: Optional[str] = None
    amount: Optional[Any] = None
    description: Optional[str] = None
    consultant_name: Optional[str] = None


class Expense(_CamelModel):
    """
    Represents a stored expense or income transaction.
    """
    id: str = Field(..., alias="_id")
    date: datetime
    category: str
    amount: float
    description: Optional[str] = None
    consultant_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Expense":
        data = dict(doc)
        data["_id"] = str(data["_id"])
        return cls.model_validate(data)


class BulkExpensesRequest(BaseModel):
    expenses: List[Any]


class BulkDeleteRequest(BaseModel):
    ids: List[str]


class BulkDeleteResult(_CamelModel):
    message: str
    deleted_count: int
