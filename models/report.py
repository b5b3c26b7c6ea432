"""Pydantic models for aggregated expense reports"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CategoryKey(BaseModel):
    category: str


class CategoryEntry(_CamelModel):
    id: str = Field(..., alias="_id")
    date: datetime
    amount: float
    consultant_name: Optional[str] = None


class CategoryGroup(_CamelModel):
    """Totals and dated entries for one category within a date range."""
    id: CategoryKey = Field(..., alias="_id")
    total: float
    entries: List[CategoryEntry] = Field(default_factory=list)

    @property
    def category(self) -> str:
        return self.id.category


class ProfitSummary(_CamelModel):
    gross_income: float = 0.0
    total_expenses: float = 0.0
    profit: float = 0.0
    profit_percentage: float = 0.0


class ExpenseReport(BaseModel):
    groups: List[CategoryGroup]
    summary: ProfitSummary
