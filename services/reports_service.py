"""Category aggregation and profit summary for a date range."""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorCollection

from models.categories import CONSULTANTS, GROSS_INCOME
from models.report import CategoryEntry, CategoryGroup, CategoryKey, ProfitSummary
from services import expenses_service
from utils.dates import end_of_day, is_date_only, parse_datetime

logger = logging.getLogger(__name__)


def parse_date_range(start_raw: Optional[str], end_raw: Optional[str]) -> Tuple[datetime, datetime]:
    """
    Validates the startDate/endDate query pair. A date-only end is widened to the end of that day
    so the range stays inclusive.
    """
    if not start_raw or not end_raw:
        raise ValueError("Both startDate and endDate are required.")
    start = parse_datetime(start_raw)
    end = parse_datetime(end_raw)
    if is_date_only(end_raw):
        end = end_of_day(end)
    if start > end:
        raise ValueError("startDate must not be after endDate.")
    return start, end


def group_by_category(records: Iterable[Dict[str, Any]]) -> List[CategoryGroup]:
    """
    Groups expense documents by category.
    Entries are newest first (records sharing a date keep their input order);
    groups come back sorted by category name.
    """
    buckets: Dict[str, List[Dict[str, Any]]] = {}
    for record in records:
        buckets.setdefault(record["category"], []).append(record)

    groups = []
    for category in sorted(buckets):
        # reverse=True keeps records that share a date in input order
        items = sorted(buckets[category], key=lambda record: record["date"], reverse=True)
        entries = [
            CategoryEntry(
                id=str(record["_id"]),
                date=record["date"],
                amount=record["amount"],
                consultant_name=record.get("consultantName") if category == CONSULTANTS else None,
            )
            for record in items
        ]
        total = sum(record["amount"] for record in items)
        groups.append(CategoryGroup(id=CategoryKey(category=category), total=total, entries=entries))
    return groups


async def monthly_aggregate(collection: AsyncIOMotorCollection, start: datetime, end: datetime) -> List[CategoryGroup]:
    """Per-category totals and entries for expenses dated within [start, end]."""
    logger.info(f"Aggregating expenses between {start.isoformat()} and {end.isoformat()}")
    records = await expenses_service.find_expenses_in_range(collection, start, end)
    groups = group_by_category(records)
    logger.info(f"Aggregated {len(records)} expenses into {len(groups)} categories.")
    return groups


def summarize(groups: Sequence[CategoryGroup], excluded_categories: Iterable[str] = ()) -> ProfitSummary:
    """
    Gross income is the Gross Income total; every other category counts as an expense
    unless listed in excluded_categories.
    """
    excluded = set(excluded_categories)
    gross_income = 0.0
    total_expenses = 0.0
    for group in groups:
        if group.category == GROSS_INCOME:
            gross_income += group.total
        elif group.category not in excluded:
            total_expenses += group.total
    profit = gross_income - total_expenses
    profit_percentage = (profit / gross_income) * 100 if gross_income else 0.0
    return ProfitSummary(
        gross_income=gross_income,
        total_expenses=total_expenses,
        profit=profit,
        profit_percentage=profit_percentage,
    )
