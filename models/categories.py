"""Expense categories shared by validation, aggregation and the profit summary"""
from enum import Enum
from typing import List


class ExpenseCategory(str, Enum):
    GROSS_INCOME = "Gross Income"
    CONSULTANTS = "Consultants"
    MATERIALS = "Materials"
    ASSISTANT = "Assistant"
    HOUSEKEEPING = "Housekeeping"
    WATER = "Water"
    MAID = "Maid"
    REPAIRS = "Repairs"
    RENT = "Rent"
    E_BILL = "E-Bill"
    PROFIT = "Profit"
    BIO_MEDICALS = "Bio Medicals"
    LAB_MATERIALS = "Lab Materials"


GROSS_INCOME = ExpenseCategory.GROSS_INCOME.value
CONSULTANTS = ExpenseCategory.CONSULTANTS.value
PROFIT = ExpenseCategory.PROFIT.value

# Display order used by forms and the categories endpoint
CATEGORIES: List[str] = [category.value for category in ExpenseCategory]


def is_valid_category(name: str) -> bool:
    return name in CATEGORIES
