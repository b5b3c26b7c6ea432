"""Pydantic models for Consultant data"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MIN_NAME_LENGTH = 2


def validate_consultant_name(value: str) -> str:
    name = value.strip()
    if not name:
        raise ValueError("Name cannot be empty")
    if len(name) < MIN_NAME_LENGTH:
        raise ValueError(f"Name must be at least {MIN_NAME_LENGTH} characters long")
    return name


class ConsultantCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str
    specialization: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return validate_consultant_name(value)

    @field_validator("specialization")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class ConsultantUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    specialization: Optional[str] = None
    active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return validate_consultant_name(value)


class Consultant(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., alias="_id")
    name: str
    specialization: Optional[str] = None
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Consultant":
        data = dict(doc)
        data["_id"] = str(data["_id"])
        return cls.model_validate(data)


class ConsultantDeleteResult(BaseModel):
    message: str
    consultant: Consultant
    deactivated: bool
