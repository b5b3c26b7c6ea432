"""Exceptions raised by the service layer and helpers shared by services."""
from typing import Any, Dict, List

from bson import ObjectId


class InvalidIdError(ValueError):
    pass


class RecordNotFoundError(LookupError):
    pass


class DuplicateConsultantError(ValueError):
    pass


class BulkValidationError(ValueError):
    """Raised when one or more items of a bulk payload are invalid; nothing has been written."""

    def __init__(self, message: str, errors: List[Dict[str, Any]]):
        super().__init__(message)
        self.errors = errors


def to_object_id(raw: str, kind: str = "record") -> ObjectId:
    if not isinstance(raw, str) or not ObjectId.is_valid(raw):
        raise InvalidIdError(f"Invalid {kind} ID format: {raw!r}")
    return ObjectId(raw)


def format_validation_errors(error: Any) -> List[Dict[str, str]]:
    """Flattens a pydantic ValidationError (or FastAPI RequestValidationError) into [{field, message}] pairs."""
    formatted = []
    for item in error.errors():
        location = [str(part) for part in item.get("loc", ()) if part not in ("body",)]
        message = item.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        formatted.append({"field": ".".join(location) or "body", "message": message})
    return formatted
