"""
Shared API Schemas
==================

Base model and response envelope used by every router.

Wire format is camelCase; Python attributes stay snake_case. Both spellings
are accepted on input.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Pydantic model serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def success_response(data: Any = None, message: str = "OK") -> dict:
    """Envelope for a successful call: {"success": true, "message", "data"}."""
    return {"success": True, "message": message, "data": data}


def error_body(message: str, error: Optional[Any] = None) -> dict:
    """Envelope for a failed call: {"success": false, "message", "error"}."""
    return {"success": False, "message": message, "error": error}
