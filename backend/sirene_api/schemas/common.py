"""
Enveloppe JSON commune à toutes les réponses de l'API : {success, message, data}.
"""

from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    data: None = None
    errors: Optional[List[Any]] = None


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """Construit l'enveloppe de succès renvoyée par les routers."""
    return {"success": True, "message": message, "data": data}
