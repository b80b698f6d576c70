from pydantic import BaseModel
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope every endpoint answers with: ``{success, data?, count?, message?}``."""
    success: bool = True
    data: Optional[T] = None
    count: Optional[int] = None
    message: Optional[str] = None


def ok(data=None, message: Optional[str] = None, with_count: bool = False) -> dict:
    body = {"success": True, "data": data}
    if with_count:
        body["count"] = len(data)
    if message:
        body["message"] = message
    return body
