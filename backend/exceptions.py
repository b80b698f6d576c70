"""
Domain exception hierarchy for the inventory and order-fulfillment service.

Every business-rule failure raised from ``crud`` is one of these. The HTTP
layer maps them to the response envelope in ``main.py``.

    InventoryError
    ├── ValidationError      400
    ├── NotFound             404
    ├── InvalidTransition    400
    ├── InsufficientStock    400
    └── Conflict             409
"""
from typing import Any, Dict, List, Optional


class InventoryError(Exception):
    """
    Base exception for all domain errors.

    Attributes:
        message: Human-readable error description
        details: Additional context returned to the client
        status_code: HTTP status the error maps to
    """

    status_code: int = 500
    category: str = "InternalError"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the error half of the response envelope."""
        body = {
            "success": False,
            "error": self.message,
            "category": self.category,
        }
        if self.details:
            body["details"] = self.details
        return body

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r})"


class ValidationError(InventoryError):
    """Missing or malformed input."""
    status_code = 400
    category = "ValidationError"


class NotFound(InventoryError):
    """Referenced order, SKU, equipment or template is absent."""
    status_code = 404
    category = "NotFound"


class InvalidTransition(InventoryError):
    """Status change rejected by the order state machine."""
    status_code = 400
    category = "InvalidTransition"


class InsufficientStock(InventoryError):
    """An outbound movement or an assembly would drive a quantity negative.

    ``shortfalls`` lists every short component, not just the first.
    """
    status_code = 400
    category = "InsufficientStock"

    def __init__(self, message: str, shortfalls: List[Dict[str, Any]]):
        self.shortfalls = shortfalls
        super().__init__(message, details={"insufficient_parts": shortfalls})


class Conflict(InventoryError):
    """Duplicate unique key such as a serial number or template name."""
    status_code = 409
    category = "Conflict"
