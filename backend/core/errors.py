"""
Kardex Error Taxonomy

Services raise these; the API layer maps them to HTTP status codes.
"""


class InventoryError(Exception):
    """Base class for domain errors."""

    status_code = 500
    code = "inventory_error"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        body = {"error": self.code, "detail": self.message}
        if self.context:
            body["context"] = {k: str(v) for k, v in self.context.items()}
        return body


class NotAvailableError(InventoryError):
    """Store, notification channel or predictor is unreachable."""

    status_code = 503
    code = "not_available"


class ValidationError(InventoryError):
    """Malformed input at the boundary."""

    status_code = 422
    code = "validation_error"


class ConflictError(InventoryError):
    """Stale previous_stock or a concurrent mutation."""

    status_code = 409
    code = "conflict"


class InvalidOperationError(InventoryError):
    """Operation is well-formed but not permitted in the current state."""

    status_code = 400
    code = "invalid_operation"


class NotFoundError(InventoryError):
    """Referenced entity does not exist."""

    status_code = 404
    code = "not_found"
