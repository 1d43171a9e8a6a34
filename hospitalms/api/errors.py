"""API error type and the JSON error bodies the clients expect.

Every error response carries ``{"message": ...}`` and, when there is an
underlying cause, ``{"error": ...}``. Unknown routes answer with
``{"error": "Route not found: <path>"}``.
"""

from typing import Any, Optional

from hospitalms.domain.ports import Result


class APIError(Exception):
    """An HTTP error with a client-facing message."""

    def __init__(self, status_code: int, message: str, error: Optional[str] = None, **extra: Any):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error = error
        self.extra = extra

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.error:
            body["error"] = self.error
        body.update(self.extra)
        return body


def unwrap(result: Result, message: str, duplicate_message: Optional[str] = None) -> Any:
    """Return the value of a successful Result or raise the matching APIError.

    Parameters:
        result: Result from a service or store call
        message: Message for an unexpected storage failure (500)
        duplicate_message: Message for a duplicate-key failure (400)

    A document that fails model validation answers 400 "Invalid document
    data"; for bulk requests the body also names the failing ``index``.

    Raises:
        APIError: 400 for duplicate keys and invalid documents, 500 otherwise
    """
    if result.is_success():
        return result.value
    if result.error_type == "DuplicateKeyError":
        raise APIError(400, duplicate_message or "Duplicate key", error=result.error)
    if result.error_type == "InvalidDocument":
        raise APIError(400, "Invalid document data", error=result.error, **(result.error_details or {}))
    raise APIError(500, message, error=result.error)
