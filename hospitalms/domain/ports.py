"""Domain Ports - Abstract Contracts for Persistence and Import.

This module defines the Port interfaces (abstract contracts) that Adapters must implement,
the Result type used to pass success/failure between layers, and the exception
hierarchy shared by the import pipeline, the document store and the bulk uploader.

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Storage adapters (DuckDB, PostgreSQL) implement DocumentStorePort
    - Domain Core is isolated from database and transport specifics
    - Row-level import failures travel as Result values, never as exceptions
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

# Type variable for Result generic
T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Storage adapters and API services return Result objects so callers can
    decide how to surface a failure (HTTP status, row error, log line)
    without wrapping every call in try/except.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error message (only present if success=False)
        error_type: Type of error (DuplicateKeyError, RowValidationError, etc.)
        error_details: Additional error context (collection, row, rule, etc.)

    Example:
        ```python
        result = store.find_one("patients", "patient_id", "PAT00001")
        if result.is_success():
            render(result.value)
        else:
            logger.warning(result.error)
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result.

        Parameters:
            value: The successful result value

        Returns:
            Result: Success result with the value
        """
        return cls(
            success=True,
            value=value,
            error=None,
            error_type=None,
            error_details=None
        )

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Type of error (e.g., "StorageError", "RowValidationError")
            error_details: Additional context (collection, row, rule, etc.)

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class HospitalError(Exception):
    """Base exception for all hospital-management errors."""
    pass


class CSVImportError(HospitalError):
    """Base exception for file-level CSV import failures.

    Raised before any row is processed; no partial import outcome exists
    when one of these is raised.

    Attributes:
        source: The file name or path that failed
    """

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class SourceNotFoundError(CSVImportError):
    """Raised when the CSV file cannot be found or read."""
    pass


class UnsupportedSourceError(CSVImportError):
    """Raised when the uploaded file is not a CSV file.

    Attributes:
        source: The source identifier that is unsupported
        adapter: The adapter that cannot handle the source
    """

    def __init__(self, message: str, source: Optional[str] = None, adapter: Optional[str] = None):
        super().__init__(message, source=source)
        self.adapter = adapter


class EmptySourceError(CSVImportError):
    """Raised when the CSV file contains no non-blank lines."""
    pass


class RowValidationError(HospitalError):
    """A row that violated a validation rule.

    The validator wraps it in a failure Result rather than raising it, so
    it never escapes the row boundary; the ingester turns it into a row
    error entry and continues with the next row.

    Attributes:
        row: 1-based row number
        rule: Name of the violated rule (if known)
    """

    def __init__(self, message: str, row: Optional[int] = None, rule: Optional[str] = None):
        super().__init__(message)
        self.row = row
        self.rule = rule


class StorageError(HospitalError):
    """Raised when a document store operation fails.

    Attributes:
        operation: The storage operation that failed (insert_many, find_all, ...)
        details: Additional error context
    """

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}


class DuplicateKeyError(StorageError):
    """Raised when an insert would create a second document with the same key.

    Attributes:
        keys: The duplicated identifier values
    """

    def __init__(self, message: str, keys: Optional[list[str]] = None, operation: Optional[str] = None):
        super().__init__(message, operation=operation, details={"keys": keys or []})
        self.keys = keys or []


class BulkUploadError(HospitalError):
    """Raised when a bulk-insert chunk is rejected under the stop-on-error policy.

    Attributes:
        chunk_index: 0-based index of the failing chunk
        status_code: HTTP status code (None for transport failures)
        saved_before_failure: Records the server accepted from earlier chunks
    """

    def __init__(
        self,
        message: str,
        chunk_index: Optional[int] = None,
        status_code: Optional[int] = None,
        saved_before_failure: int = 0
    ):
        super().__init__(message)
        self.chunk_index = chunk_index
        self.status_code = status_code
        self.saved_before_failure = saved_before_failure


# ============================================================================
# Storage Port
# ============================================================================

class DocumentStorePort(ABC):
    """Abstract contract for document persistence.

    Documents are plain JSON-compatible dictionaries grouped into named
    collections (patients, doctors, visits, prescriptions, users). Every
    document is addressed by its collection's key field.

    Key Principles:
        - Result-based: operations return Result, they do not raise
        - All-or-nothing bulk inserts: a duplicate key rejects the whole batch
        - Collection-agnostic: the store knows nothing about entity rules

    Example Usage:
        ```python
        store = DuckDBDocumentStore(db_path=":memory:")
        store.initialize_schema()
        store.insert_many("patients", "patient_id", [patient.model_dump()])
        result = store.find_all("patients", sort_by="patient_id")
        ```
    """

    @abstractmethod
    def initialize_schema(self) -> Result[None]:
        """Create tables and indexes if they do not exist."""
        pass

    @abstractmethod
    def find_all(
        self,
        collection: str,
        sort_by: Optional[str] = None,
        descending: bool = False
    ) -> Result[list[dict]]:
        """Return every document in a collection, optionally sorted by a field."""
        pass

    @abstractmethod
    def find_by(
        self,
        collection: str,
        field: str,
        value: Any,
        sort_by: Optional[str] = None,
        descending: bool = False
    ) -> Result[list[dict]]:
        """Return documents whose top-level field equals value."""
        pass

    @abstractmethod
    def find_one(self, collection: str, key_field: str, key: str) -> Result[Optional[dict]]:
        """Return the document with the given key, or None when absent."""
        pass

    @abstractmethod
    def insert_one(self, collection: str, key_field: str, document: dict) -> Result[dict]:
        """Insert a document. Fails with DuplicateKeyError if the key exists."""
        pass

    @abstractmethod
    def insert_many(self, collection: str, key_field: str, documents: list[dict]) -> Result[int]:
        """Insert documents in one transaction and return the inserted count.

        Fails with DuplicateKeyError (and inserts nothing) when any key
        already exists or repeats within the batch.
        """
        pass

    @abstractmethod
    def update_one(self, collection: str, key_field: str, key: str, changes: dict) -> Result[Optional[dict]]:
        """Merge changes into a document and return the updated document, or None when absent."""
        pass

    @abstractmethod
    def delete_one(self, collection: str, key_field: str, key: str) -> Result[Optional[dict]]:
        """Delete a document and return it, or None when absent."""
        pass

    @abstractmethod
    def ping(self) -> Result[float]:
        """Run a trivial query and return its latency in milliseconds."""
        pass

    def close(self) -> None:
        """Release connections (optional)."""
        return None
