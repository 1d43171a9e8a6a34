"""DuckDB Document Store Adapter.

Persists hospital documents as JSON text in a single DuckDB table keyed by
``(collection, doc_id)``. Used for local development, tests (``:memory:``)
and single-node deployments.

Security Impact:
    - Collection and field names are checked against an identifier pattern
      before they reach any query
    - Values are always passed as bound parameters
    - Database path is validated before connecting

Architecture:
    - Implements DocumentStorePort (Hexagonal Architecture)
    - Bulk inserts register a pandas DataFrame and insert it in one
      transaction, so a batch is stored completely or not at all
"""

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Optional

import duckdb
import pandas as pd

from hospitalms.adapters.storage.documents import (
    check_identifier,
    duplicate_keys,
    matches,
    sort_documents,
)
from hospitalms.domain.ports import (
    DocumentStorePort,
    DuplicateKeyError,
    Result,
    StorageError,
)
from hospitalms.infrastructure.config_manager import DatabaseConfig

logger = logging.getLogger(__name__)


class DuckDBDocumentStore(DocumentStorePort):
    """DuckDB implementation of DocumentStorePort.

    Parameters:
        db_config: DatabaseConfig from the configuration manager (preferred)
        db_path: Path to the database file, or ``:memory:``

    Example Usage:
        ```python
        store = DuckDBDocumentStore(db_path=":memory:")
        store.initialize_schema()
        store.insert_one("patients", "patient_id", {"patient_id": "PAT00001", ...})
        ```
    """

    def __init__(
        self,
        db_config: Optional[DatabaseConfig] = None,
        db_path: Optional[str] = None,
    ):
        if db_config:
            if db_config.db_type != "duckdb":
                raise StorageError(
                    f"DatabaseConfig type '{db_config.db_type}' does not match DuckDB adapter",
                    operation="__init__",
                )
            self.db_path = db_config.db_path or ":memory:"
        else:
            self.db_path = db_path or ":memory:"

        if self.db_path != ":memory:" and not Path(self.db_path).parent.exists():
            raise StorageError(
                f"Database directory does not exist: {Path(self.db_path).parent}",
                operation="__init__",
            )

        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialized = False
        # One connection is shared by the API's worker threads
        self._lock = threading.RLock()

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            try:
                self._connection = duckdb.connect(self.db_path)
                logger.info(f"Connected to DuckDB database: {self.db_path}")
            except duckdb.Error as e:
                raise StorageError(
                    f"Failed to connect to DuckDB: {e}",
                    operation="connect",
                    details={"db_path": self.db_path},
                )
        return self._connection

    def _ensure_schema(self) -> None:
        if not self._initialized:
            result = self.initialize_schema()
            if result.is_failure():
                raise StorageError(result.error, operation="initialize_schema")

    def _failure(self, operation: str, error: Exception, **details) -> Result:
        error_msg = f"Failed to {operation}: {error}"
        logger.error(error_msg, exc_info=True)
        return Result.failure_result(
            StorageError(error_msg, operation=operation, details=details),
            error_type="StorageError",
            error_details=details,
        )

    def initialize_schema(self) -> Result[None]:
        """Create the documents table if it does not exist."""
        try:
            with self._lock:
                conn = self._get_connection()
                conn.execute("CREATE SEQUENCE IF NOT EXISTS documents_seq")
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS documents (
                        collection VARCHAR NOT NULL,
                        doc_id VARCHAR NOT NULL,
                        body VARCHAR NOT NULL,
                        seq BIGINT DEFAULT nextval('documents_seq'),
                        PRIMARY KEY (collection, doc_id)
                    )
                """)
                self._initialized = True
            logger.info("Document store schema initialized")
            return Result.success_result(None)
        except (duckdb.Error, StorageError) as e:
            return self._failure("initialize schema", e)

    def _load(self, collection: str) -> list[dict]:
        rows = self._get_connection().execute(
            "SELECT body FROM documents WHERE collection = ? ORDER BY seq",
            [collection],
        ).fetchall()
        return [json.loads(row[0]) for row in rows]

    def find_all(
        self,
        collection: str,
        sort_by: Optional[str] = None,
        descending: bool = False,
    ) -> Result[list[dict]]:
        try:
            check_identifier(collection)
            with self._lock:
                self._ensure_schema()
                documents = self._load(collection)
            return Result.success_result(sort_documents(documents, sort_by, descending))
        except (duckdb.Error, StorageError, ValueError) as e:
            return self._failure("find documents", e, collection=collection)

    def find_by(
        self,
        collection: str,
        field: str,
        value: Any,
        sort_by: Optional[str] = None,
        descending: bool = False,
    ) -> Result[list[dict]]:
        try:
            check_identifier(collection)
            check_identifier(field)
            with self._lock:
                self._ensure_schema()
                documents = [doc for doc in self._load(collection) if matches(doc, field, value)]
            return Result.success_result(sort_documents(documents, sort_by, descending))
        except (duckdb.Error, StorageError, ValueError) as e:
            return self._failure("find documents", e, collection=collection, field=field)

    def find_one(self, collection: str, key_field: str, key: str) -> Result[Optional[dict]]:
        try:
            with self._lock:
                self._ensure_schema()
                row = self._get_connection().execute(
                    "SELECT body FROM documents WHERE collection = ? AND doc_id = ?",
                    [collection, key],
                ).fetchone()
            return Result.success_result(json.loads(row[0]) if row else None)
        except (duckdb.Error, StorageError) as e:
            return self._failure("find document", e, collection=collection, key=key)

    def insert_one(self, collection: str, key_field: str, document: dict) -> Result[dict]:
        result = self.insert_many(collection, key_field, [document])
        if result.is_failure():
            return Result.failure_result(result.error, result.error_type, result.error_details)
        return Result.success_result(document)

    def insert_many(self, collection: str, key_field: str, documents: list[dict]) -> Result[int]:
        """Insert documents in one transaction.

        Returns:
            Result[int]: Inserted count, or a DuplicateKeyError failure naming
                         the offending keys (nothing is inserted in that case)
        """
        if not documents:
            return Result.success_result(0)

        try:
            check_identifier(collection)
            keys = [str(doc.get(key_field) or "") for doc in documents]
            if not all(keys):
                raise ValueError(f"Every document needs a {key_field}")

            repeated = duplicate_keys(keys)
            with self._lock:
                self._ensure_schema()
                conn = self._get_connection()
                df = pd.DataFrame({
                    "collection": collection,
                    "doc_id": keys,
                    "body": [json.dumps(doc, default=str) for doc in documents],
                })
                conn.register("df_temp", df)
                try:
                    existing = [
                        row[0] for row in conn.execute(
                            "SELECT doc_id FROM documents WHERE collection = ? "
                            "AND doc_id IN (SELECT doc_id FROM df_temp)",
                            [collection],
                        ).fetchall()
                    ]
                    conflicts = sorted(set(existing) | set(repeated))
                    if conflicts:
                        return self._duplicate(collection, key_field, conflicts)

                    conn.begin()
                    try:
                        conn.execute(
                            "INSERT INTO documents (collection, doc_id, body) "
                            "SELECT collection, doc_id, body FROM df_temp"
                        )
                        conn.commit()
                    except duckdb.ConstraintException:
                        conn.rollback()
                        return self._duplicate(collection, key_field, keys)
                    except duckdb.Error:
                        conn.rollback()
                        raise
                finally:
                    conn.unregister("df_temp")

            logger.info(f"Inserted {len(documents)} documents into {collection}")
            return Result.success_result(len(documents))
        except (duckdb.Error, StorageError, ValueError) as e:
            return self._failure("insert documents", e, collection=collection, count=len(documents))

    def _duplicate(self, collection: str, key_field: str, keys: list[str]) -> Result[int]:
        error = DuplicateKeyError(
            f"Duplicate {key_field}: {', '.join(keys[:10])}",
            keys=keys,
            operation="insert_many",
        )
        logger.warning(f"Rejected insert into {collection}: {error}")
        return Result.failure_result(error, error_details={"collection": collection, "keys": keys})

    def update_one(self, collection: str, key_field: str, key: str, changes: dict) -> Result[Optional[dict]]:
        """Merge changes into a document. The key field itself never changes."""
        try:
            with self._lock:
                self._ensure_schema()
                found = self.find_one(collection, key_field, key)
                if found.is_failure() or found.value is None:
                    return found
                updated = {**found.value, **{k: v for k, v in changes.items() if k != key_field}}
                self._get_connection().execute(
                    "UPDATE documents SET body = ? WHERE collection = ? AND doc_id = ?",
                    [json.dumps(updated, default=str), collection, key],
                )
            return Result.success_result(updated)
        except (duckdb.Error, StorageError) as e:
            return self._failure("update document", e, collection=collection, key=key)

    def delete_one(self, collection: str, key_field: str, key: str) -> Result[Optional[dict]]:
        try:
            with self._lock:
                self._ensure_schema()
                found = self.find_one(collection, key_field, key)
                if found.is_failure() or found.value is None:
                    return found
                self._get_connection().execute(
                    "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                    [collection, key],
                )
            return Result.success_result(found.value)
        except (duckdb.Error, StorageError) as e:
            return self._failure("delete document", e, collection=collection, key=key)

    def ping(self) -> Result[float]:
        try:
            start = time.perf_counter()
            with self._lock:
                self._get_connection().execute("SELECT 1").fetchone()
            return Result.success_result((time.perf_counter() - start) * 1000)
        except (duckdb.Error, StorageError) as e:
            return self._failure("ping database", e)

    def close(self) -> None:
        if self._connection is not None:
            try:
                self._connection.close()
                logger.info("Closed DuckDB connection")
            except duckdb.Error as e:
                logger.warning(f"Error closing connection: {e}")
            finally:
                self._connection = None
                self._initialized = False
