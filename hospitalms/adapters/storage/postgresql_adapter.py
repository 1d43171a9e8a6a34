"""PostgreSQL Document Store Adapter.

Stores hospital documents as JSONB in one table keyed by
``(collection, doc_id)``, with a GIN index for field lookups.

Security Impact:
    - Credentials come from DatabaseConfig and are never logged
    - Field names are passed as bound parameters to the ``->>`` operator
    - SSL mode defaults to 'prefer'

Architecture:
    - Implements DocumentStorePort (Hexagonal Architecture)
    - Threaded connection pool shared by the API's worker threads
    - Bulk inserts use execute_values inside one transaction
"""

import logging
import threading
import time
from typing import Any, Optional

import psycopg2
from psycopg2 import errors as pg_errors
from psycopg2 import pool
from psycopg2.extras import Json, execute_values

from hospitalms.adapters.storage.documents import check_identifier, duplicate_keys
from hospitalms.domain.ports import (
    DocumentStorePort,
    DuplicateKeyError,
    Result,
    StorageError,
)
from hospitalms.infrastructure.config_manager import DatabaseConfig

logger = logging.getLogger(__name__)


class PostgreSQLDocumentStore(DocumentStorePort):
    """PostgreSQL implementation of DocumentStorePort.

    Parameters:
        db_config: DatabaseConfig from the configuration manager (preferred)
        connection_string: PostgreSQL DSN, used when no db_config is given
        pool_size: Maximum pooled connections

    Example Usage:
        ```python
        store = PostgreSQLDocumentStore(db_config=get_database_config())
        store.initialize_schema()
        ```
    """

    def __init__(
        self,
        db_config: Optional[DatabaseConfig] = None,
        connection_string: Optional[str] = None,
        pool_size: int = 5,
    ):
        if db_config:
            if db_config.db_type != "postgresql":
                raise StorageError(
                    f"DatabaseConfig type '{db_config.db_type}' does not match PostgreSQL adapter",
                    operation="__init__",
                )
            if db_config.connection_string:
                self.connection_params = {"dsn": db_config.connection_string.get_secret_value()}
            else:
                if not (db_config.host and db_config.database):
                    raise StorageError(
                        "PostgreSQL DatabaseConfig requires host and database",
                        operation="__init__",
                    )
                self.connection_params = {
                    "host": db_config.host,
                    "port": db_config.port or 5432,
                    "database": db_config.database,
                    "user": db_config.username,
                    "sslmode": db_config.ssl_mode or "prefer",
                }
                if db_config.password:
                    self.connection_params["password"] = db_config.password.get_secret_value()
            self.pool_size = db_config.pool_size
        elif connection_string:
            self.connection_params = {"dsn": connection_string}
            self.pool_size = pool_size
        else:
            raise StorageError(
                "PostgreSQL adapter requires either db_config or connection_string",
                operation="__init__",
            )

        self._connection_pool: Optional[pool.ThreadedConnectionPool] = None
        self._initialized = False
        self._schema_lock = threading.Lock()

    def _get_connection_pool(self) -> pool.ThreadedConnectionPool:
        if self._connection_pool is None:
            try:
                self._connection_pool = pool.ThreadedConnectionPool(
                    minconn=1,
                    maxconn=self.pool_size,
                    **self.connection_params,
                )
                logger.info("Created PostgreSQL connection pool")
            except psycopg2.Error as e:
                raise StorageError(
                    f"Failed to create PostgreSQL connection pool: {e}",
                    operation="connect",
                )
        return self._connection_pool

    def _run(self, operation: str, work, **details) -> Result:
        """Run ``work(cursor)`` in a pooled connection and transaction.

        Commits on success, rolls back and returns a failure Result on error.
        """
        conn = None
        try:
            if not self._initialized and operation != "initialize schema":
                init_result = self.initialize_schema()
                if init_result.is_failure():
                    return init_result
            conn = self._get_connection_pool().getconn()
            with conn.cursor() as cursor:
                value = work(cursor)
            conn.commit()
            return Result.success_result(value)
        except pg_errors.UniqueViolation as e:
            if conn is not None:
                conn.rollback()
            error = DuplicateKeyError(f"Duplicate key: {e.diag.message_detail or e}", operation=operation)
            logger.warning(f"Rejected {operation}: {error}")
            return Result.failure_result(error, error_details=details)
        except (psycopg2.Error, StorageError, ValueError) as e:
            if conn is not None:
                conn.rollback()
            error_msg = f"Failed to {operation}: {e}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                StorageError(error_msg, operation=operation, details=details),
                error_type="StorageError",
                error_details=details,
            )
        finally:
            if conn is not None:
                self._get_connection_pool().putconn(conn)

    def initialize_schema(self) -> Result[None]:
        def work(cursor):
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    collection VARCHAR(64) NOT NULL,
                    doc_id VARCHAR(255) NOT NULL,
                    body JSONB NOT NULL,
                    seq BIGSERIAL,
                    PRIMARY KEY (collection, doc_id)
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_documents_body ON documents USING GIN (body)")
            return None

        with self._schema_lock:
            if self._initialized:
                return Result.success_result(None)
            result = self._run("initialize schema", work)
            if result.is_success():
                self._initialized = True
                logger.info("Document store schema initialized")
        return result

    def _select(self, collection: str, where: str, params: list, sort_by: Optional[str], descending: bool) -> Result[list[dict]]:
        check_identifier(collection)
        order = "seq"
        if sort_by:
            check_identifier(sort_by)
            order = f"body->>%s {'DESC' if descending else 'ASC'} NULLS LAST, seq"
            params = params + [sort_by]

        def work(cursor):
            cursor.execute(
                f"SELECT body FROM documents WHERE collection = %s{where} ORDER BY {order}",
                [collection] + params,
            )
            return [row[0] for row in cursor.fetchall()]

        return self._run("find documents", work, collection=collection)

    def find_all(
        self,
        collection: str,
        sort_by: Optional[str] = None,
        descending: bool = False,
    ) -> Result[list[dict]]:
        try:
            return self._select(collection, "", [], sort_by, descending)
        except ValueError as e:
            return Result.failure_result(StorageError(str(e), operation="find_all"), error_type="StorageError")

    def find_by(
        self,
        collection: str,
        field: str,
        value: Any,
        sort_by: Optional[str] = None,
        descending: bool = False,
    ) -> Result[list[dict]]:
        try:
            check_identifier(field)
            return self._select(collection, " AND body->%s = %s", [field, Json(value)], sort_by, descending)
        except ValueError as e:
            return Result.failure_result(StorageError(str(e), operation="find_by"), error_type="StorageError")

    def find_one(self, collection: str, key_field: str, key: str) -> Result[Optional[dict]]:
        def work(cursor):
            cursor.execute(
                "SELECT body FROM documents WHERE collection = %s AND doc_id = %s",
                [collection, key],
            )
            row = cursor.fetchone()
            return row[0] if row else None

        return self._run("find document", work, collection=collection, key=key)

    def insert_one(self, collection: str, key_field: str, document: dict) -> Result[dict]:
        result = self.insert_many(collection, key_field, [document])
        if result.is_failure():
            return Result.failure_result(result.error, result.error_type, result.error_details)
        return Result.success_result(document)

    def insert_many(self, collection: str, key_field: str, documents: list[dict]) -> Result[int]:
        if not documents:
            return Result.success_result(0)

        keys = [str(doc.get(key_field) or "") for doc in documents]
        repeated = duplicate_keys(keys)
        if repeated:
            error = DuplicateKeyError(f"Duplicate {key_field}: {', '.join(repeated[:10])}", keys=repeated, operation="insert_many")
            return Result.failure_result(error, error_details={"collection": collection, "keys": repeated})

        def work(cursor):
            if not all(keys):
                raise ValueError(f"Every document needs a {key_field}")
            execute_values(
                cursor,
                "INSERT INTO documents (collection, doc_id, body) VALUES %s",
                [(collection, key, Json(doc)) for key, doc in zip(keys, documents)],
            )
            return len(documents)

        result = self._run("insert documents", work, collection=collection, count=len(documents))
        if result.is_success():
            logger.info(f"Inserted {result.value} documents into {collection}")
        return result

    def update_one(self, collection: str, key_field: str, key: str, changes: dict) -> Result[Optional[dict]]:
        """Merge changes into a document. The key field itself never changes."""
        changes = {k: v for k, v in changes.items() if k != key_field}

        def work(cursor):
            cursor.execute(
                "UPDATE documents SET body = body || %s WHERE collection = %s AND doc_id = %s RETURNING body",
                [Json(changes), collection, key],
            )
            row = cursor.fetchone()
            return row[0] if row else None

        return self._run("update document", work, collection=collection, key=key)

    def delete_one(self, collection: str, key_field: str, key: str) -> Result[Optional[dict]]:
        def work(cursor):
            cursor.execute(
                "DELETE FROM documents WHERE collection = %s AND doc_id = %s RETURNING body",
                [collection, key],
            )
            row = cursor.fetchone()
            return row[0] if row else None

        return self._run("delete document", work, collection=collection, key=key)

    def ping(self) -> Result[float]:
        start = time.perf_counter()

        def work(cursor):
            cursor.execute("SELECT 1")
            cursor.fetchone()
            return (time.perf_counter() - start) * 1000

        return self._run("ping database", work)

    def close(self) -> None:
        if self._connection_pool is not None:
            try:
                self._connection_pool.closeall()
                logger.info("Closed PostgreSQL connection pool")
            except psycopg2.Error as e:
                logger.warning(f"Error closing connection pool: {e}")
            finally:
                self._connection_pool = None
                self._initialized = False
