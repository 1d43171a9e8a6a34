"""Document store adapters for hospitalms."""

from hospitalms.adapters.storage.duckdb_adapter import DuckDBDocumentStore
from hospitalms.adapters.storage.postgresql_adapter import PostgreSQLDocumentStore
from hospitalms.domain.ports import DocumentStorePort
from hospitalms.infrastructure.config_manager import DatabaseConfig

__all__ = ["DuckDBDocumentStore", "PostgreSQLDocumentStore", "create_document_store"]


def create_document_store(db_config: DatabaseConfig) -> DocumentStorePort:
    """Build the adapter matching ``db_config.db_type``.

    Raises:
        ValueError: If the database type has no adapter
    """
    if db_config.db_type == "duckdb":
        return DuckDBDocumentStore(db_config=db_config)
    if db_config.db_type == "postgresql":
        return PostgreSQLDocumentStore(db_config=db_config)
    raise ValueError(f"Unsupported database type: {db_config.db_type}")
