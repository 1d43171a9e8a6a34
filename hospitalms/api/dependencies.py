"""Dependency injection for the document API."""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from hospitalms.adapters.storage import create_document_store
from hospitalms.domain.ports import DocumentStorePort, StorageError
from hospitalms.infrastructure.settings import Settings

logger = logging.getLogger(__name__)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


@lru_cache()
def get_document_store() -> DocumentStorePort:
    """Configured document store (cached for the process lifetime).

    Raises:
        StorageError: If the schema cannot be initialized
    """
    db_config = get_settings().db_config
    logger.debug(f"Creating {db_config.db_type} document store")
    store = create_document_store(db_config)
    result = store.initialize_schema()
    if result.is_failure():
        raise StorageError(result.error, operation="initialize_schema")
    return store


StoreDep = Annotated[DocumentStorePort, Depends(get_document_store)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
