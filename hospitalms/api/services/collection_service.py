"""Collection service - document operations for one collection.

Wraps a DocumentStorePort with the model of one collection so routes work
with validated documents and Result values instead of raw storage calls.
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from hospitalms.domain.models import HospitalDocument
from hospitalms.domain.ports import DocumentStorePort, Result

logger = logging.getLogger(__name__)


def _invalid(error: PydanticValidationError, **details) -> Result:
    return Result.failure_result(
        str(error),
        error_type="InvalidDocument",
        error_details=details,
    )


class CollectionService:
    """CRUD and bulk operations over one collection.

    Parameters:
        storage: Document store adapter
        model: Document model of the collection (Patient, Visit, ...)
        sort_by: Default sort field for listings
        descending: Default sort direction for listings
    """

    def __init__(
        self,
        storage: DocumentStorePort,
        model: type[HospitalDocument],
        sort_by: Optional[str] = None,
        descending: bool = False,
    ):
        self.storage = storage
        self.model = model
        self.collection = model.collection
        self.key_field = model.key_field
        self.sort_by = sort_by or model.key_field
        self.descending = descending

    def list_all(self) -> Result[list[dict]]:
        return self.storage.find_all(self.collection, sort_by=self.sort_by, descending=self.descending)

    def list_by(
        self,
        field: str,
        value: Any,
        sort_by: Optional[str] = None,
        descending: Optional[bool] = None,
    ) -> Result[list[dict]]:
        return self.storage.find_by(
            self.collection,
            field,
            value,
            sort_by=sort_by or self.sort_by,
            descending=self.descending if descending is None else descending,
        )

    def get(self, key: str) -> Result[Optional[dict]]:
        return self.storage.find_one(self.collection, self.key_field, key.strip())

    def exists(self, field: str, value: Any) -> Result[bool]:
        """Whether any document has ``field == value``."""
        result = self.storage.find_by(self.collection, field, value)
        if result.is_failure():
            return result
        return Result.success_result(bool(result.value))

    def validate(self, payload: dict) -> Result[dict]:
        """Validate a payload against the collection model."""
        try:
            return Result.success_result(self.model.model_validate(payload).to_document())
        except PydanticValidationError as e:
            return _invalid(e)

    def create(self, payload: dict) -> Result[dict]:
        validated = self.validate(payload)
        if validated.is_failure():
            return validated
        result = self.storage.insert_one(self.collection, self.key_field, validated.value)
        if result.is_success():
            logger.info(f"Created {self.model.entity_name} {validated.value[self.key_field]}")
        return result

    def create_many(self, payloads: list[dict]) -> Result[list[dict]]:
        """Validate every payload, then insert them all or none.

        A payload that fails validation rejects the whole batch with its
        index in error_details.
        """
        documents = []
        for index, payload in enumerate(payloads):
            try:
                documents.append(self.model.model_validate(payload).to_document())
            except PydanticValidationError as e:
                return _invalid(e, index=index)

        result = self.storage.insert_many(self.collection, self.key_field, documents)
        if result.is_failure():
            return result
        return Result.success_result(documents)

    def update(self, key: str, changes: dict) -> Result[Optional[dict]]:
        """Merge changes into a document and re-validate it.

        The key field is never changed. Returns success with None when the
        document does not exist.
        """
        found = self.get(key)
        if found.is_failure() or found.value is None:
            return found

        changes = {k: v for k, v in changes.items() if k != self.key_field}
        validated = self.validate({**found.value, **changes})
        if validated.is_failure():
            return validated
        return self.storage.update_one(self.collection, self.key_field, key.strip(), validated.value)

    def delete(self, key: str) -> Result[Optional[dict]]:
        result = self.storage.delete_one(self.collection, self.key_field, key.strip())
        if result.is_success() and result.value is not None:
            logger.info(f"Deleted {self.model.entity_name} {key.strip()}")
        return result
