"""Session store - the in-memory mirror of the hospital collections.

One HospitalStore is owned by an application session (the CLI run, or a
long-lived client). It holds the documents fetched from the API and is
changed only through explicit commands. Callers query it through typed
methods instead of filtering the raw lists themselves.
"""

import logging
from typing import Any, Iterable, Optional

from hospitalms.domain.models import MODELS_BY_COLLECTION, key_field_for
from hospitalms.domain.validation import KnownIds

logger = logging.getLogger(__name__)

# Identifier format used by the add forms: prefix + zero-padded sequence
ID_FORMATS: dict[str, tuple[str, int]] = {
    "patients": ("PAT", 5),
    "doctors": ("DOC", 3),
    "visits": ("VIS", 5),
    "prescriptions": ("PRE", 5),
}


class HospitalStore:
    """Explicit store for patients, doctors, visits, prescriptions and users.

    Commands:
        replace(collection, documents), add(collection, document),
        add_many(collection, documents), remove(collection, key)

    Queries:
        all(collection), find_by_id(collection, key),
        list_by_owner(collection, owner_field, owner_id), ids(collection),
        snapshot(doctor_id), next_id(collection)
    """

    def __init__(self):
        self._collections: dict[str, list[dict[str, Any]]] = {
            name: [] for name in MODELS_BY_COLLECTION
        }

    def _documents(self, collection: str) -> list[dict[str, Any]]:
        if collection not in self._collections:
            raise KeyError(f"Unknown collection: {collection}")
        return self._collections[collection]

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def replace(self, collection: str, documents: Iterable[dict[str, Any]]) -> None:
        """Replace a whole collection (after fetching it from the API)."""
        self._documents(collection)
        self._collections[collection] = [dict(doc) for doc in documents]
        logger.debug(f"Loaded {len(self._collections[collection])} {collection}")

    def add(self, collection: str, document: dict[str, Any]) -> None:
        self._documents(collection).append(dict(document))

    def add_many(self, collection: str, documents: Iterable[dict[str, Any]]) -> int:
        """Append documents (optimistic merge after a bulk upload)."""
        docs = [dict(doc) for doc in documents]
        self._documents(collection).extend(docs)
        return len(docs)

    def remove(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        """Remove the document with the given key and return it, or None."""
        key_field = key_field_for(collection)
        documents = self._documents(collection)
        for index, doc in enumerate(documents):
            if doc.get(key_field) == key:
                return documents.pop(index)
        return None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def all(self, collection: str) -> list[dict[str, Any]]:
        return list(self._documents(collection))

    def count(self, collection: str) -> int:
        return len(self._documents(collection))

    def find_by_id(self, collection: str, key: str) -> Optional[dict[str, Any]]:
        key_field = key_field_for(collection)
        for doc in self._documents(collection):
            if doc.get(key_field) == key:
                return doc
        return None

    def list_by_owner(self, collection: str, owner_field: str, owner_id: str) -> list[dict[str, Any]]:
        """Documents whose owner_field equals owner_id (e.g. visits by doctor_id)."""
        return [doc for doc in self._documents(collection) if doc.get(owner_field) == owner_id]

    def ids(self, collection: str) -> list[str]:
        key_field = key_field_for(collection)
        return [doc[key_field] for doc in self._documents(collection) if doc.get(key_field)]

    def snapshot(self, doctor_id: Optional[str] = None) -> KnownIds:
        """Freeze the current identifiers for one import run.

        Parameters:
            doctor_id: Issuing doctor for a doctor-scoped prescription import;
                       the snapshot then also carries that doctor's visit ids
        """
        doctor_visits: list[str] = []
        if doctor_id:
            doctor_visits = [doc["visit_id"] for doc in self.list_by_owner("visits", "doctor_id", doctor_id)]
        return KnownIds.of(
            patients=self.ids("patients"),
            doctors=self.ids("doctors"),
            visits=self.ids("visits"),
            prescriptions=self.ids("prescriptions"),
            doctor_id=doctor_id,
            doctor_visits=doctor_visits,
        )

    def next_id(self, collection: str) -> str:
        """Next sequential identifier, e.g. PAT00003 when two patients exist."""
        if collection not in ID_FORMATS:
            raise KeyError(f"Collection {collection} has no generated identifiers")
        prefix, width = ID_FORMATS[collection]
        return f"{prefix}{str(self.count(collection) + 1).zfill(width)}"
