"""Read client for the document API.

Fetches whole collections into a HospitalStore before an import run, so the
validator sees the identifiers that already exist on the server.
"""

import logging
from typing import Iterable

import httpx

from hospitalms.adapters.http.bulk_uploader import failure_message
from hospitalms.domain.ports import StorageError
from hospitalms.domain.store import HospitalStore

logger = logging.getLogger(__name__)

MIRRORED_COLLECTIONS = ("patients", "doctors", "visits", "prescriptions")


class HospitalAPIClient:
    """Thin wrapper around ``httpx.Client`` for the collection endpoints."""

    def __init__(self, client: httpx.Client):
        self.client = client

    def endpoint(self, collection: str) -> str:
        return f"/api/{collection}"

    def fetch(self, collection: str) -> list[dict]:
        """GET all documents of a collection.

        Raises:
            StorageError: If the request fails or the body is not JSON or not an array
        """
        try:
            response = self.client.get(self.endpoint(collection))
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to fetch {collection}: {e}", operation="fetch") from e

        if not response.is_success:
            raise StorageError(
                f"Failed to fetch {collection}: {failure_message(response)}",
                operation="fetch",
                details={"status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise StorageError(f"Unexpected response for {collection}", operation="fetch") from e
        if not isinstance(body, list):
            raise StorageError(f"Unexpected response for {collection}", operation="fetch")
        return body

    def load_store(
        self,
        store: HospitalStore,
        collections: Iterable[str] = MIRRORED_COLLECTIONS,
    ) -> HospitalStore:
        """Replace the given collections of the store with the server's copy."""
        for collection in collections:
            documents = self.fetch(collection)
            store.replace(collection, documents)
            logger.info(f"Fetched {len(documents)} {collection}")
        return store
