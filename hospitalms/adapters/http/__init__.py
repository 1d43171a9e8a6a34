"""HTTP adapters: the chunked bulk uploader and the collection read client."""

from hospitalms.adapters.http.api_client import HospitalAPIClient
from hospitalms.adapters.http.bulk_uploader import (
    ChunkedUploader,
    ChunkFailure,
    UploadReport,
)

__all__ = ["ChunkedUploader", "ChunkFailure", "UploadReport", "HospitalAPIClient"]
