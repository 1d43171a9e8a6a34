"""Chunked Uploader - submits validated records to a bulk-insert endpoint.

Records are split into contiguous chunks of ``chunk_size`` and posted one
after another to ``<base>/bulk``. The saved count is taken from the server's
``count`` field, or the chunk length when the response omits it. There are
no retries.

Failure handling depends on the UploadPolicy:
    - STOP_ON_ERROR: the first failing chunk raises BulkUploadError and the
      remaining chunks are never sent
    - CONTINUE_ON_ERROR: the failure is recorded as a ChunkFailure, reported
      through the optional callback, and the next chunk is sent
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

import httpx

from hospitalms.domain.enums import UploadPolicy
from hospitalms.domain.ports import BulkUploadError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 500


@dataclass(frozen=True)
class ChunkFailure:
    """A rejected chunk under the continue-on-error policy."""
    index: int
    size: int
    message: str
    status_code: Optional[int] = None


@dataclass
class UploadReport:
    """Totals of one upload.

    Attributes:
        saved: Records the server reported as saved
        chunks_sent: Requests issued
        failures: Rejected chunks (continue-on-error only)
    """
    saved: int = 0
    chunks_sent: int = 0
    failures: list[ChunkFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def chunked(records: Sequence[Any], size: int) -> list[Sequence[Any]]:
    """Split records into contiguous chunks; only the last may be shorter."""
    if size < 1:
        raise ValueError(f"chunk_size must be at least 1, got {size}")
    return [records[start:start + size] for start in range(0, len(records), size)]


def failure_message(response: httpx.Response) -> str:
    """Server message for a failed request.

    The JSON ``message`` field wins, then the raw body text, then a generic
    ``Upload failed (<status>)``.
    """
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    if response.text.strip():
        return response.text.strip()
    return f"Upload failed ({response.status_code})"


class ChunkedUploader:
    """Posts records to ``<endpoint>/bulk`` in fixed-size chunks.

    Example Usage:
        ```python
        with httpx.Client(base_url="http://localhost:5000") as client:
            uploader = ChunkedUploader(client, policy=UploadPolicy.STOP_ON_ERROR)
            saved = uploader.upload("/api/patients", outcome.valid)
        ```
    """

    def __init__(
        self,
        client: httpx.Client,
        policy: UploadPolicy = UploadPolicy.STOP_ON_ERROR,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        on_failure: Optional[Callable[[ChunkFailure], None]] = None,
    ):
        """Initialize the uploader.

        Parameters:
            client: HTTP client (base_url and timeout configured by the caller)
            policy: What to do when a chunk fails
            chunk_size: Records per request
            on_failure: Called with each ChunkFailure under CONTINUE_ON_ERROR
        """
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {chunk_size}")
        self.client = client
        self.policy = UploadPolicy(policy)
        self.chunk_size = chunk_size
        self.on_failure = on_failure
        self.last_report: Optional[UploadReport] = None

    def upload(self, endpoint: str, records: Sequence[dict]) -> int:
        """Upload records and return the total saved count."""
        return self.upload_with_report(endpoint, records).saved

    def upload_with_report(self, endpoint: str, records: Sequence[dict]) -> UploadReport:
        """Upload records and return the full report.

        Parameters:
            endpoint: Collection endpoint, e.g. ``/api/patients``
            records: Validated records in file order

        Returns:
            UploadReport: saved count, requests issued and chunk failures

        Raises:
            BulkUploadError: On the first failing chunk under STOP_ON_ERROR
        """
        report = UploadReport()
        self.last_report = report
        if not records:
            return report

        url = f"{endpoint.rstrip('/')}/bulk"
        chunks = chunked(records, self.chunk_size)
        logger.info(f"Uploading {len(records)} records to {url} in {len(chunks)} chunk(s)")

        for index, chunk in enumerate(chunks):
            report.chunks_sent += 1
            status_code: Optional[int] = None
            try:
                response = self.client.post(url, json=list(chunk))
                status_code = response.status_code
                if response.is_success:
                    report.saved += self._saved_count(response, len(chunk))
                    continue
                message = failure_message(response)
            except httpx.HTTPError as e:
                logger.error(f"Chunk {index} transport error: {e}", exc_info=True)
                message = str(e) or type(e).__name__

            if self.policy == UploadPolicy.STOP_ON_ERROR:
                logger.error(f"Chunk {index} failed, stopping upload: {message}")
                raise BulkUploadError(
                    message,
                    chunk_index=index,
                    status_code=status_code,
                    saved_before_failure=report.saved,
                )

            failure = ChunkFailure(index=index, size=len(chunk), message=message, status_code=status_code)
            report.failures.append(failure)
            logger.warning(f"Chunk {index} ({len(chunk)} records) failed: {message}")
            if self.on_failure is not None:
                self.on_failure(failure)

        logger.info(f"Upload finished: {report.saved} saved, {len(report.failures)} chunk(s) failed")
        return report

    @staticmethod
    def _saved_count(response: httpx.Response, default: int) -> int:
        try:
            body = response.json()
        except ValueError:
            return default
        if isinstance(body, dict) and isinstance(body.get("count"), int):
            return body["count"]
        return default
