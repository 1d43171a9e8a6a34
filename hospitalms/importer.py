"""Import run orchestration.

One ImportRun takes a CSV file through the pipeline:

    IDLE -> PARSING -> VALIDATED -> UPLOADING -> DONE
                 \\          \\            \\-> FAILED
                  \\-> FAILED  \\-> DONE (nothing valid, no request made)

Parsing checks the file itself first (extension, readable, not empty), then
validates every row against a snapshot taken from the session store. The
snapshot is frozen for the whole run. After upload the records the server
accepted are merged back into the session store.
"""

import logging
from typing import Optional, Union

from hospitalms.adapters.http.bulk_uploader import ChunkedUploader, UploadReport, chunked
from hospitalms.adapters.ingesters.csv_ingester import CSVIngester
from hospitalms.domain.coercion import Clock, utc_now
from hospitalms.domain.enums import EntityKind, ImportState, UploadPolicy
from hospitalms.domain.import_result import ImportOutcome
from hospitalms.domain.ports import BulkUploadError, CSVImportError, HospitalError
from hospitalms.domain.store import HospitalStore

logger = logging.getLogger(__name__)

# Admin pages stop at the first failed chunk; the doctor page keeps going
DEFAULT_POLICIES: dict[EntityKind, UploadPolicy] = {
    EntityKind.PATIENTS: UploadPolicy.STOP_ON_ERROR,
    EntityKind.VISITS: UploadPolicy.STOP_ON_ERROR,
    EntityKind.PRESCRIPTIONS: UploadPolicy.CONTINUE_ON_ERROR,
}

_TRANSITIONS: dict[ImportState, tuple[ImportState, ...]] = {
    ImportState.IDLE: (ImportState.PARSING,),
    ImportState.PARSING: (ImportState.VALIDATED, ImportState.FAILED),
    ImportState.VALIDATED: (ImportState.UPLOADING, ImportState.DONE),
    ImportState.UPLOADING: (ImportState.DONE, ImportState.FAILED),
    ImportState.DONE: (),
    ImportState.FAILED: (),
}


class ImportStateError(HospitalError):
    """Raised when an ImportRun step is called in the wrong state."""
    pass


def default_policy(kind: Union[EntityKind, str]) -> UploadPolicy:
    return DEFAULT_POLICIES[EntityKind(kind)]


def endpoint_for(kind: Union[EntityKind, str]) -> str:
    return f"/api/{EntityKind(kind).value}"


class ImportRun:
    """A single CSV import.

    Example:
        ```python
        run = ImportRun(EntityKind.PATIENTS, store, uploader)
        outcome = run.parse_file("patients.csv")
        saved = run.upload()
        ```
    """

    def __init__(
        self,
        kind: Union[EntityKind, str],
        store: HospitalStore,
        uploader: ChunkedUploader,
        doctor_id: Optional[str] = None,
        clock: Clock = utc_now,
        check_file_duplicates: bool = False,
    ):
        """Initialize the run.

        Parameters:
            kind: Collection to import
            store: Session store; supplies the snapshot and receives the merge
            uploader: Configured chunked uploader (its policy decides failure handling)
            doctor_id: Issuing doctor for a doctor-scoped prescription import
            clock: Current-time source for defaults and placeholder ids
            check_file_duplicates: Reject identifiers repeated within the file
        """
        self.kind = EntityKind(kind)
        self.store = store
        self.uploader = uploader
        self.doctor_id = doctor_id or None
        self.ingester = CSVIngester(self.kind, clock=clock, check_file_duplicates=check_file_duplicates)

        self.state = ImportState.IDLE
        self.outcome: Optional[ImportOutcome] = None
        self.report: Optional[UploadReport] = None
        self.saved = 0
        self.error: Optional[str] = None

    def _transition(self, target: ImportState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise ImportStateError(f"Cannot move import from {self.state.value} to {target.value}")
        logger.debug(f"Import {self.kind.value}: {self.state.value} -> {target.value}")
        self.state = target

    def _fail(self, message: str) -> None:
        self.error = message
        self._transition(ImportState.FAILED)

    def parse_file(self, path: str) -> ImportOutcome:
        """Read and validate a CSV file.

        Raises:
            CSVImportError: On file-level problems; the run moves to FAILED
        """
        self._transition(ImportState.PARSING)
        try:
            text = self.ingester.read_source(path)
        except CSVImportError as e:
            self._fail(str(e))
            raise
        return self._parse(text)

    def parse_text(self, text: str) -> ImportOutcome:
        """Validate CSV content that was already read."""
        self._transition(ImportState.PARSING)
        return self._parse(text)

    def _parse(self, text: str) -> ImportOutcome:
        known = self.store.snapshot(doctor_id=self.doctor_id)
        self.outcome = self.ingester.parse(text, known)
        self._transition(ImportState.VALIDATED)
        return self.outcome

    def upload(self) -> int:
        """Upload the valid records and merge what was saved into the store.

        Returns:
            int: Records the server reported as saved

        Raises:
            BulkUploadError: Under STOP_ON_ERROR; the run moves to FAILED
        """
        if self.state != ImportState.VALIDATED or self.outcome is None:
            raise ImportStateError(f"Cannot upload from state {self.state.value}")

        records = self.outcome.valid
        if not records:
            logger.info(f"No valid {self.kind.value} to upload")
            self._transition(ImportState.DONE)
            return 0

        self._transition(ImportState.UPLOADING)
        try:
            self.report = self.uploader.upload_with_report(endpoint_for(self.kind), records)
        except BulkUploadError as e:
            self.saved = e.saved_before_failure
            self._merge(records, failed_indexes=None, stop_at=e.chunk_index)
            self._fail(str(e))
            raise

        self.saved = self.report.saved
        self._merge(records, failed_indexes={f.index for f in self.report.failures})
        self._transition(ImportState.DONE)
        logger.info(f"Import {self.kind.value} done: {self.saved} saved")
        return self.saved

    def _merge(self, records: list[dict], failed_indexes: Optional[set[int]], stop_at: Optional[int] = None) -> None:
        """Add records from accepted chunks to the session store."""
        merged = 0
        for index, chunk in enumerate(chunked(records, self.uploader.chunk_size)):
            if stop_at is not None and index >= stop_at:
                break
            if failed_indexes and index in failed_indexes:
                continue
            merged += self.store.add_many(self.kind.value, chunk)
        logger.debug(f"Merged {merged} {self.kind.value} into the session store")


def process_import(
    path: str,
    kind: Union[EntityKind, str],
    store: HospitalStore,
    uploader: ChunkedUploader,
    doctor_id: Optional[str] = None,
    clock: Clock = utc_now,
    check_file_duplicates: bool = False,
) -> ImportRun:
    """Parse, validate and upload one file; return the finished run."""
    run = ImportRun(
        kind,
        store,
        uploader,
        doctor_id=doctor_id,
        clock=clock,
        check_file_duplicates=check_file_duplicates,
    )
    run.parse_file(path)
    run.upload()
    return run
