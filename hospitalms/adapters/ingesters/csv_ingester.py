"""CSV Bulk-Import Ingester.

Turns the raw text of an uploaded CSV file into an ImportOutcome: every data
row is tokenized, coerced against the collection's positional schema,
validated against a snapshot of known identifiers and finally routed to the
valid list or the row-error list.

Security Impact:
    - File-level problems (wrong extension, unreadable, empty) are raised
      before any row is processed
    - Each row is wrapped in try/except so one malformed line cannot abort
      the whole import
    - Rejected rows are logged at DEBUG with their row number only

Architecture:
    - Adapter between the filesystem/upload and the domain pipeline
    - Depends only on domain modules (schema, coercion, validation, result)
    - Streaming tokenizer: rows are produced lazily in file order
"""

import logging
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from hospitalms.domain.coercion import Clock, coerce_row, utc_now
from hospitalms.domain.csv_schema import get_schema
from hospitalms.domain.enums import EntityKind
from hospitalms.domain.import_result import BatchPartitioner, ImportOutcome
from hospitalms.domain.models import model_for
from hospitalms.domain.ports import (
    EmptySourceError,
    Result,
    SourceNotFoundError,
    UnsupportedSourceError,
)
from hospitalms.domain.validation import KnownIds, RowValidator

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".csv",)


def tokenize(text: str, header_marker: str) -> Iterator[tuple[int, list[str]]]:
    """Split CSV text into numbered rows of trimmed fields.

    Blank lines are dropped first. If the first remaining line contains
    ``header_marker`` (case-sensitive) it is treated as the header and
    skipped. Row numbers are 1-based positions in the blank-filtered line
    list, so the first data row is 2 after a header and 1 without one.

    Parameters:
        text: Raw file content
        header_marker: Name of the schema's first column

    Yields:
        tuple: (row_number, fields)
    """
    lines = [line for line in text.split("\n") if line.strip()]
    start = 1 if lines and header_marker in lines[0] else 0
    for index in range(start, len(lines)):
        fields = [field.strip() for field in lines[index].strip().split(",")]
        yield index + 1, fields


class CSVIngester:
    """CSV ingester for one importable collection.

    Key Features:
        - Positional column mapping from the collection's schema
        - Header sniffing on the first non-blank line
        - Per-row fail-safe: unexpected errors become row errors
        - Optional in-file duplicate detection

    Example Usage:
        ```python
        ingester = CSVIngester(EntityKind.VISITS)
        outcome = ingester.ingest("visits.csv", store.snapshot())
        print(outcome.summary)
        ```
    """

    def __init__(
        self,
        kind: Union[EntityKind, str],
        clock: Clock = utc_now,
        check_file_duplicates: bool = False,
    ):
        """Initialize the ingester.

        Parameters:
            kind: Collection to import (patients, visits, prescriptions)
            clock: Returns the current UTC time, used for default dates and
                   placeholder identifiers
            check_file_duplicates: Also reject identifiers repeated within
                                   the same file
        """
        self.kind = EntityKind(kind)
        self.schema = get_schema(self.kind)
        self.validator = RowValidator(self.kind)
        self.model = model_for(self.kind.value)
        self.clock = clock
        self.check_file_duplicates = check_file_duplicates

    def can_ingest(self, source: str) -> bool:
        """Only files with a .csv extension are accepted."""
        return Path(source).suffix.lower() in SUPPORTED_EXTENSIONS

    def read_source(self, source: str) -> str:
        """Read a CSV file as text.

        Raises:
            UnsupportedSourceError: If the file is not a .csv file
            SourceNotFoundError: If the file does not exist or cannot be read
            EmptySourceError: If the file holds no non-blank line
        """
        if not self.can_ingest(source):
            raise UnsupportedSourceError(
                "Please select a CSV file",
                source=source,
                adapter=type(self).__name__,
            )

        path = Path(source)
        if not path.is_file():
            raise SourceNotFoundError(f"CSV file not found: {source}", source=source)

        try:
            text = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceNotFoundError(f"Failed to read file: {e}", source=source) from e

        if not text.strip():
            raise EmptySourceError("CSV file is empty", source=source)
        return text

    def ingest(self, source: str, known: KnownIds) -> ImportOutcome:
        """Read, parse and validate a CSV file."""
        text = self.read_source(source)
        logger.info(f"Importing {self.kind.value} from {source}")
        return self.parse(text, known)

    def parse(self, text: str, known: KnownIds) -> ImportOutcome:
        """Parse and validate CSV text against a snapshot of known identifiers.

        Parameters:
            text: Raw CSV content
            known: Identifiers that existed before this run; never mutated

        Returns:
            ImportOutcome: valid records, row errors and summary counts
        """
        partitioner = BatchPartitioner(self.kind)
        seen: set[str] = set()

        for row_number, fields in tokenize(text, self.schema.header_marker):
            result = self._process_row(row_number, fields, known, seen)
            partitioner.add(row_number, result)
            if result.is_success():
                if self.check_file_duplicates:
                    seen.add(result.value[self.schema.key_field])
            else:
                logger.debug(f"Row {row_number} rejected: {result.error}")

        outcome = partitioner.finish()
        logger.info(
            f"Parsed {self.kind.value}: {outcome.summary.total} rows, "
            f"{outcome.summary.valid} valid, {outcome.summary.invalid} invalid"
        )
        return outcome

    def _process_row(
        self,
        row_number: int,
        fields: list[str],
        known: KnownIds,
        seen: set[str],
    ) -> Result[dict[str, Any]]:
        try:
            candidate = coerce_row(self.schema, fields, row_number - 1, self.clock)
            in_file: Optional[frozenset[str]] = frozenset(seen) if self.check_file_duplicates else None
            result = self.validator.validate(candidate, known, in_file)
            if result.is_failure():
                return result
            record = self.model.model_validate(result.value).to_document()
            return Result.success_result(record)
        except (PydanticValidationError, ValueError, TypeError, KeyError) as e:
            return Result.failure_result(
                f"Invalid data format: {e}",
                error_type=type(e).__name__,
                error_details={"row": row_number},
            )
