"""Import outcome models and the Batch Partitioner.

The partitioner collects per-row outcomes in file order and produces the
result object surfaced to the user:

    {valid: [...], errors: [{row, message}], summary: {total, valid, invalid}}

Every data row lands in exactly one of ``valid`` or ``errors``, so
``summary.valid + summary.invalid == summary.total``.
"""

from typing import Any, Optional

import pandas as pd
from pydantic import BaseModel, Field, model_validator

from hospitalms.domain.enums import EntityKind
from hospitalms.domain.ports import Result


class CSVError(BaseModel):
    """A rejected data row.

    Attributes:
        row: 1-based line number in the blank-filtered file (header included)
        message: Message of the first violated rule
    """
    row: int = Field(..., ge=1)
    message: str


class ImportSummary(BaseModel):
    total: int = Field(0, ge=0)
    valid: int = Field(0, ge=0)
    invalid: int = Field(0, ge=0)

    @model_validator(mode="after")
    def check_counts(self) -> "ImportSummary":
        if self.valid + self.invalid != self.total:
            raise ValueError(
                f"valid ({self.valid}) + invalid ({self.invalid}) must equal total ({self.total})"
            )
        return self


class ImportOutcome(BaseModel):
    """Result of parsing and validating one CSV file."""
    kind: EntityKind
    valid: list[dict[str, Any]] = Field(default_factory=list)
    errors: list[CSVError] = Field(default_factory=list)
    summary: ImportSummary = Field(default_factory=ImportSummary)

    def has_valid(self) -> bool:
        return bool(self.valid)

    def to_payload(self) -> dict[str, Any]:
        """Wire shape: {valid, errors: [{row, message}], summary}."""
        return self.model_dump(mode="json", exclude={"kind"})

    def errors_dataframe(self) -> pd.DataFrame:
        """Row errors as a DataFrame with columns row, message."""
        return pd.DataFrame(
            [error.model_dump() for error in self.errors],
            columns=["row", "message"],
        )

    def write_errors_csv(self, path: str) -> int:
        """Write row errors to a CSV file and return the number written."""
        frame = self.errors_dataframe()
        frame.to_csv(path, index=False)
        return len(frame)


class BatchPartitioner:
    """Accumulates per-row results into valid records and row errors.

    Example:
        ```python
        partitioner = BatchPartitioner(EntityKind.PATIENTS)
        for row, result in outcomes:
            partitioner.add(row, result)
        outcome = partitioner.finish()
        ```
    """

    def __init__(self, kind: EntityKind):
        self.kind = EntityKind(kind)
        self._valid: list[dict[str, Any]] = []
        self._errors: list[CSVError] = []
        self._rows: set[int] = set()

    @property
    def total(self) -> int:
        return len(self._valid) + len(self._errors)

    def accept(self, row: int, record: dict[str, Any]) -> None:
        self._claim(row)
        self._valid.append(record)

    def reject(self, row: int, message: str) -> None:
        self._claim(row)
        self._errors.append(CSVError(row=row, message=message))

    def add(self, row: int, result: Result[dict[str, Any]]) -> None:
        """Route a validation Result to valid or errors."""
        if result.is_success():
            self.accept(row, result.value)
        else:
            self.reject(row, result.error or "Invalid row")

    def _claim(self, row: int) -> None:
        if row in self._rows:
            raise ValueError(f"Row {row} was already partitioned")
        self._rows.add(row)

    def finish(self, expected_total: Optional[int] = None) -> ImportOutcome:
        """Build the outcome.

        Parameters:
            expected_total: Number of data rows the tokenizer produced. When
                            given it must match the number of partitioned rows.

        Raises:
            ValueError: If rows were lost between tokenizing and partitioning
        """
        if expected_total is not None and expected_total != self.total:
            raise ValueError(
                f"Partitioned {self.total} rows but {expected_total} data rows were read"
            )
        return ImportOutcome(
            kind=self.kind,
            valid=list(self._valid),
            errors=list(self._errors),
            summary=ImportSummary(
                total=self.total,
                valid=len(self._valid),
                invalid=len(self._errors),
            ),
        )
