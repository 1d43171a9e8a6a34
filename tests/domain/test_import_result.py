"""Tests for the import outcome models and the batch partitioner."""

import pandas as pd
import pytest
from pydantic import ValidationError

from hospitalms.domain.enums import EntityKind
from hospitalms.domain.import_result import BatchPartitioner, CSVError, ImportSummary
from hospitalms.domain.ports import Result


class TestImportSummary:
    """Test import summary."""

    def test_counts_must_add_up(self):
        """Test counts must add up."""
        with pytest.raises(ValidationError):
            ImportSummary(total=3, valid=1, invalid=1)

    def test_empty_summary(self):
        """Test a summary with no rows."""
        summary = ImportSummary()
        assert (summary.total, summary.valid, summary.invalid) == (0, 0, 0)


class TestCSVError:
    """Test CSVError row entries."""

    def test_row_is_one_based(self):
        """Test row is one based."""
        with pytest.raises(ValidationError):
            CSVError(row=0, message="bad")


class TestBatchPartitioner:
    """Every row ends up in exactly one of valid or errors."""

    def test_routes_results_in_file_order(self):
        """Test routes results in file order."""
        partitioner = BatchPartitioner(EntityKind.PATIENTS)
        partitioner.add(2, Result.success_result({"patient_id": "PAT1"}))
        partitioner.add(3, Result.failure_result("Invalid age"))
        partitioner.add(4, Result.success_result({"patient_id": "PAT2"}))

        outcome = partitioner.finish(expected_total=3)

        assert [r["patient_id"] for r in outcome.valid] == ["PAT1", "PAT2"]
        assert [(e.row, e.message) for e in outcome.errors] == [(3, "Invalid age")]
        assert outcome.summary.model_dump() == {"total": 3, "valid": 2, "invalid": 1}

    def test_row_cannot_be_partitioned_twice(self):
        """Test row cannot be partitioned twice."""
        partitioner = BatchPartitioner(EntityKind.VISITS)
        partitioner.accept(2, {"visit_id": "VIS1"})
        with pytest.raises(ValueError, match="already partitioned"):
            partitioner.reject(2, "Duplicate visit_id: VIS1")

    def test_lost_rows_are_detected(self):
        """Test lost rows are detected."""
        partitioner = BatchPartitioner(EntityKind.VISITS)
        partitioner.accept(1, {"visit_id": "VIS1"})
        with pytest.raises(ValueError, match="1 rows but 2 data rows"):
            partitioner.finish(expected_total=2)

    def test_failure_without_message_gets_generic_text(self):
        """Test failure without message gets generic text."""
        partitioner = BatchPartitioner(EntityKind.PATIENTS)
        partitioner.add(1, Result(success=False))
        assert partitioner.finish().errors[0].message == "Invalid row"


class TestImportOutcome:
    """Test import outcome."""

    @pytest.fixture
    def outcome(self):
        partitioner = BatchPartitioner(EntityKind.PRESCRIPTIONS)
        partitioner.accept(2, {"prescription_id": "PRE1"})
        partitioner.reject(3, "Visit not found: VIS9")
        partitioner.reject(5, "Missing drug_name")
        return partitioner.finish()

    def test_payload_shape(self, outcome):
        """Test the JSON shape of an import outcome."""
        payload = outcome.to_payload()
        assert set(payload) == {"valid", "errors", "summary"}
        assert payload["errors"][0] == {"row": 3, "message": "Visit not found: VIS9"}
        assert outcome.has_valid()

    def test_errors_dataframe(self, outcome):
        """Test exporting row errors as a DataFrame."""
        frame = outcome.errors_dataframe()
        assert list(frame.columns) == ["row", "message"]
        assert frame["row"].tolist() == [3, 5]

    def test_errors_dataframe_without_errors_keeps_columns(self):
        """Test errors dataframe without errors keeps columns."""
        outcome = BatchPartitioner(EntityKind.PATIENTS).finish()
        assert list(outcome.errors_dataframe().columns) == ["row", "message"]
        assert not outcome.has_valid()

    def test_write_errors_csv(self, outcome, tmp_path):
        """Test writing row errors to a CSV file."""
        path = tmp_path / "errors.csv"
        assert outcome.write_errors_csv(str(path)) == 2
        written = pd.read_csv(path)
        assert written["message"].tolist() == ["Visit not found: VIS9", "Missing drug_name"]
