"""Row Validator - per-collection rule chains for CSV-imported records.

Rules run in a fixed priority order and short-circuit: only the first
violated rule is reported for a row. Uniqueness and referential checks look
only at the KnownIds snapshot handed in by the caller (and, when asked, at
identifiers already accepted earlier in the same file).
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from hospitalms.domain.enums import EntityKind
from hospitalms.domain.ports import Result, RowValidationError


UNKNOWN_NAME = "Unknown"


@dataclass(frozen=True)
class KnownIds:
    """Read-only snapshot of identifiers that exist before an import starts.

    Attributes:
        patients: Existing patient_id values
        doctors: Existing doctor_id values
        visits: Existing visit_id values
        prescriptions: Existing prescription_id values
        doctor_id: Issuing doctor for a doctor-scoped prescription import
        doctor_visits: visit_id values owned by ``doctor_id``
    """
    patients: frozenset[str] = field(default_factory=frozenset)
    doctors: frozenset[str] = field(default_factory=frozenset)
    visits: frozenset[str] = field(default_factory=frozenset)
    prescriptions: frozenset[str] = field(default_factory=frozenset)
    doctor_id: Optional[str] = None
    doctor_visits: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def of(
        cls,
        patients: Iterable[str] = (),
        doctors: Iterable[str] = (),
        visits: Iterable[str] = (),
        prescriptions: Iterable[str] = (),
        doctor_id: Optional[str] = None,
        doctor_visits: Iterable[str] = (),
    ) -> "KnownIds":
        """Build a snapshot from any iterables of identifiers."""
        return cls(
            patients=frozenset(patients),
            doctors=frozenset(doctors),
            visits=frozenset(visits),
            prescriptions=frozenset(prescriptions),
            doctor_id=doctor_id or None,
            doctor_visits=frozenset(doctor_visits),
        )

    def for_kind(self, kind: EntityKind) -> frozenset[str]:
        """Identifiers of the collection being imported."""
        return {
            EntityKind.PATIENTS: self.patients,
            EntityKind.VISITS: self.visits,
            EntityKind.PRESCRIPTIONS: self.prescriptions,
        }[kind]


# A rule returns an error message, or None when the record passes
Rule = Callable[[dict[str, Any], KnownIds, frozenset[str]], Optional[str]]


def _required(name: str) -> Rule:
    def rule(record, known, seen):
        if not record.get(name):
            return f"Missing {name}"
        return None
    rule.__name__ = f"require_{name}"
    return rule


def _unique(name: str, kind: EntityKind) -> Rule:
    def rule(record, known, seen):
        if record[name] in known.for_kind(kind):
            return f"Duplicate {name}: {record[name]}"
        return None
    rule.__name__ = f"unique_{name}"
    return rule


def _unique_in_file(name: str) -> Rule:
    def rule(record, known, seen):
        if record[name] in seen:
            return f"Duplicate {name} in file: {record[name]}"
        return None
    rule.__name__ = f"unique_in_file_{name}"
    return rule


def _full_name(record, known, seen):
    if not record.get("full_name") or record["full_name"] == UNKNOWN_NAME:
        return "Missing full_name"
    return None


def _age(record, known, seen):
    if not record.get("age") or record["age"] <= 0:
        return "Invalid age"
    return None


def _patient_exists(record, known, seen):
    if record["patient_id"] not in known.patients:
        return f"Patient not found: {record['patient_id']}"
    return None


def _doctor_exists(record, known, seen):
    if record["doctor_id"] not in known.doctors:
        return f"Doctor not found: {record['doctor_id']}"
    return None


def _severity(record, known, seen):
    score = record["severity_score"]
    if score < 0 or score > 5:
        return f"Invalid severity_score: {score}. Must be 0-5"
    return None


def _visit_exists(record, known, seen):
    if record["visit_id"] not in known.visits:
        return f"Visit not found: {record['visit_id']}"
    return None


def _visit_owned_by_doctor(record, known, seen):
    if known.doctor_id and record["visit_id"] not in known.doctor_visits:
        return f"Visit {record['visit_id']} does not belong to doctor {known.doctor_id}"
    return None


def _prescribing_doctor(record, known, seen):
    if known.doctor_id:
        if record["doctor_id"] != known.doctor_id:
            return f"Doctor mismatch: expected {known.doctor_id}, got {record['doctor_id']}"
        return None
    if not record.get("doctor_id"):
        return "Missing doctor_id"
    return _doctor_exists(record, known, seen)


def _minimum(name: str, minimum: float) -> Rule:
    def rule(record, known, seen):
        if record[name] < minimum:
            return f"Invalid {name}: {record[name]}"
        return None
    rule.__name__ = f"minimum_{name}"
    return rule


def _rule_chain(key: str, kind: EntityKind, *rules: Rule) -> tuple[Rule, ...]:
    # identifier present -> not already known -> not repeated in file -> entity rules
    return (_required(key), _unique(key, kind), _unique_in_file(key)) + rules


RULES: dict[EntityKind, tuple[Rule, ...]] = {
    EntityKind.PATIENTS: _rule_chain(
        "patient_id", EntityKind.PATIENTS,
        _full_name,
        _age,
    ),
    EntityKind.VISITS: _rule_chain(
        "visit_id", EntityKind.VISITS,
        _required("patient_id"),
        _patient_exists,
        _required("doctor_id"),
        _doctor_exists,
        _severity,
    ),
    EntityKind.PRESCRIPTIONS: _rule_chain(
        "prescription_id", EntityKind.PRESCRIPTIONS,
        _required("visit_id"),
        _visit_exists,
        _visit_owned_by_doctor,
        _required("patient_id"),
        _prescribing_doctor,
        _required("drug_name"),
        _minimum("quantity", 1),
        _minimum("days_supply", 1),
        _minimum("cost", 0),
    ),
}


class RowValidator:
    """Applies the rule chain of one collection to candidate records.

    Example:
        ```python
        validator = RowValidator(EntityKind.VISITS)
        result = validator.validate(candidate, known_ids)
        if result.is_failure():
            errors.append({"row": row, "message": result.error})
        ```
    """

    def __init__(self, kind: EntityKind):
        self.kind = EntityKind(kind)
        self.rules = RULES[self.kind]

    def prepare(self, record: dict[str, Any], known: KnownIds) -> dict[str, Any]:
        """Fill values implied by the run's scope before rules are checked.

        In a doctor-scoped prescription import an empty doctor_id means
        "the issuing doctor".
        """
        if self.kind == EntityKind.PRESCRIPTIONS and known.doctor_id and not record.get("doctor_id"):
            record["doctor_id"] = known.doctor_id
        return record

    def validate(
        self,
        record: dict[str, Any],
        known: KnownIds,
        seen: Optional[frozenset[str]] = None,
    ) -> Result[dict[str, Any]]:
        """Validate one candidate record.

        Parameters:
            record: Coerced candidate record
            known: Snapshot of pre-existing identifiers
            seen: Identifiers already accepted from this file. None disables
                  the in-file duplicate check.

        Returns:
            Result: success with the record, or failure carrying the first
                    violated rule's message and name in error_details
        """
        seen = seen if seen is not None else frozenset()
        self.prepare(record, known)
        for rule in self.rules:
            message = rule(record, known, seen)
            if message is not None:
                return Result.failure_result(
                    RowValidationError(message, rule=rule.__name__),
                    error_details={"rule": rule.__name__},
                )
        return Result.success_result(record)
