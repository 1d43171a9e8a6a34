"""Positional CSV column schemas for bulk import.

Each importable collection has an explicit, ordered column schema. The
coercer maps raw fields onto it by position, and the tokenizer sniffs the
header row by looking for the schema's first column name. Header names are
never used to remap columns.
"""

from dataclasses import dataclass
from typing import Any, Optional

from hospitalms.domain.enums import EntityKind, Gender


# Column kinds understood by the coercer
ID = "id"
STR = "str"
INT = "int"
FLOAT = "float"
BOOL = "bool"
ENUM = "enum"
LIST = "list"
DATE = "date"


@dataclass(frozen=True)
class ColumnSpec:
    """One positional CSV column.

    Attributes:
        name: Field name on the produced record
        kind: One of id, str, int, float, bool, enum, list, date
        default: Value used when the raw field is missing, empty or unparseable.
                 Ignored for ``date`` (today) and ``id`` (placeholder) columns.
        choices: Allowed literals for enum columns (case-sensitive)
        prefix: Placeholder prefix for id columns (PAT, VIS, PRE)
        zero_as_missing: Treat a parsed numeric zero like a missing value
    """
    name: str
    kind: str = STR
    default: Any = ""
    choices: tuple[str, ...] = ()
    prefix: str = ""
    zero_as_missing: bool = True


@dataclass(frozen=True)
class EntitySchema:
    """Ordered column schema for one importable collection."""
    kind: EntityKind
    columns: tuple[ColumnSpec, ...]

    @property
    def key_field(self) -> str:
        return self.columns[0].name

    @property
    def header_marker(self) -> str:
        """Substring whose presence on the first line marks it as a header."""
        return self.columns[0].name

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def column(self, name: str) -> Optional[ColumnSpec]:
        for column in self.columns:
            if column.name == name:
                return column
        return None


PATIENT_SCHEMA = EntitySchema(
    kind=EntityKind.PATIENTS,
    columns=(
        ColumnSpec("patient_id", ID, prefix="PAT"),
        ColumnSpec("full_name", STR, default="Unknown"),
        ColumnSpec("age", INT, default=0),
        ColumnSpec(
            "gender",
            ENUM,
            default=Gender.UNKNOWN.value,
            choices=tuple(g.value for g in Gender),
        ),
        ColumnSpec("blood_group", STR, default="O+"),
        ColumnSpec("phone_number", STR, default="0000000000"),
        ColumnSpec("email", STR, default=""),
        ColumnSpec("emergency_contact", STR, default="0000000000"),
        ColumnSpec("hospital_location", STR, default="Main Hospital"),
        ColumnSpec("bmi", FLOAT, default=22.5),
        ColumnSpec("smoker_status", BOOL, default=False),
        ColumnSpec("alcohol_use", BOOL, default=False),
        ColumnSpec("chronic_conditions", LIST, default=("None",)),
        ColumnSpec("registration_date", DATE),
        ColumnSpec("insurance_type", STR, default="Basic"),
    ),
)

VISIT_SCHEMA = EntitySchema(
    kind=EntityKind.VISITS,
    columns=(
        ColumnSpec("visit_id", ID, prefix="VIS"),
        ColumnSpec("patient_id", STR, default=""),
        ColumnSpec("doctor_id", STR, default=""),
        ColumnSpec("visit_date", DATE),
        ColumnSpec("severity_score", INT, default=0),
        ColumnSpec("visit_type", ENUM, default="OP", choices=("OP", "IP")),
        ColumnSpec("length_of_stay", INT, default=0),
        ColumnSpec("lab_result_glucose", FLOAT, default=0.0),
        ColumnSpec("lab_result_bp", STR, default="120/80"),
        ColumnSpec("previous_visit_gap_days", INT, default=0),
        ColumnSpec("readmitted_30_days", BOOL, default=False),
        ColumnSpec("visit_cost", FLOAT, default=0.0),
    ),
)

PRESCRIPTION_SCHEMA = EntitySchema(
    kind=EntityKind.PRESCRIPTIONS,
    columns=(
        ColumnSpec("prescription_id", ID, prefix="PRE"),
        ColumnSpec("visit_id", STR, default=""),
        ColumnSpec("patient_id", STR, default=""),
        ColumnSpec("doctor_id", STR, default=""),
        ColumnSpec("diagnosis_id", STR, default=""),
        ColumnSpec("diagnosis_description", STR, default=""),
        ColumnSpec("drug_name", STR, default=""),
        ColumnSpec("drug_category", STR, default=""),
        ColumnSpec("dosage", STR, default=""),
        ColumnSpec("quantity", INT, default=1, zero_as_missing=False),
        ColumnSpec("days_supply", INT, default=7, zero_as_missing=False),
        ColumnSpec("prescribed_date", DATE),
        ColumnSpec("cost", FLOAT, default=0.0, zero_as_missing=False),
    ),
)

SCHEMAS: dict[EntityKind, EntitySchema] = {
    schema.kind: schema for schema in (PATIENT_SCHEMA, VISIT_SCHEMA, PRESCRIPTION_SCHEMA)
}


def get_schema(kind: EntityKind | str) -> EntitySchema:
    """Return the column schema for an entity kind.

    Raises:
        ValueError: If kind is not an importable collection
    """
    try:
        return SCHEMAS[EntityKind(kind)]
    except ValueError:
        raise ValueError(
            f"Unsupported import kind: {kind}. Supported: {[k.value for k in EntityKind]}"
        )
