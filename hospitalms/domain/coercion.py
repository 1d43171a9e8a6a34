"""Field Coercer - raw CSV strings to typed candidate records.

Coercion never fails on bad data: every column falls back to its schema
default when the raw value is missing, empty or unparseable. Rules:

    - int: leading integer of the string ("42abc" -> 42, "3.9" -> 3)
    - float: leading decimal literal ("22.5kg" -> 22.5)
    - numeric zero counts as missing unless the column opts out
    - bool: "true" or "1" is True, anything else False
    - enum: exact, case-sensitive literal or the column default
    - list: one outer pair of double quotes stripped, split on ";", trimmed
    - date: the raw string, or today's date (YYYY-MM-DD) when missing
    - id: the raw string, or <PREFIX><epoch millis>_<line index> when missing
"""

import re
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from hospitalms.domain.csv_schema import (
    BOOL,
    DATE,
    ENUM,
    FLOAT,
    ID,
    INT,
    LIST,
    ColumnSpec,
    EntitySchema,
)

Clock = Callable[[], datetime]

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

TRUE_LITERALS = frozenset({"true", "1"})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_leading_int(raw: Optional[str]) -> Optional[int]:
    """Parse the leading integer of a string, or None if there is none."""
    if not raw:
        return None
    match = _LEADING_INT.match(raw)
    return int(match.group(1)) if match else None


def parse_leading_float(raw: Optional[str]) -> Optional[float]:
    """Parse the leading decimal literal of a string, or None if there is none."""
    if not raw:
        return None
    match = _LEADING_FLOAT.match(raw)
    return float(match.group(1)) if match else None


def parse_bool(raw: Optional[str]) -> bool:
    return raw in TRUE_LITERALS


def parse_list(raw: Optional[str], default: Sequence[str] = ("None",)) -> list[str]:
    """Split a semicolon-delimited list, stripping one pair of outer quotes.

    ``"Diabetes;Asthma"`` (with the quotes) becomes ``["Diabetes", "Asthma"]``.
    Items are trimmed but kept even when empty; only an empty value as a
    whole yields the default list.
    """
    if not raw:
        return list(default)
    if raw.startswith('"') and raw.endswith('"'):
        raw = raw[1:-1]
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(";")]


def placeholder_id(prefix: str, line_index: int, now: datetime) -> str:
    """Build a probably-unique identifier for a row that has none."""
    return f"{prefix}{int(now.timestamp() * 1000)}_{line_index}"


def coerce_value(column: ColumnSpec, raw: Optional[str], line_index: int, now: datetime) -> Any:
    """Coerce one raw field according to its column spec."""
    if column.kind == ID:
        return raw or placeholder_id(column.prefix, line_index, now)

    if column.kind == DATE:
        return raw or now.date().isoformat()

    if column.kind == INT:
        value = parse_leading_int(raw)
        if value is None or (value == 0 and column.zero_as_missing):
            return column.default
        return value

    if column.kind == FLOAT:
        value = parse_leading_float(raw)
        if value is None or (value == 0 and column.zero_as_missing):
            return column.default
        return value

    if column.kind == BOOL:
        return parse_bool(raw)

    if column.kind == ENUM:
        return raw if raw in column.choices else column.default

    if column.kind == LIST:
        return parse_list(raw, column.default)

    return raw or column.default


def coerce_row(
    schema: EntitySchema,
    fields: Sequence[str],
    line_index: int,
    clock: Clock = utc_now,
) -> dict[str, Any]:
    """Map positional fields onto the schema and coerce each value.

    Parameters:
        schema: Column schema of the target collection
        fields: Raw, already-trimmed string fields in file order
        line_index: 0-based index of the line in the blank-filtered file,
                    used only for placeholder identifiers
        clock: Returns the current time (UTC)

    Returns:
        dict: Candidate record keyed by column name. Fields beyond the
              schema are ignored; missing trailing fields take defaults.
    """
    now = clock()
    record: dict[str, Any] = {}
    for position, column in enumerate(schema.columns):
        raw = fields[position] if position < len(fields) else None
        record[column.name] = coerce_value(column, raw, line_index, now)
    return record
