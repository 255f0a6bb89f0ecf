"""
Field placement tables for the stamped templates.

Coordinates are PDF points with the origin at the bottom-left corner of the
page; ``y`` is the text baseline.  Each table is authored once per template
version and must keep the field names below, since existing templates and the
web forms that build payloads both depend on them.

Field maps can also be supplied as JSON, either as a plain mapping::

    {"STUDENT_FULL_NAME": {"page": 0, "x": 72, "y": 658, "size": 10}}

or in the list form produced by the coordinate extractor::

    {"fields": [{"name": "STUDENT_FULL_NAME", "page": 0, "x": 72, "y": 658}]}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from document_errors import FieldMapError

DEFAULT_FIELD_SIZE = 10.0

# Grade tables hold at most this many rows. Rows are this far apart unless
# the field map spaces them differently.
MAX_GRADE_ROWS = 4
GRADE_ROW_SPACING = 20.0

GRADE_BLOCKS = ("ORIGINAL", "PREDICTED")

HEADER_FIELDS = (
    "STUDENT_FULL_NAME",
    "UCI_NUMBER",
    "DOCUMENT_ISSUE_DATE",
    "IAS_SESSION_MONTH_YEAR",
    "IAL_SESSION_MONTH_YEAR",
)


def subject_field(block: str, row: int) -> str:
    return f"{block}_SUBJECT_{row}"


def grade_field(block: str, row: int) -> str:
    return f"{block}_GRADE_{row}"


FIELD_VOCABULARY: tuple[str, ...] = HEADER_FIELDS + tuple(
    name
    for block in GRADE_BLOCKS
    for row in range(1, MAX_GRADE_ROWS + 1)
    for name in (subject_field(block, row), grade_field(block, row))
)


@dataclass(frozen=True)
class FieldSpec:
    page: int
    x: float
    y: float
    size: float = DEFAULT_FIELD_SIZE


FieldMap = Mapping[str, FieldSpec]


def _grade_block(block: str, subject_x: float, grade_x: float, start_y: float, step: float) -> dict[str, FieldSpec]:
    specs: dict[str, FieldSpec] = {}
    for row in range(1, MAX_GRADE_ROWS + 1):
        y = start_y - (row - 1) * step
        specs[subject_field(block, row)] = FieldSpec(0, subject_x, y)
        specs[grade_field(block, row)] = FieldSpec(0, grade_x, y)
    return specs


# Subjects at x=60, grades at x=360, rows 25pt apart, header baseline 705.
EXPECTED_GRADE_FIELDS_V1: dict[str, FieldSpec] = {
    "STUDENT_FULL_NAME": FieldSpec(0, 125, 705),
    "UCI_NUMBER": FieldSpec(0, 125, 685),
    "DOCUMENT_ISSUE_DATE": FieldSpec(0, 440, 755),
    "IAS_SESSION_MONTH_YEAR": FieldSpec(0, 150, 630),
    "IAL_SESSION_MONTH_YEAR": FieldSpec(0, 400, 630),
    **_grade_block("ORIGINAL", 60, 360, 560, 25),
    **_grade_block("PREDICTED", 60, 360, 410, 25),
}

# A4 form with the values sitting inside the printed paragraphs.
EXPECTED_GRADE_FIELDS_V2: dict[str, FieldSpec] = {
    "DOCUMENT_ISSUE_DATE": FieldSpec(0, 430, 735),
    "STUDENT_FULL_NAME": FieldSpec(0, 72, 658),
    "UCI_NUMBER": FieldSpec(0, 320, 658),
    "IAS_SESSION_MONTH_YEAR": FieldSpec(0, 230, 644),
    "IAL_SESSION_MONTH_YEAR": FieldSpec(0, 280, 468),
    **_grade_block("ORIGINAL", 120, 400, 580, GRADE_ROW_SPACING),
    **_grade_block("PREDICTED", 120, 400, 380, GRADE_ROW_SPACING),
}

FIELD_MAPS: dict[str, dict[str, FieldSpec]] = {
    "v1": EXPECTED_GRADE_FIELDS_V1,
    "v2": EXPECTED_GRADE_FIELDS_V2,
}


def get_field_map(version: str) -> dict[str, FieldSpec]:
    try:
        return FIELD_MAPS[version]
    except KeyError:
        raise FieldMapError(
            f"Unknown field map '{version}'. Expected one of: {', '.join(sorted(FIELD_MAPS))}."
        ) from None


def _parse_spec(name: str, raw: Any) -> FieldSpec:
    if not isinstance(raw, Mapping):
        raise FieldMapError(f"Field '{name}' must be an object with page/x/y/size.")
    try:
        page = int(raw.get("page", 0))
        x = float(raw["x"])
        y = float(raw["y"])
        size = float(raw.get("size", DEFAULT_FIELD_SIZE))
    except KeyError as exc:
        raise FieldMapError(f"Field '{name}' is missing {exc.args[0]!r}.") from exc
    except (TypeError, ValueError) as exc:
        raise FieldMapError(f"Field '{name}' has a non-numeric coordinate: {exc}") from exc
    if page < 0:
        raise FieldMapError(f"Field '{name}' has a negative page index.")
    if size <= 0:
        raise FieldMapError(f"Field '{name}' must have a positive size.")
    return FieldSpec(page=page, x=x, y=y, size=size)


def field_map_from_dict(data: Any) -> dict[str, FieldSpec]:
    if not isinstance(data, Mapping):
        raise FieldMapError("Field map must be a JSON object.")

    entries = data.get("fields") if "fields" in data else data
    if isinstance(entries, list):
        field_map: dict[str, FieldSpec] = {}
        for entry in entries:
            name = entry.get("name") if isinstance(entry, Mapping) else None
            if not name:
                raise FieldMapError("Each entry in 'fields' must define a 'name'.")
            field_map[str(name)] = _parse_spec(str(name), entry)
        return field_map
    if isinstance(entries, Mapping):
        return {str(name): _parse_spec(str(name), raw) for name, raw in entries.items()}
    raise FieldMapError("'fields' must be a list or an object.")


def load_field_map(path: Path) -> dict[str, FieldSpec]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise FieldMapError(f"Invalid JSON in {path.name}: {exc}") from exc
    return field_map_from_dict(data)
