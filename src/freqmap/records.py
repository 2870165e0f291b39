"""Frequency record schema, field extraction and dataset loading.

Records arrive as untrusted JSON objects.  The schema below only checks the
overall shape (an array of objects); individual field values are validated per
record by :class:`~freqmap.markers.MarkerBuilder` so a single malformed row
never rejects an entire dataset.
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator, ValidationError

from .config import ALLELE_FREQUENCY_FIELD, FREQUENCY_FIELD
from .errors import DatasetLoadError

FrequencyRecord = Mapping[str, Any]

RECORDS_SCHEMA: dict[str, Any] = {
    "$id": "freqmap/records.schema.json",
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "gene": {"type": ["string", "null"]},
            "country": {"type": ["string", "null"]},
            "admin_level_1": {"type": ["string", "null"]},
        },
        "additionalProperties": True,
    },
}

_validator = Draft202012Validator(RECORDS_SCHEMA)


@dataclass(frozen=True)
class FieldConfig:
    """Name the record attributes the marker pipeline reads.

    Datasets exported from different tools disagree on the frequency column;
    everything else shares the same names.
    """

    frequency_field: str = FREQUENCY_FIELD
    gene_field: str = "gene"
    longitude_field: str = "longitude"
    latitude_field: str = "latitude"
    country_field: str = "country"
    region_field: str = "admin_level_1"

    @classmethod
    def for_records(cls, records: Sequence[FrequencyRecord]) -> "FieldConfig":
        """Pick the allele-frequency layout when the data clearly uses it."""

        for record in records:
            if not isinstance(record, Mapping):
                continue
            if FREQUENCY_FIELD not in record and ALLELE_FREQUENCY_FIELD in record:
                return ALLELE_FREQUENCY_FIELDS
            return cls()
        return cls()


ALLELE_FREQUENCY_FIELDS = FieldConfig(frequency_field=ALLELE_FREQUENCY_FIELD)


def parse_number(value: object) -> float | None:
    """Return *value* as a finite float, or ``None`` when it is not numeric.

    Numbers and numeric strings are accepted.  Booleans, blanks, ``NaN`` and
    infinities are rejected.
    """

    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def validate_records(payload: object) -> list[dict[str, Any]]:
    """Check *payload* against :data:`RECORDS_SCHEMA` and return it as a list."""

    try:
        _validator.validate(payload)
    except ValidationError as exc:
        location = "/".join(str(part) for part in exc.absolute_path) or "<root>"
        raise DatasetLoadError(f"Invalid dataset at {location}: {exc.message}") from exc
    return [dict(record) for record in payload]  # type: ignore[union-attr]


def load_records(source: Path | str) -> list[dict[str, Any]]:
    """Read a JSON dataset from *source* and validate its shape."""

    path = Path(source)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise DatasetLoadError(f"Unable to read dataset '{path}': {exc}") from exc
    except json.JSONDecodeError as exc:
        raise DatasetLoadError(f"Dataset '{path}' is not valid JSON: {exc}") from exc
    return validate_records(payload)


def unique_genes(
    records: Iterable[FrequencyRecord],
    field_config: FieldConfig | None = None,
) -> list[str]:
    """Return the distinct gene names of *records* in first-seen order."""

    field = (field_config or FieldConfig()).gene_field
    seen: dict[str, None] = {}
    for record in records:
        gene = record.get(field) if isinstance(record, Mapping) else None
        if isinstance(gene, str) and gene:
            seen.setdefault(gene, None)
    return list(seen)


__all__ = [
    "ALLELE_FREQUENCY_FIELDS",
    "FieldConfig",
    "FrequencyRecord",
    "RECORDS_SCHEMA",
    "load_records",
    "parse_number",
    "unique_genes",
    "validate_records",
]
