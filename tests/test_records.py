"""Tests for dataset loading and record field helpers."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from freqmap.errors import DatasetLoadError
from freqmap.records import (
    ALLELE_FREQUENCY_FIELDS,
    FieldConfig,
    load_records,
    parse_number,
    unique_genes,
    validate_records,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(0.5, 0.5), (3, 3.0), ("0.25", 0.25), (" -12.5 ", -12.5), ("1e-3", 0.001)],
)
def test_parse_number_accepts_numbers_and_numeric_strings(value: object, expected: float) -> None:
    assert parse_number(value) == pytest.approx(expected)


@pytest.mark.parametrize("value", [None, "", "   ", "abc", "nan", "inf", float("nan"), True, [1]])
def test_parse_number_rejects_everything_else(value: object) -> None:
    assert parse_number(value) is None


def test_field_config_detects_allele_layout() -> None:
    records = [{"gene": "A", "average_allele_frequency": 0.2, "longitude": 0, "latitude": 0}]

    assert FieldConfig.for_records(records) == ALLELE_FREQUENCY_FIELDS
    assert FieldConfig.for_records([{"frequency": 0.1}]) == FieldConfig()
    assert FieldConfig.for_records([]) == FieldConfig()


def test_unique_genes_keeps_first_seen_order(sample_records: list[dict]) -> None:
    records = sample_records + [{"gene": "BRCA1"}, {"gene": None}, {"gene": ""}]

    assert unique_genes(records) == ["BRCA1", "TP53"]


def test_load_records_reads_json_array(tmp_path: Path, sample_records: list[dict]) -> None:
    path = tmp_path / "data.json"
    path.write_text(json.dumps(sample_records), encoding="utf-8")

    records = load_records(path)

    assert len(records) == 5
    assert records[0]["country"] == "France"


def test_load_records_rejects_non_array(tmp_path: Path) -> None:
    path = tmp_path / "data.json"
    path.write_text(json.dumps({"gene": "BRCA1"}), encoding="utf-8")

    with pytest.raises(DatasetLoadError, match="Invalid dataset"):
        load_records(path)


def test_load_records_reports_bad_json_and_missing_files(tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("[{", encoding="utf-8")

    with pytest.raises(DatasetLoadError, match="not valid JSON"):
        load_records(broken)
    with pytest.raises(DatasetLoadError, match="Unable to read"):
        load_records(tmp_path / "missing.json")


def test_validate_records_points_at_offending_item() -> None:
    with pytest.raises(DatasetLoadError, match="1/gene"):
        validate_records([{"gene": "A"}, {"gene": 5}])


def test_validate_records_leaves_values_to_marker_builder() -> None:
    records = validate_records([{"gene": "A", "frequency": "not a number"}])

    assert records == [{"gene": "A", "frequency": "not a number"}]
