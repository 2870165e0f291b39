"""Tests for the command line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from freqmap.cli import app
from freqmap.icon_renderer import render_pie_svg

runner = CliRunner()


@pytest.fixture
def dataset(tmp_path: Path, sample_records: list[dict]) -> Path:
    records = sample_records + [{"gene": "TP53", "frequency": "n/a", "longitude": 0, "latitude": 0}]
    path = tmp_path / "data.json"
    path.write_text(json.dumps(records), encoding="utf-8")
    return path


def test_genes_lists_valid_and_total_counts(dataset: Path) -> None:
    result = runner.invoke(app, ["genes", str(dataset)])

    assert result.exit_code == 0, result.output
    assert "Genes in data.json" in result.output
    rows = {}
    for line in result.output.splitlines():
        cells = line.replace("│", " ").split()
        if cells and cells[0] in {"BRCA1", "TP53"}:
            rows[cells[0]] = cells[1:3]
    assert rows == {"BRCA1": ["3", "3"], "TP53": ["2", "3"]}


def test_icon_prints_svg() -> None:
    result = runner.invoke(app, ["icon", "0.25"])

    assert result.exit_code == 0
    assert result.output.strip() == render_pie_svg(0.25).decode("utf-8")


def test_icon_writes_file(tmp_path: Path) -> None:
    output = tmp_path / "icon.svg"

    result = runner.invoke(app, ["icon", "0.75", "--output", str(output)])

    assert result.exit_code == 0
    assert output.read_bytes() == render_pie_svg(0.75)
    assert "Wrote" in result.output


def test_basemaps_lists_catalog() -> None:
    result = runner.invoke(app, ["basemaps"])

    assert result.exit_code == 0
    assert "OpenStreetMap" in result.output
    assert "Esri Topo" in result.output


def test_invalid_dataset_exits_with_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text('{"gene": "BRCA1"}', encoding="utf-8")

    result = runner.invoke(app, ["genes", str(path)])

    assert result.exit_code == 1
    assert "Error: Invalid dataset" in result.output


def test_show_rejects_unknown_basemap(dataset: Path) -> None:
    result = runner.invoke(app, ["show", str(dataset), "--basemap", "Moon"])

    assert result.exit_code == 1
    assert 'Base layer "Moon" not found' in result.output
