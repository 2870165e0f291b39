"""Typer-based CLI entry point."""

from __future__ import annotations

import functools
import logging
from collections import Counter
from pathlib import Path
from typing import Optional

import typer
from rich import print
from rich.console import Console
from rich.table import Table

from .app import run
from .basemaps import BasemapCatalog, default_catalog
from .config import DEFAULT_BASE_LAYER
from .errors import BasemapCatalogError, DatasetLoadError, FreqMapError
from .icon_renderer import render_pie_svg
from .markers import MarkerBuilder
from .records import FieldConfig, load_records

app = typer.Typer(help="Allele frequency map viewer")


def _handle_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (DatasetLoadError, BasemapCatalogError) as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(1) from exc
        except FreqMapError as exc:
            typer.echo(f"Unexpected error: {exc}", err=True)
            raise typer.Exit(1) from exc

    return wrapper


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_catalog(catalog: Optional[Path]) -> BasemapCatalog:
    return BasemapCatalog.load(catalog) if catalog is not None else default_catalog()


def _field_config(records: list, frequency_field: Optional[str]) -> FieldConfig:
    if frequency_field:
        return FieldConfig(frequency_field=frequency_field)
    return FieldConfig.for_records(records)


@app.command()
@_handle_errors
def show(
    dataset: Path = typer.Argument(..., exists=True, dir_okay=False, help="Dataset JSON file"),
    basemap: str = typer.Option(DEFAULT_BASE_LAYER, "--basemap", help="Initial basemap"),
    catalog: Optional[Path] = typer.Option(None, "--catalog", exists=True, dir_okay=False),
    frequency_field: Optional[str] = typer.Option(None, "--frequency-field"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Open the interactive map window for DATASET."""

    _configure_logging(verbose)
    records = load_records(dataset)
    basemaps = _load_catalog(catalog)
    if basemap not in basemaps:
        raise BasemapCatalogError(f'Base layer "{basemap}" not found')

    exit_code = run(
        records,
        catalog=basemaps,
        base_layer=basemap,
        field_config=_field_config(records, frequency_field),
        title=dataset.name,
    )
    raise typer.Exit(exit_code)


@app.command()
@_handle_errors
def genes(
    dataset: Path = typer.Argument(..., exists=True, dir_okay=False, help="Dataset JSON file"),
    frequency_field: Optional[str] = typer.Option(None, "--frequency-field"),
) -> None:
    """List the genes of DATASET with valid and total record counts."""

    _configure_logging(False)
    records = load_records(dataset)
    fields = _field_config(records, frequency_field)

    totals: Counter[str] = Counter()
    valid: Counter[str] = Counter()
    builder = MarkerBuilder(field_config=fields)
    for record in records:
        gene = record.get(fields.gene_field)
        label = str(gene) if gene else "Unknown"
        totals[label] += 1
        if builder.build(record) is not None:
            valid[label] += 1

    table = Table(title=f"Genes in {dataset.name}")
    table.add_column("Gene")
    table.add_column("Valid", justify="right")
    table.add_column("Total", justify="right")
    for label, total in totals.items():
        table.add_row(label, str(valid[label]), str(total))
    Console().print(table)


@app.command()
@_handle_errors
def icon(
    frequency: float = typer.Argument(..., help="Frequency between 0 and 1"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the SVG here"),
) -> None:
    """Render the pie icon for FREQUENCY as SVG."""

    svg = render_pie_svg(frequency)
    if output is None:
        typer.echo(svg.decode("utf-8"))
        return
    output.write_bytes(svg)
    print(f"[green]Wrote {output}")


@app.command()
@_handle_errors
def basemaps(
    catalog: Optional[Path] = typer.Option(None, "--catalog", exists=True, dir_okay=False),
) -> None:
    """List the available basemaps."""

    entries = _load_catalog(catalog)
    table = Table(title="Basemaps")
    table.add_column("Name")
    table.add_column("Kind")
    table.add_column("Max zoom", justify="right")
    table.add_column("URL template")
    for name, config in entries.items():
        table.add_row(name, config.kind.value, str(config.max_zoom), config.resolved_template)
    Console().print(table)


if __name__ == "__main__":  # pragma: no cover
    app()
