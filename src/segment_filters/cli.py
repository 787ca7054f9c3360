"""Segment filters CLI.

Inspect and convert filter files: `segment-filters validate filter.json`.
Files may hold either a filter tree or a legacy tuple filter; the format is
detected from the content.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import pandas as pd
import typer

from segment_filters.config import settings
from segment_filters.contracts.tree import FilterTree
from segment_filters.contracts.validate import validate_filter, validate_filter_tree
from segment_filters.engine.evaluator import preview as preview_tree
from segment_filters.exceptions import ConversionError
from segment_filters.legacy_ops import (
    FilterComposite,
    composite_to_tree,
    flat_to_nested,
    nested_to_flat,
    node_kind,
    tree_to_composite,
)
from segment_filters.orchestrator.editor import format_filter
from segment_filters.serializer import (
    deserialize_filter,
    parse_tree,
    serialize_filter,
    serialize_tree,
)
from segment_filters.util.logging import configure_logging

app = typer.Typer(add_completion=False, no_args_is_help=True)


class Format(str, Enum):
    tree = "tree"
    legacy = "legacy"


@app.callback()
def main() -> None:
    """Segment filters CLI."""
    configure_logging(settings.log_level)


def _load_filter(path: Path) -> Union[FilterTree, FilterComposite]:
    if not path.exists():
        typer.echo(f"File not found: {path}")
        raise typer.Exit(1)
    text = path.read_text()
    try:
        raw = json.loads(text)
    except (ValueError, RecursionError):
        typer.echo(f"Not valid JSON: {path}")
        raise typer.Exit(1)

    if isinstance(raw, dict) and "root" in raw:
        loaded = parse_tree(raw)
    elif isinstance(raw, list) and raw and all(node_kind(n) is not None for n in raw):
        # flat form, as printed by `flatten`
        loaded = flat_to_nested(raw)
    else:
        loaded = deserialize_filter(text)
    if loaded is None:
        typer.echo(f"Not a filter tree or legacy filter: {path}")
        raise typer.Exit(1)
    return loaded


def _load_field_types(path: Path) -> dict[str, str]:
    if not path.exists():
        typer.echo(f"File not found: {path}")
        raise typer.Exit(1)
    try:
        raw = json.loads(path.read_text())
    except (ValueError, RecursionError):
        typer.echo(f"Not valid JSON: {path}")
        raise typer.Exit(1)
    if not isinstance(raw, dict) or not all(isinstance(v, str) for v in raw.values()):
        typer.echo(f"Field types must be a JSON object of attribute to type: {path}")
        raise typer.Exit(1)
    return raw


def _as_tree(loaded: Union[FilterTree, FilterComposite]) -> FilterTree:
    if isinstance(loaded, FilterTree):
        return loaded
    try:
        return composite_to_tree(loaded)
    except ConversionError as e:
        typer.echo(f"Conversion failed: {e.message}")
        raise typer.Exit(1)


@app.command()
def validate(
    path: Path = typer.Argument(..., help="Filter JSON file"),
    field_types: Optional[Path] = typer.Option(
        None, "--field-types", "-t", help="JSON object mapping attribute to field type"
    ),
) -> None:
    """Report every problem in a filter file."""
    loaded = _load_filter(path)
    if isinstance(loaded, FilterTree):
        types = _load_field_types(field_types) if field_types else None
        result = validate_filter_tree(loaded, field_types=types)
    else:
        result = validate_filter(loaded)

    if result.is_valid:
        typer.echo("valid")
        return
    typer.echo("\n".join(result.errors))
    raise typer.Exit(1)


@app.command()
def convert(
    path: Path = typer.Argument(..., help="Filter JSON file"),
    to: Format = typer.Option(..., "--to", help="Target format"),
) -> None:
    """Convert between the tree and legacy tuple formats."""
    loaded = _load_filter(path)
    if to == Format.tree:
        typer.echo(serialize_tree(_as_tree(loaded)))
        return

    if isinstance(loaded, FilterTree):
        try:
            loaded = tree_to_composite(loaded)
        except ConversionError as e:
            typer.echo(f"Conversion failed: {e.message}")
            raise typer.Exit(1)
    typer.echo(serialize_filter(loaded))


@app.command()
def flatten(path: Path = typer.Argument(..., help="Filter JSON file")) -> None:
    """Print a filter as a flat list of conditions (OR groups stay whole)."""
    loaded = _load_filter(path)
    if isinstance(loaded, FilterTree):
        try:
            loaded = tree_to_composite(loaded)
        except ConversionError as e:
            typer.echo(f"Conversion failed: {e.message}")
            raise typer.Exit(1)
    typer.echo(serialize_filter(nested_to_flat(loaded)))


@app.command()
def summary(path: Path = typer.Argument(..., help="Filter JSON file")) -> None:
    """Print a filter as a readable formula."""
    tree = _as_tree(_load_filter(path))
    typer.echo(format_filter(tree) or "(matches everything)")


@app.command()
def preview(
    path: Path = typer.Argument(..., help="Filter JSON file"),
    data: Path = typer.Option(..., "--data", "-d", help="CSV of visitor records"),
) -> None:
    """Count how many records in a CSV the filter selects."""
    if not data.exists():
        typer.echo(f"Data file not found: {data}")
        raise typer.Exit(1)
    tree = _as_tree(_load_filter(path))
    df = pd.read_csv(data)
    try:
        result = preview_tree(tree, df)
    except ValueError as e:
        typer.echo(f"Cannot evaluate filter: {e}")
        raise typer.Exit(1)

    for w in result.warnings:
        typer.echo(f"warning: {w}")
    typer.echo(f"{result.matched} of {result.total} records ({result.percent}%)")
