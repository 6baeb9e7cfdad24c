"""CLI entry point for api-notary."""

import importlib
import os
import sys
from pathlib import Path

import click

from api_notary.application import NotarizedApplication
from api_notary.config import LOG_LEVELS, configure_logging, settings
from api_notary.document.spec import SpecDocument
from api_notary.errors import NotaryError


def detect_format(path: Path, fmt: str) -> str:
    """Resolve 'auto' to 'json' or 'yaml' from the file suffix."""
    if fmt != "auto":
        return fmt
    if path.suffix.lower() in (".yaml", ".yml"):
        return "yaml"
    if path.suffix.lower() == ".json":
        return "json"
    return settings.OUTPUT_FORMAT


def load_document(target: str) -> SpecDocument:
    """Import ``module:attr`` and return its built document.

    ``attr`` may be a NotarizedApplication, a SpecDocument, or a zero-argument
    callable returning either.
    """
    module_name, _, attr = target.partition(":")
    if not attr:
        raise click.BadParameter(f"expected 'module:attribute', got '{target}'", param_hint="TARGET")
    # targets are named relative to the directory the command runs in
    cwd = os.getcwd()
    if cwd not in sys.path:
        sys.path.insert(0, cwd)
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import '{module_name}': {e}", param_hint="TARGET") from e
    try:
        obj = getattr(module, attr)
    except AttributeError as e:
        raise click.BadParameter(f"'{module_name}' has no attribute '{attr}'", param_hint="TARGET") from e

    if callable(obj) and not isinstance(obj, (NotarizedApplication, SpecDocument)):
        obj = obj()
    if isinstance(obj, SpecDocument):
        return obj
    if isinstance(obj, NotarizedApplication):
        return obj.document if obj.holder.ready else obj.build()
    raise click.BadParameter(f"'{target}' is not a NotarizedApplication or SpecDocument", param_hint="TARGET")


@click.group()
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Logging level (default from API_NOTARY_LOG_LEVEL).",
)
def main(log_level: str | None):
    """API Notary: build OpenAPI documents from notarized routes."""
    configure_logging(log_level)


@main.command()
@click.argument("target")
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Output file for the document.")
@click.option("--format", "fmt", default="auto", type=click.Choice(["auto", "json", "yaml"]), help="Document format.")
def export(target: str, output: Path, fmt: str):
    """Build the document exposed by TARGET (module:attribute) and write it."""
    try:
        document = load_document(target)
    except NotaryError as e:
        raise click.ClickException(str(e)) from e

    fmt = detect_format(output, fmt)
    text = document.to_yaml() if fmt == "yaml" else document.to_json() + "\n"
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    click.echo(f"Wrote {output} ({fmt}, {len(document.path_items)} paths, {len(document.schema_items)} schemas)")


@main.command()
@click.argument("target")
def paths(target: str):
    """List the path templates and methods documented by TARGET."""
    try:
        document = load_document(target)
    except NotaryError as e:
        raise click.ClickException(str(e)) from e

    for item in document.path_items:
        methods = ", ".join(op.method for op in item.operations).upper()
        click.echo(f"  {methods:10s} {item.path}")
