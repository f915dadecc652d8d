"""Click CLI for decoding PSS/E dynamic data files."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import click

from powerdyn.config import BUNDLED_METADATA_DIR, derive_toml_path, detect_format
from powerdyn.decode.records import DecodeResult, IssueKind, NamedRecords
from powerdyn.schema.models import SchemaRegistry
from powerdyn.settings import (
    LOG_LEVELS,
    Settings,
    get_settings_path,
    load_settings,
    resolve_log_level,
    resolve_metadata_dir,
    save_settings,
)

logger = logging.getLogger(__name__)

FORMAT_CHOICES = click.Choice(["auto", "dyr", "toml"])


class Context:
    """Holds the schema registry derived from --metadata-dir / --no-metadata / settings."""

    def __init__(self, metadata_dir: Path | None = None, no_metadata: bool = False):
        self._explicit_dir = metadata_dir
        self._no_metadata = no_metadata
        self._registry: SchemaRegistry | None = None
        self._resolved = False

    def _resolve(self):
        if not self._resolved:
            from powerdyn.schema.loader import load_schema_registry

            metadata_dir = resolve_metadata_dir(self._explicit_dir, self._no_metadata)
            if metadata_dir is not None:
                logger.debug("Using metadata directory: %s", metadata_dir)
                self._registry = load_schema_registry(metadata_dir)
            self._resolved = True

    @property
    def registry(self) -> SchemaRegistry | None:
        self._resolve()
        return self._registry

    def require_registry(self) -> SchemaRegistry:
        registry = self.registry
        if registry is None:
            raise click.UsageError("No metadata loaded (--no-metadata given).")
        return registry

    def decode(self, path: Path, fmt: str = "auto") -> DecodeResult:
        """Decode a DYR or TOML file with the resolved registry."""
        from powerdyn.decode.legacy import decode_legacy
        from powerdyn.decode.structured import decode_structured

        if fmt == "auto":
            try:
                fmt = detect_format(path)
            except ValueError as e:
                raise click.UsageError(f"{e}. Pass --format dyr or --format toml.")

        if fmt == "dyr":
            return decode_legacy(path, self.registry)
        try:
            return decode_structured(path, self.registry)
        except ValueError as e:
            # TOMLDecodeError and SourceTooLargeError are both ValueErrors
            raise click.ClickException(f"Cannot read {path}: {e}")


pass_ctx = click.make_pass_decorator(Context)


@click.group()
@click.option(
    "--metadata-dir", default=None,
    type=click.Path(exists=False, file_okay=False, path_type=Path),
    help="Directory of YAML model schemas (default: settings, then bundled)",
)
@click.option("--no-metadata", is_flag=True, help="Decode every model as indexed fields")
@click.option("--verbose", "-v", count=True, help="Increase log verbosity (-v info, -vv debug)")
@click.version_option(package_name="powerdyn")
@click.pass_context
def cli(ctx, metadata_dir: Optional[Path], no_metadata: bool, verbose: int):
    """powerdyn - PSS/E dynamic data decoder.

    Decode DYR and TOML dynamic data into typed model tables, report
    validation issues, and convert DYR files to TOML.
    """
    level = resolve_log_level(verbose)
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger("powerdyn").setLevel(level)

    ctx.ensure_object(dict)
    ctx.obj = Context(metadata_dir=metadata_dir, no_metadata=no_metadata)


@cli.command()
def init():
    """Set the default metadata directory and log level (interactive)."""
    settings = load_settings()

    current = settings.metadata_dir or "(bundled)"
    click.echo(f"Current metadata directory: {current}")
    click.echo(f"Current log level: {settings.log_level}\n")

    while True:
        raw = click.prompt(
            "Metadata directory (blank for bundled)", default="", show_default=False,
        ).strip().strip('"').strip("'")
        if not raw:
            metadata_dir = None
            break
        metadata_dir = Path(raw)
        if metadata_dir.is_dir():
            break
        click.echo(f"Directory not found: {metadata_dir}")

    log_level = click.prompt(
        "Log level", default=settings.log_level,
        type=click.Choice(LOG_LEVELS, case_sensitive=False),
    ).upper()

    saved_path = save_settings(Settings(metadata_dir=metadata_dir, log_level=log_level))
    click.echo(f"\nSettings saved to {saved_path}")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--format", "fmt", type=FORMAT_CHOICES, default="auto", help="Input format")
@pass_ctx
def parse(ctx: Context, path: Path, fmt: str):
    """Decode a file and summarize its models and issues."""
    result = ctx.decode(path, fmt)

    click.echo(f"Source:   {result.source}")
    if result.metadata_registry is not None:
        click.echo(f"Metadata: loaded ({len(result.metadata_registry)} model schemas)")
    else:
        click.echo("Metadata: not loaded")

    if not result.models:
        click.echo("\nNo models found.")
        return

    click.echo(f"\n{'Model':<12}  {'Kind':<8}  {'Records':>8}  {'Category'}")
    click.echo("-" * 48)
    for name in sorted(result.models):
        records = result[name]
        if isinstance(records, NamedRecords):
            kind, category = "named", records.category
        else:
            kind, category = "indexed", ""
        click.echo(f"{name:<12}  {kind:<8}  {len(records):>8,}  {category}")

    counts = result.issue_counts()
    total = sum(counts.values())
    if total:
        detail = ", ".join(f"{n} {k.value}" for k, n in sorted(counts.items(), key=lambda kv: kv[0].value))
        click.echo(f"\nValidation issues: {total} total ({detail})")
    else:
        click.echo("\nValidation issues: none")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--format", "fmt", type=FORMAT_CHOICES, default="auto", help="Input format")
@click.option("--model", "model_name", default=None, help="Only issues for this model")
@click.option("--kind", type=click.Choice([k.value for k in IssueKind]), default=None,
              help="Only issues of this kind")
@click.option("--strict", is_flag=True, help="Exit with status 1 if any issue is reported")
@pass_ctx
def issues(ctx: Context, path: Path, fmt: str, model_name: Optional[str],
           kind: Optional[str], strict: bool):
    """List validation issues found while decoding a file."""
    result = ctx.decode(path, fmt)

    found = result.validation_issues
    if model_name is not None:
        found = [i for i in found if i.model_name == model_name]
    if kind is not None:
        found = [i for i in found if i.kind.value == kind]

    if not found:
        click.echo("No validation issues.")
        return

    click.echo(f"{len(found)} validation issues:\n")
    for issue in found:
        click.echo(f"  [{issue.kind.value}] {issue}")

    if strict:
        raise SystemExit(1)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", "output_path", type=click.Path(dir_okay=False, path_type=Path),
              default=None, help="TOML output path (default: beside the input)")
@pass_ctx
def convert(ctx: Context, path: Path, output_path: Optional[Path]):
    """Convert a DYR file to TOML."""
    from powerdyn.decode.legacy import decode_legacy
    from powerdyn.export.toml_export import reencode

    result = decode_legacy(path, ctx.registry)
    output_path = output_path or derive_toml_path(path)
    output_path.write_text(reencode(result, ctx.registry), encoding="utf-8")
    click.echo(f"Converted {len(result)} models ({result.record_count:,} records) to {output_path}")
    if result.validation_issues:
        click.echo(f"{len(result.validation_issues)} validation issues; run 'powerdyn issues {path}' for details.")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--model", "model_name", required=True, help="Model to export (e.g., GENROU)")
@click.option("--format", "out_fmt", type=click.Choice(["csv", "json"]), default="csv")
@click.option("--input-format", "fmt", type=FORMAT_CHOICES, default="auto", help="Input format")
@click.option("--output", "-o", "output_path", type=click.Path(dir_okay=False, path_type=Path),
              default=None, help="Write to a file instead of stdout")
@pass_ctx
def export(ctx: Context, path: Path, model_name: str, out_fmt: str, fmt: str,
           output_path: Optional[Path]):
    """Export one model's records as CSV or JSON."""
    from powerdyn.export.csv_export import export_csv
    from powerdyn.export.json_export import export_json

    result = ctx.decode(path, fmt)
    if model_name not in result:
        available = ", ".join(sorted(result.models)) or "(none)"
        raise click.UsageError(f"Model '{model_name}' not found. Available models: {available}")

    if out_fmt == "csv":
        output = export_csv(result[model_name])
    else:
        output = export_json(result, model_name)

    if output_path:
        output_path.write_text(output, encoding="utf-8")
        click.echo(f"{model_name} written to {output_path}")
    else:
        click.echo(output, nl=False)


@cli.command()
@click.option("--category", default=None, help="Only models in this category")
@pass_ctx
def models(ctx: Context, category: Optional[str]):
    """List model schemas by category."""
    registry = ctx.require_registry()

    categories = sorted(registry.categories.items())
    if category is not None:
        categories = [(c, names) for c, names in categories if c == category]
        if not categories:
            available = ", ".join(sorted(registry.categories)) or "(none)"
            raise click.UsageError(f"Category '{category}' not found. Available: {available}")

    for cat, names in categories:
        click.echo(f"{cat}:")
        for name in names:
            click.echo(f"  {name:<10}  {registry.models[name].description}")


@cli.command()
@click.argument("model_name")
@pass_ctx
def describe(ctx: Context, model_name: str):
    """Show the field layout of one model schema."""
    registry = ctx.require_registry()
    schema = registry.get(model_name)
    if schema is None:
        raise click.UsageError(f"No schema for model '{model_name}'.")

    click.echo(f"{schema.name} ({schema.category})")
    if schema.description:
        click.echo(f"  {schema.description}")
    lines = f", {schema.line_count} lines" if schema.multi_line else ""
    click.echo(f"  DYR: model name at field {schema.model_name_field}{lines}, terminator '{schema.terminator}'\n")

    click.echo(f"{'Pos':>4}  {'Name':<8}  {'Type':<8}  {'Unit':<14}  {'Req':<4}  {'Default':<8}  {'Range'}")
    click.echo("-" * 72)
    for f in schema.fields:
        req = "yes" if f.required else "no"
        default = "" if f.default is None else str(f.default)
        rng = f"[{f.range[0]}, {f.range[1]}]" if f.range else ""
        click.echo(f"{f.position:>4}  {f.name:<8}  {f.type.value:<8}  {f.unit:<14}  {req:<4}  {default:<8}  {rng}")


@cli.command()
def where():
    """Show the settings file and bundled metadata locations."""
    click.echo(f"Settings: {get_settings_path()}")
    click.echo(f"Bundled metadata: {BUNDLED_METADATA_DIR}")
