"""User settings: default metadata directory and log level."""
from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import click

from powerdyn.config import BUNDLED_METADATA_DIR

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class Settings:
    metadata_dir: Optional[Path] = None     # None means bundled metadata
    log_level: str = "WARNING"


def get_settings_path() -> Path:
    """Return the TOML settings file path via click.get_app_dir."""
    return Path(click.get_app_dir("powerdyn")) / "config.toml"


def load_settings() -> Settings:
    """Read TOML settings. Returns defaults if the file is missing."""
    path = get_settings_path()
    if not path.exists():
        return Settings()

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise click.ClickException(f"Cannot read settings file {path}: {e}")

    settings = Settings()
    if data.get("metadata_dir"):
        settings.metadata_dir = Path(data["metadata_dir"])
    level = str(data.get("log_level", settings.log_level)).upper()
    if level in LOG_LEVELS:
        settings.log_level = level
    return settings


def save_settings(settings: Settings) -> Path:
    """Write settings to TOML using literal strings for paths."""
    path = get_settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    lines: list[str] = []
    if settings.metadata_dir is not None:
        # Literal strings (single quotes) so backslashes aren't escapes
        lines.append(f"metadata_dir = '{settings.metadata_dir}'")
    lines.append(f"log_level = \"{settings.log_level}\"")
    lines.append("")

    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def resolve_metadata_dir(explicit: Optional[Path], no_metadata: bool) -> Optional[Path]:
    """Resolve the schema directory: --no-metadata > --metadata-dir > settings > bundled.

    Raises click.UsageError if a configured directory does not exist.
    """
    if no_metadata:
        if explicit is not None:
            raise click.UsageError("Cannot use both --metadata-dir and --no-metadata.")
        return None

    if explicit is not None:
        if not explicit.is_dir():
            raise click.UsageError(f"Metadata directory not found: {explicit}")
        return explicit

    settings = load_settings()
    if settings.metadata_dir is not None:
        if not settings.metadata_dir.is_dir():
            raise click.UsageError(
                f"Metadata directory from settings not found: {settings.metadata_dir}\n"
                "Run 'powerdyn init' to update the path."
            )
        return settings.metadata_dir

    return BUNDLED_METADATA_DIR


def resolve_log_level(verbose: int) -> int:
    """-v gives INFO, -vv DEBUG; without -v the settings file decides."""
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return getattr(logging, load_settings().log_level)
