"""TOML dynamic data reader.

Each device instance is an array-of-tables entry keyed by model name:

    [[GENROU]]
    BUS = 1
    ID = "1"
    H = 4.0    # comments allowed

Field names must match schema field names exactly (case-sensitive).
Top-level entries that are not arrays are ignored.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import IO, Any, Iterator, Optional, Union

from powerdyn.config import MAX_TOML_FILE_SIZE
from powerdyn.decode.aggregate import build_result, decode_groups
from powerdyn.decode.coercion import coerce_dynamic
from powerdyn.decode.engine import NOT_FOUND, FieldValue, decode_named_records, found
from powerdyn.decode.records import DecodeResult, IndexedRecords, NamedRecords, ValidationIssue
from powerdyn.schema.models import FieldSchema, ModelSchema, SchemaRegistry

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

TomlRecord = dict[str, Any]


class SourceTooLargeError(ValueError):
    """Structured source exceeds MAX_TOML_FILE_SIZE."""


def _check_size(size: int, source: str) -> None:
    if size > MAX_TOML_FILE_SIZE:
        mb = 1024 * 1024
        raise SourceTooLargeError(
            f"TOML file too large: {source} ({size // mb} MB > {MAX_TOML_FILE_SIZE // mb} MB)"
        )


def iter_model_tables(content: dict[str, Any], log: logging.Logger) -> Iterator[tuple[str, list]]:
    """Yield (model_name, records) for each array entry, skipping the rest."""
    for model_name, records in content.items():
        if not isinstance(records, list):
            log.debug("Skipping non-array entry: %s", model_name)
            continue
        yield model_name, records


# -- Keyed adapter --

def get_toml_field(record: TomlRecord, field_schema: FieldSchema) -> FieldValue:
    if isinstance(record, dict) and field_schema.name in record:
        return found(record[field_schema.name])
    return NOT_FOUND


def convert_toml_value(field_schema: FieldSchema, raw_value: Any):
    return coerce_dynamic(field_schema.type, raw_value)


def create_named_records(
    schema: ModelSchema,
    records: list[TomlRecord],
    validation_issues: list[ValidationIssue],
    log: Optional[logging.Logger] = None,
) -> NamedRecords:
    log = log or logger
    known_fields = set(schema.field_names)

    def check_unknown_fields(record: TomlRecord, record_idx: int) -> None:
        if not isinstance(record, dict):
            return
        # Keys are reported in document order
        for key in record:
            if key not in known_fields:
                log.warning("Unknown field '%s' in %s record %d (ignored)", key, schema.name, record_idx)

    return decode_named_records(
        schema, records, validation_issues,
        get_field_value=get_toml_field,
        convert_value=convert_toml_value,
        on_unknown_field=check_unknown_fields,
        log=log,
    )


def create_indexed_records(model_name: str, records: list[TomlRecord]) -> IndexedRecords:
    """Fallback when no schema is known: values ordered by sorted key name."""
    fields = []
    for record in records:
        if isinstance(record, dict):
            fields.append([record[k] for k in sorted(record)])
        else:
            fields.append([record])
    return IndexedRecords(model_name=model_name, fields=fields)


# -- Entry points --

def decode_structured_text(
    text: str,
    registry: Optional[SchemaRegistry] = None,
    *,
    source: str = "<string>",
    log: Optional[logging.Logger] = None,
) -> DecodeResult:
    """Decode TOML text. Raises tomllib.TOMLDecodeError on malformed input."""
    log = log or logger
    _check_size(len(text.encode("utf-8")), source)
    content = tomllib.loads(text)
    log.debug("Parsing TOML source: %s", source)

    validation_issues: list[ValidationIssue] = []
    groups = {}
    for model_name, records in iter_model_tables(content, log):
        log.debug("Processing model: %s (%d records)", model_name, len(records))
        groups[model_name] = records

    models = decode_groups(
        groups, registry, validation_issues,
        decode_named=lambda schema, recs, issues: create_named_records(schema, recs, issues, log),
        decode_indexed=create_indexed_records,
        log=log,
    )
    return build_result(models, registry, source, validation_issues, log)


def decode_structured(
    source: Union[str, Path, IO[str], IO[bytes]],
    registry: Optional[SchemaRegistry] = None,
    *,
    log: Optional[logging.Logger] = None,
) -> DecodeResult:
    """Decode a TOML file given by path, or an open (text or binary) stream.

    File size is checked before the file is read.
    """
    if isinstance(source, (str, Path)):
        path = Path(source)
        _check_size(path.stat().st_size, str(source))
        text = path.read_text(encoding="utf-8")
        label = str(source)
    else:
        data = source.read()
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        text = data
        label = "<stream>"
    return decode_structured_text(text, registry, source=label, log=log)
