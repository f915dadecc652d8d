"""PSS/E DYR reader: record framing, tokenizing and positional decoding.

A DYR record is a run of whitespace-separated fields ending in '/':

    1 'GENROU' 1  6.5000  0.60000E-01  0.20000  0.50000E-01
        4.0000  0.0000  1.8000  1.7500  0.60000  0.80000
        0.30000  0.15000  0.90000E-01  0.38000 /

Records may span lines. Lines starting with '@!' or '//' are comments.
The quoted token in position 2 names the model.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterable, Iterator, Optional, Union

from powerdyn.config import (
    COMMENT_PREFIXES,
    DEFAULT_TERMINATOR,
    MIN_RECORD_TOKENS,
    MODEL_NAME_FIELD,
)
from powerdyn.decode.aggregate import build_result, decode_groups, group_by_model
from powerdyn.decode.coercion import coerce_token
from powerdyn.decode.engine import NOT_FOUND, FieldValue, decode_named_records, found
from powerdyn.decode.records import DecodeResult, IndexedRecords, NamedRecords, ValidationIssue
from powerdyn.schema.models import FieldSchema, ModelSchema, SchemaRegistry

logger = logging.getLogger(__name__)

_MODEL_NAME_RE = re.compile(r"'([^']+)'")


@dataclass(slots=True)
class DyrRecord:
    """One framed DYR record."""
    model_name: str
    tokens: list[str]   # Raw field tokens, quotes kept (model name at index 1)
    line_no: int        # First physical line of the record (1-based)


def iter_logical_records(
    lines: Iterable[str], terminator: str = DEFAULT_TERMINATOR,
) -> Iterator[tuple[int, str]]:
    """Join physical lines into logical records.

    Yields (first_line_no, text) with the terminator and anything after it
    removed. Blank and comment lines are skipped. A trailing record with no
    terminator is still yielded.
    """
    buf: list[str] = []
    start = 0
    for line_no, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith(COMMENT_PREFIXES):
            continue
        if not buf:
            start = line_no
        if terminator in line:
            buf.append(line.split(terminator, 1)[0])
            yield start, " ".join(buf)
            buf = []
        else:
            buf.append(line)
    if buf:
        yield start, " ".join(buf)


def split_fields(s: str) -> list[str]:
    """Split on whitespace, keeping single-quoted spans (and their quotes) whole."""
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False

    for c in s:
        if c == "'":
            in_quotes = not in_quotes
            current.append(c)
        elif c.isspace() and not in_quotes:
            if current:
                fields.append("".join(current))
                current = []
        else:
            current.append(c)

    if current:
        fields.append("".join(current))
    return fields


def detect_model_name(token: str) -> Optional[str]:
    """Return the text inside the first quoted span of a token, if any."""
    m = _MODEL_NAME_RE.search(token)
    return m.group(1) if m else None


def frame_record(text: str, line_no: int = 0) -> Optional[DyrRecord]:
    """Tokenize one logical record. Returns None when no model name can be found."""
    tokens = split_fields(text)
    if len(tokens) < MIN_RECORD_TOKENS:
        return None
    model_name = detect_model_name(tokens[MODEL_NAME_FIELD - 1])
    if model_name is None:
        return None
    return DyrRecord(model_name=model_name, tokens=tokens, line_no=line_no)


def parse_all_records(text: str, log: Optional[logging.Logger] = None) -> list[DyrRecord]:
    """Frame every record in DYR text, silently dropping unrecognizable ones."""
    log = log or logger
    records = []
    for line_no, record_text in iter_logical_records(text.splitlines()):
        record = frame_record(record_text, line_no)
        if record is None:
            log.debug("Dropping record at line %d: no model name", line_no)
            continue
        records.append(record)
    return records


# -- Positional adapter --

def get_dyr_field(record: DyrRecord, field_schema: FieldSchema) -> FieldValue:
    pos = field_schema.position
    if 1 <= pos <= len(record.tokens):
        return found(record.tokens[pos - 1])
    return NOT_FOUND


def convert_dyr_value(field_schema: FieldSchema, raw_value: str):
    return coerce_token(field_schema.type, raw_value)


def create_named_records(
    schema: ModelSchema,
    records: list[DyrRecord],
    validation_issues: list[ValidationIssue],
    log: Optional[logging.Logger] = None,
) -> NamedRecords:
    return decode_named_records(
        schema, records, validation_issues,
        get_field_value=get_dyr_field,
        convert_value=convert_dyr_value,
        log=log,
    )


def create_indexed_records(model_name: str, records: list[DyrRecord]) -> IndexedRecords:
    """Fallback when no schema is known: keep the raw tokens as-is."""
    return IndexedRecords(model_name=model_name, fields=[list(r.tokens) for r in records])


# -- Entry points --

def decode_legacy_text(
    text: str,
    registry: Optional[SchemaRegistry] = None,
    *,
    source: str = "<string>",
    log: Optional[logging.Logger] = None,
) -> DecodeResult:
    """Decode DYR text. Without a registry every model is stored indexed."""
    log = log or logger
    log.debug("Parsing DYR source: %s", source)

    records = parse_all_records(text, log)
    log.debug("Parsed %d records", len(records))

    validation_issues: list[ValidationIssue] = []
    groups = group_by_model((r.model_name, r) for r in records)
    models = decode_groups(
        groups, registry, validation_issues,
        decode_named=lambda schema, recs, issues: create_named_records(schema, recs, issues, log),
        decode_indexed=create_indexed_records,
        log=log,
    )
    return build_result(models, registry, source, validation_issues, log)


def decode_legacy(
    source: Union[str, Path, IO[str]],
    registry: Optional[SchemaRegistry] = None,
    *,
    log: Optional[logging.Logger] = None,
) -> DecodeResult:
    """Decode a DYR file given by path, or an open text stream."""
    if isinstance(source, (str, Path)):
        text = Path(source).read_text(encoding="utf-8", errors="replace")
        label = str(source)
    else:
        text = source.read()
        label = "<stream>"
    return decode_legacy_text(text, registry, source=label, log=log)
