"""Serialize decoded results back to the TOML dynamic data format."""
from __future__ import annotations

import datetime
import math
import re
from pathlib import Path
from typing import IO, Any, Iterator, Optional, Union

from powerdyn.decode.legacy import decode_legacy
from powerdyn.decode.records import MISSING, DecodedRecords, DecodeResult, NamedRecords
from powerdyn.schema.models import SchemaRegistry

_BARE_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")
# Control characters TOML forbids inside comments (tab is allowed)
_COMMENT_UNSAFE_RE = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\b": "\\b",
    "\t": "\\t",
    "\n": "\\n",
    "\f": "\\f",
    "\r": "\\r",
}


def format_string(s: str) -> str:
    """TOML basic string with escapes."""
    out = []
    for c in s:
        if c in _ESCAPES:
            out.append(_ESCAPES[c])
        elif ord(c) < 0x20 or ord(c) == 0x7F:
            out.append(f"\\u{ord(c):04X}")
        else:
            out.append(c)
    return '"' + "".join(out) + '"'


def format_key(key: str) -> str:
    return key if _BARE_KEY_RE.match(key) else format_string(key)


def format_value(v: Any) -> str:
    """Render one value as TOML."""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, int):
        return str(v)
    if isinstance(v, float):
        if math.isnan(v):
            return "nan"
        if math.isinf(v):
            return "inf" if v > 0 else "-inf"
        return repr(v)
    if isinstance(v, str):
        return format_string(v)
    if isinstance(v, (datetime.datetime, datetime.date, datetime.time)):
        return v.isoformat()
    if isinstance(v, list):
        return "[" + ", ".join(format_value(x) for x in v) + "]"
    if isinstance(v, dict):
        items = ", ".join(f"{format_key(str(k))} = {format_value(x)}" for k, x in v.items())
        return "{ " + items + " }" if items else "{}"
    raise TypeError(f"Cannot represent {type(v).__name__} {v!r} in TOML")


def _named_rows(records: NamedRecords, registry: Optional[SchemaRegistry]) -> Iterator[dict[str, Any]]:
    field_order = records.field_names
    schema = registry.get(records.model_name) if registry is not None else None
    if schema is not None:
        # Schema order first, then any columns the schema doesn't list
        field_order = [n for n in schema.field_names if n in records] + \
                      [n for n in records.field_names if n not in schema.field_names]
    for i in range(len(records)):
        row = records.row(i)
        yield {name: row[name] for name in field_order if row[name] is not MISSING}


def _model_rows(records: DecodedRecords, registry: Optional[SchemaRegistry]) -> Iterator[dict[str, Any]]:
    if isinstance(records, NamedRecords):
        return _named_rows(records, registry)
    return records.rows()


def reencode(result: DecodeResult, registry: Optional[SchemaRegistry] = None) -> str:
    """Render a DecodeResult as TOML text.

    Named records keep their field names; indexed records become field_1,
    field_2, ... Missing cells are omitted. Models are written in name order.
    """
    registry = registry if registry is not None else result.metadata_registry
    source = _COMMENT_UNSAFE_RE.sub(" ", str(result.source))
    lines = [f"# Converted from {source}", ""]
    for model_name in sorted(result.models):
        header = f"[[{format_key(model_name)}]]"
        for row in _model_rows(result.models[model_name], registry):
            lines.append(header)
            for key, value in row.items():
                lines.append(f"{format_key(key)} = {format_value(value)}")
            lines.append("")
    return "\n".join(lines)


def dyr_to_toml(
    source: Union[str, Path, IO[str]],
    dest: Optional[Union[str, Path]] = None,
    registry: Optional[SchemaRegistry] = None,
) -> str:
    """Convert a DYR source to TOML. Writes to dest when given; returns the text."""
    result = decode_legacy(source, registry)
    text = reencode(result, registry)
    if dest is not None:
        Path(dest).write_text(text, encoding="utf-8")
    return text
