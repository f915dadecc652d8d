"""Load model schemas from YAML metadata files.

Each file describes one model:

    model:
      name: GENROU
      description: Round rotor generator model
      category: generator
    parsing:
      model_name_field: 2
      multi_line: true
      line_count: 3
      terminator: "/"
    fields:
      - name: H
        position: 8
        type: Float64
        unit: MW·s/MVA
        range: [0.0, .inf]
"""
from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Optional

import yaml

from powerdyn.config import BUNDLED_METADATA_DIR
from powerdyn.decode.coercion import ConversionError, coerce_dynamic
from powerdyn.schema.models import FieldSchema, FieldType, ModelSchema, SchemaRegistry

logger = logging.getLogger(__name__)

SCHEMA_SUFFIXES = (".yaml", ".yml")

_TYPE_NAMES: dict[str, FieldType] = {
    "Int": FieldType.INTEGER,
    "Int64": FieldType.INTEGER,
    "Integer": FieldType.INTEGER,
    "Float": FieldType.FLOAT,
    "Float64": FieldType.FLOAT,
    "String": FieldType.TEXT,
    "Text": FieldType.TEXT,
    "Bool": FieldType.BOOLEAN,
    "Boolean": FieldType.BOOLEAN,
}

_INF_STRINGS = {"Inf": math.inf, "inf": math.inf, "+Inf": math.inf, "-Inf": -math.inf, "-inf": -math.inf}


class SchemaError(ValueError):
    """A schema file is structurally invalid."""


def string_to_type(s: str) -> FieldType:
    """Map a YAML type name to a FieldType."""
    try:
        return _TYPE_NAMES[s]
    except (KeyError, TypeError):
        raise SchemaError(f"Unknown type string: {s!r}") from None


def _range_bound(v: Any) -> float:
    if isinstance(v, str) and v in _INF_STRINGS:
        return _INF_STRINGS[v]
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise SchemaError(f"Range bound must be numeric or 'Inf', got {v!r}")
    return float(v)


def parse_range(r: Any) -> Optional[tuple[float, float]]:
    """Parse a [min, max] range. None stays None."""
    if r is None:
        return None
    if not isinstance(r, (list, tuple)) or len(r) != 2:
        raise SchemaError(f"Range must have exactly 2 elements, got {r!r}")
    return _range_bound(r[0]), _range_bound(r[1])


def parse_field(d: dict[str, Any]) -> FieldSchema:
    """Build one FieldSchema from its YAML mapping."""
    try:
        name = str(d["name"])
        position = d["position"]
        type_name = d["type"]
    except KeyError as e:
        raise SchemaError(f"Field definition missing key {e.args[0]!r}: {d!r}") from None

    if isinstance(position, bool) or not isinstance(position, int) or position < 1:
        raise SchemaError(f"Field {name}: position must be a positive integer, got {position!r}")

    ftype = string_to_type(type_name)
    rng = parse_range(d.get("range"))
    if rng is not None and not ftype.is_numeric:
        raise SchemaError(f"Field {name}: range given for non-numeric type {ftype.value}")

    default = d.get("default")
    if default is not None:
        try:
            default = coerce_dynamic(ftype, default)
        except ConversionError as e:
            raise SchemaError(f"Field {name}: bad default: {e}") from None

    return FieldSchema(
        name=name,
        position=position,
        type=ftype,
        description=d.get("description") or "",
        unit=d.get("unit") or "dimensionless",
        required=bool(d.get("required", True)),
        default=default,
        range=rng,
    )


def parse_schema(data: Any, origin: str = "<data>") -> ModelSchema:
    """Build a ModelSchema from an already-loaded YAML document."""
    if not isinstance(data, dict):
        raise SchemaError(f"{origin}: top level must be a mapping")
    model = data.get("model")
    if not isinstance(model, dict) or "name" not in model:
        raise SchemaError(f"{origin}: missing model.name")
    parsing = data.get("parsing") or {}
    if not isinstance(parsing, dict):
        raise SchemaError(f"{origin}: parsing must be a mapping")
    field_dicts = data.get("fields") or []
    if not isinstance(field_dicts, list):
        raise SchemaError(f"{origin}: fields must be a list")

    fields = tuple(parse_field(fd) for fd in field_dicts)

    names = [f.name for f in fields]
    dup_names = sorted({n for n in names if names.count(n) > 1})
    if dup_names:
        raise SchemaError(f"{origin}: duplicate field names {dup_names}")
    positions = [f.position for f in fields]
    dup_positions = sorted({p for p in positions if positions.count(p) > 1})
    if dup_positions:
        raise SchemaError(f"{origin}: duplicate field positions {dup_positions}")

    multi_line = bool(parsing.get("multi_line", False))
    line_count = parsing.get("line_count")
    if multi_line and line_count is None:
        raise SchemaError(f"{origin}: multi_line requires line_count")

    return ModelSchema(
        name=str(model["name"]),
        description=model.get("description") or "",
        category=model.get("category") or "unknown",
        model_name_field=int(parsing.get("model_name_field", 2)),
        multi_line=multi_line,
        line_count=line_count if multi_line else None,
        terminator=str(parsing.get("terminator", "/")),
        fields=fields,
    )


def parse_schema_file(path: Path) -> ModelSchema:
    """Parse a single YAML metadata file."""
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    return parse_schema(data, origin=str(path))


def load_schema_registry(metadata_dir: Path) -> SchemaRegistry:
    """Load every *.yaml / *.yml file below metadata_dir.

    Files that fail to parse are logged and skipped.
    """
    metadata_dir = Path(metadata_dir)
    logger.debug("Loading metadata from: %s", metadata_dir)

    schemas = []
    for path in sorted(metadata_dir.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in SCHEMA_SUFFIXES:
            continue
        try:
            schema = parse_schema_file(path)
        except (yaml.YAMLError, OSError, ValueError, TypeError) as e:
            logger.warning("Failed to parse metadata file: %s (%s)", path, e)
            continue
        schemas.append(schema)
        logger.debug("Loaded metadata for model: %s", schema.name)

    registry = SchemaRegistry.from_schemas(schemas)
    logger.debug("Loaded %d model schemas in %d categories", len(registry.models), len(registry.categories))
    return registry


def load_default_registry() -> SchemaRegistry:
    """Load the schemas bundled with the package."""
    return load_schema_registry(BUNDLED_METADATA_DIR)
