"""Format-independent decoding of raw records into typed columns.

Both input formats share decode_named_records; they differ only in the
injected functions:

  get_field_value(record, field)  -> FieldValue (found or not)
  convert_value(field, raw)       -> typed value, raises ConversionError
  on_unknown_field(record, index) -> None, optional observer
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from powerdyn.decode.coercion import ConversionError
from powerdyn.decode.records import (
    MISSING,
    Column,
    IssueKind,
    NamedRecords,
    ValidationIssue,
)
from powerdyn.schema.models import FieldSchema, ModelSchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FieldValue:
    """Result of looking a field up in a raw record."""
    found: bool
    raw_value: Any = None


NOT_FOUND = FieldValue(found=False)


def found(raw_value: Any) -> FieldValue:
    return FieldValue(found=True, raw_value=raw_value)


FieldGetter = Callable[[Any, FieldSchema], FieldValue]
ValueConverter = Callable[[FieldSchema, Any], Any]
UnknownFieldCheck = Callable[[Any, int], None]


def decode_named_records(
    schema: ModelSchema,
    records: Sequence[Any],
    validation_issues: list[ValidationIssue],
    *,
    get_field_value: FieldGetter,
    convert_value: ValueConverter,
    on_unknown_field: Optional[UnknownFieldCheck] = None,
    log: Optional[logging.Logger] = None,
) -> NamedRecords:
    """Decode one model's records against its schema.

    Never raises for data problems; those are appended to validation_issues
    in record order, then schema field order.
    """
    log = log or logger
    model_name = schema.name
    log.debug("Decoding %s: %d records, %d fields", model_name, len(records), len(schema.fields))

    cells: dict[str, list[Any]] = {f.name: [] for f in schema.fields}

    for record_idx, record in enumerate(records, start=1):
        if on_unknown_field is not None:
            on_unknown_field(record, record_idx)

        for field_schema in schema.fields:
            lookup = get_field_value(record, field_schema)
            if lookup.found:
                value = _convert_field(
                    validation_issues, model_name, record_idx,
                    field_schema, lookup.raw_value, convert_value, log,
                )
            else:
                value = _missing_field(validation_issues, model_name, record_idx, field_schema)
            cells[field_schema.name].append(value)

    columns = {f.name: _build_column(f, cells[f.name]) for f in schema.fields}
    return NamedRecords(model_name=model_name, category=schema.category, columns=columns)


def _convert_field(
    validation_issues: list[ValidationIssue],
    model_name: str,
    record_idx: int,
    field_schema: FieldSchema,
    raw_value: Any,
    convert_value: ValueConverter,
    log: logging.Logger,
) -> Any:
    try:
        value = convert_value(field_schema, raw_value)
    except ConversionError as e:
        log.warning("Failed to convert %s[%d].%s: %s", model_name, record_idx, field_schema.name, e)
        validation_issues.append(ValidationIssue(
            model_name=model_name,
            record_index=record_idx,
            field_name=field_schema.name,
            kind=IssueKind.PARSE_ERROR,
            message=f"Failed to convert: {e}",
            offending_value=raw_value,
        ))
        return field_schema.default if field_schema.has_default else MISSING

    _check_range(validation_issues, model_name, record_idx, field_schema, value)
    return value


def _check_range(
    validation_issues: list[ValidationIssue],
    model_name: str,
    record_idx: int,
    field_schema: FieldSchema,
    value: Any,
) -> None:
    """Record an issue for out-of-range numbers. The value itself is kept."""
    if field_schema.range is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return
    min_val, max_val = field_schema.range
    # NaN compares false against both bounds
    is_nan = isinstance(value, float) and math.isnan(value)
    if is_nan or value < min_val or value > max_val:
        validation_issues.append(ValidationIssue(
            model_name=model_name,
            record_index=record_idx,
            field_name=field_schema.name,
            kind=IssueKind.OUT_OF_RANGE,
            message=f"Value {value} outside valid range [{min_val}, {max_val}]",
            offending_value=value,
        ))


def _missing_field(
    validation_issues: list[ValidationIssue],
    model_name: str,
    record_idx: int,
    field_schema: FieldSchema,
) -> Any:
    name = field_schema.name
    if field_schema.required and not field_schema.has_default:
        validation_issues.append(ValidationIssue(
            model_name=model_name,
            record_index=record_idx,
            field_name=name,
            kind=IssueKind.MISSING_REQUIRED_NO_DEFAULT,
            message=f"Required field {name} is missing with no default value",
        ))
    elif field_schema.required:
        validation_issues.append(ValidationIssue(
            model_name=model_name,
            record_index=record_idx,
            field_name=name,
            kind=IssueKind.MISSING_REQUIRED_WITH_DEFAULT,
            message=f"Required field {name} missing, using default {field_schema.default!r}",
        ))
    return field_schema.default if field_schema.has_default else MISSING


def _build_column(field_schema: FieldSchema, values: list[Any]) -> Column:
    expected = field_schema.type.python_type
    # type() rather than isinstance() so True never passes as an Integer
    complete = all(type(v) is expected for v in values)
    return Column(name=field_schema.name, type=field_schema.type, values=values, complete=complete)
