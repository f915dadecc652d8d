"""Group framed records by model and assemble the DecodeResult."""
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional

from powerdyn.decode.records import (
    DecodedRecords,
    DecodeResult,
    IndexedRecords,
    NamedRecords,
    ValidationIssue,
)
from powerdyn.schema.models import ModelSchema, SchemaRegistry

logger = logging.getLogger(__name__)

NamedDecoder = Callable[[ModelSchema, list[Any], list[ValidationIssue]], NamedRecords]
IndexedDecoder = Callable[[str, list[Any]], IndexedRecords]


def group_by_model(framed: Iterable[tuple[str, Any]]) -> dict[str, list[Any]]:
    """Collect (model_name, record) pairs into per-model lists, keeping input order."""
    groups: dict[str, list[Any]] = {}
    for model_name, record in framed:
        groups.setdefault(model_name, []).append(record)
    return groups


def decode_groups(
    groups: dict[str, list[Any]],
    registry: Optional[SchemaRegistry],
    validation_issues: list[ValidationIssue],
    *,
    decode_named: NamedDecoder,
    decode_indexed: IndexedDecoder,
    log: Optional[logging.Logger] = None,
) -> dict[str, DecodedRecords]:
    """Decode each model group, by schema when one exists, else indexed.

    Empty groups are never materialized.
    """
    log = log or logger
    models: dict[str, DecodedRecords] = {}
    for model_name, records in groups.items():
        if not records:
            continue
        schema = registry.get(model_name) if registry is not None else None
        if schema is None:
            log.debug("No schema for %s, storing %d records indexed", model_name, len(records))
            models[model_name] = decode_indexed(model_name, records)
        else:
            models[model_name] = decode_named(schema, records, validation_issues)
    return models


def build_result(
    models: dict[str, DecodedRecords],
    registry: Optional[SchemaRegistry],
    source: str,
    validation_issues: list[ValidationIssue],
    log: Optional[logging.Logger] = None,
) -> DecodeResult:
    log = log or logger
    log.debug("Created %d model types from %s", len(models), source)
    log.debug("Encountered %d validation issues", len(validation_issues))
    return DecodeResult(
        models=models,
        metadata_registry=registry,
        source=source,
        validation_issues=validation_issues,
    )
