"""Export decoded models as JSON."""
from __future__ import annotations

import json
import math
from typing import Any, Optional

from powerdyn.decode.records import DecodeResult, DecodedRecords, NamedRecords


def _jsonable(v: Any) -> Any:
    # JSON has no inf/nan literals
    if isinstance(v, float) and not math.isfinite(v):
        return str(v)
    return v


def records_to_dict(records: DecodedRecords) -> dict[str, Any]:
    """Model name, kind and rows of one decoded model."""
    entry: dict[str, Any] = {
        "model_name": records.model_name,
        "kind": "named" if isinstance(records, NamedRecords) else "indexed",
        "record_count": len(records),
    }
    if isinstance(records, NamedRecords):
        entry["category"] = records.category
    entry["records"] = [
        {k: _jsonable(v) for k, v in row.items()}
        for row in records.rows()
    ]
    return entry


def export_json(result: DecodeResult, model_name: Optional[str] = None) -> str:
    """Export one model (or all models, with validation issues) as JSON string."""
    if model_name is not None:
        return json.dumps(records_to_dict(result[model_name]), indent=2, default=str)

    data = {
        "source": result.source,
        "models": {name: records_to_dict(result[name]) for name in sorted(result.models)},
        "validation_issues": [
            {
                "model_name": i.model_name,
                "record_index": i.record_index,
                "field_name": i.field_name,
                "kind": i.kind.value,
                "message": i.message,
                "value": _jsonable(i.offending_value),
            }
            for i in result.validation_issues
        ],
    }
    return json.dumps(data, indent=2, default=str)
