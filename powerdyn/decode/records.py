"""Decoded record collections, validation issues and the decode result."""
from __future__ import annotations

import enum
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Union

from powerdyn.schema.models import FieldType, SchemaRegistry


class _Missing:
    """Marker for a cell with neither a value nor a default."""
    _instance: Optional[_Missing] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Missing, ())


MISSING = _Missing()


class IssueKind(enum.Enum):
    OUT_OF_RANGE = "out_of_range"
    PARSE_ERROR = "parse_error"
    MISSING_REQUIRED_NO_DEFAULT = "missing_required"
    MISSING_REQUIRED_WITH_DEFAULT = "missing_field"


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """A non-fatal problem found while decoding one field of one record."""
    model_name: str
    record_index: int       # 1-based within the model
    field_name: str
    kind: IssueKind
    message: str
    offending_value: Any = None

    def __str__(self) -> str:
        return f"{self.model_name}[{self.record_index}].{self.field_name}: {self.message}"


@dataclass(slots=True)
class Column:
    """Values of one field across all records of a model.

    `complete` is True when every cell holds a value of the declared type;
    otherwise some cells are MISSING.
    """
    name: str
    type: FieldType
    values: list[Any] = field(default_factory=list)
    complete: bool = True

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, i: int) -> Any:
        return self.values[i]

    def __iter__(self) -> Iterator[Any]:
        return iter(self.values)


@dataclass
class NamedRecords:
    """Schema-decoded records stored column by column."""
    model_name: str
    category: str
    columns: dict[str, Column] = field(default_factory=dict)

    def __len__(self) -> int:
        if not self.columns:
            return 0
        return len(next(iter(self.columns.values())))

    def __getitem__(self, field_name: str) -> list[Any]:
        return self.columns[field_name].values

    def __contains__(self, field_name: object) -> bool:
        return field_name in self.columns

    @property
    def field_names(self) -> list[str]:
        return list(self.columns)

    def row(self, index: int) -> dict[str, Any]:
        """Field -> value for one record (0-based index)."""
        return {name: col.values[index] for name, col in self.columns.items()}

    def rows(self) -> Iterator[dict[str, Any]]:
        """Rows as dicts, with MISSING cells shown as None."""
        for i in range(len(self)):
            yield {name: (None if v is MISSING else v) for name, v in self.row(i).items()}

    def __repr__(self) -> str:
        return f"NamedRecords({self.model_name}, {len(self)} records)"


@dataclass
class IndexedRecords:
    """Raw records of a model with no schema, one list of values per record."""
    model_name: str
    fields: list[list[Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.fields)

    def rows(self) -> Iterator[dict[str, Any]]:
        """Rows keyed positionally as field_1, field_2, ..."""
        for values in self.fields:
            yield {f"field_{i}": v for i, v in enumerate(values, start=1)}

    def __repr__(self) -> str:
        return f"IndexedRecords({self.model_name}, {len(self)} records)"


DecodedRecords = Union[NamedRecords, IndexedRecords]


@dataclass
class DecodeResult:
    """All models decoded from one source."""
    models: dict[str, DecodedRecords]
    metadata_registry: Optional[SchemaRegistry]
    source: str
    validation_issues: list[ValidationIssue] = field(default_factory=list)

    def __getitem__(self, model_name: str) -> DecodedRecords:
        return self.models[model_name]

    def __contains__(self, model_name: object) -> bool:
        return model_name in self.models

    def __len__(self) -> int:
        return len(self.models)

    def keys(self):
        return self.models.keys()

    @property
    def record_count(self) -> int:
        return sum(len(r) for r in self.models.values())

    def issues_for(self, model_name: str) -> list[ValidationIssue]:
        return [i for i in self.validation_issues if i.model_name == model_name]

    def issue_counts(self) -> Counter:
        """Number of issues per IssueKind."""
        return Counter(i.kind for i in self.validation_issues)

    def __repr__(self) -> str:
        meta = ", with metadata" if self.metadata_registry is not None else ""
        return f"DecodeResult({len(self.models)} models, {self.record_count} records{meta})"
