"""Schema dataclasses describing device models and their fields."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional


class FieldType(enum.Enum):
    """Primitive type of a model parameter."""
    INTEGER = "Integer"
    FLOAT = "Float"
    TEXT = "Text"
    BOOLEAN = "Boolean"

    @property
    def is_numeric(self) -> bool:
        return self in (FieldType.INTEGER, FieldType.FLOAT)

    @property
    def python_type(self) -> type:
        return _PYTHON_TYPES[self]


_PYTHON_TYPES: dict[FieldType, type] = {
    FieldType.INTEGER: int,
    FieldType.FLOAT: float,
    FieldType.TEXT: str,
    FieldType.BOOLEAN: bool,
}


@dataclass(frozen=True, slots=True)
class FieldSchema:
    """One parameter definition of a model."""
    name: str                   # Unique within the model (e.g. H, Xd)
    position: int               # 1-based token position in a DYR record
    type: FieldType
    description: str = ""
    unit: str = "dimensionless"
    required: bool = True
    default: Any = None         # None means "no default"
    range: Optional[tuple[float, float]] = None   # Inclusive bounds

    def __post_init__(self):
        if self.range is not None and not self.type.is_numeric:
            raise ValueError(f"Field {self.name}: range given for non-numeric type {self.type.value}")

    @property
    def has_default(self) -> bool:
        return self.default is not None


@dataclass(frozen=True, slots=True)
class ModelSchema:
    """Complete schema for one dynamic device model."""
    name: str                   # e.g. GENROU
    description: str = ""
    category: str = "unknown"   # generator, exciter, governor, ...
    model_name_field: int = 2
    multi_line: bool = False
    line_count: Optional[int] = None
    terminator: str = "/"
    fields: tuple[FieldSchema, ...] = ()

    def get_field(self, name: str) -> Optional[FieldSchema]:
        """Get a field by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


@dataclass(frozen=True)
class SchemaRegistry:
    """Model schemas keyed by model name, plus a category index."""
    models: dict[str, ModelSchema] = field(default_factory=dict)
    categories: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_schemas(cls, schemas: Iterable[ModelSchema]) -> SchemaRegistry:
        """Build a registry, deriving the category index. Later duplicates win."""
        models: dict[str, ModelSchema] = {}
        for schema in schemas:
            models[schema.name] = schema

        categories: dict[str, list[str]] = {}
        for schema in models.values():
            categories.setdefault(schema.category, []).append(schema.name)
        for names in categories.values():
            names.sort()
        return cls(models=models, categories=categories)

    def get(self, model_name: str) -> Optional[ModelSchema]:
        """Look up a schema, or None when the model is unknown."""
        return self.models.get(model_name)

    def __contains__(self, model_name: object) -> bool:
        return model_name in self.models

    def __len__(self) -> int:
        return len(self.models)

    def __iter__(self) -> Iterator[ModelSchema]:
        return iter(self.models.values())

    def __repr__(self) -> str:
        return f"SchemaRegistry({len(self.models)} models, {len(self.categories)} categories)"
