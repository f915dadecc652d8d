"""Shared test fixtures for powerdyn tests."""

from __future__ import annotations

import math
from pathlib import Path

import pytest

from powerdyn.schema.loader import load_default_registry
from powerdyn.schema.models import FieldSchema, FieldType, ModelSchema, SchemaRegistry

TESTFILES = Path(__file__).parent / "testfiles"

INF = math.inf


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the settings file at a temp dir so tests never read the user's."""
    settings_path = tmp_path / "settings" / "config.toml"
    monkeypatch.setattr("powerdyn.settings.get_settings_path", lambda: settings_path)
    return settings_path


@pytest.fixture
def gencls_schema() -> ModelSchema:
    """GENCLS: BUS@1, ID@3, H@4 in [0, inf), optional D@5 defaulting to 0.0."""
    return ModelSchema(
        name="GENCLS",
        description="Classical generator",
        category="generator",
        fields=(
            FieldSchema("BUS", 1, FieldType.INTEGER, description="Bus number"),
            FieldSchema("ID", 3, FieldType.TEXT, description="Machine identifier"),
            FieldSchema("H", 4, FieldType.FLOAT, unit="MW·s/MVA", range=(0.0, INF)),
            FieldSchema("D", 5, FieldType.FLOAT, required=False, default=0.0, range=(0.0, INF)),
        ),
    )


@pytest.fixture
def switch_schema() -> ModelSchema:
    """Small schema exercising Boolean, required-with-default and optional-no-default fields."""
    return ModelSchema(
        name="SWITCHY",
        category="test",
        fields=(
            FieldSchema("BUS", 1, FieldType.INTEGER),
            FieldSchema("ENABLED", 3, FieldType.BOOLEAN, required=True, default=True),
            FieldSchema("GAIN", 4, FieldType.FLOAT, required=True, default=1.0, range=(0.0, 10.0)),
            FieldSchema("NOTE", 5, FieldType.TEXT, required=False),
        ),
    )


@pytest.fixture
def registry(gencls_schema: ModelSchema, switch_schema: ModelSchema) -> SchemaRegistry:
    return SchemaRegistry.from_schemas([gencls_schema, switch_schema])


@pytest.fixture(scope="session")
def bundled_registry() -> SchemaRegistry:
    """Registry built from the YAML schemas shipped with the package."""
    return load_default_registry()


@pytest.fixture
def ieee14_path() -> Path:
    return TESTFILES / "ieee14.dyr"
