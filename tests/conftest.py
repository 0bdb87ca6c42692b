"""
tests/conftest.py
Shared fixtures for the collectiongen test suite.

Real file I/O happens inside pytest's tmp_path directories; nothing is mocked
except where a test forces a filesystem failure.
"""

from __future__ import annotations

import copy
import json
import logging
import pathlib
from typing import Any, Dict

import pytest
import yaml

from collectiongen.analyzer import AnalyzedCollection, analyze
from collectiongen.spec import CollectionOptions, CollectionRequest, GeneratorSettings


# ---------------------------------------------------------------------------
# Logging isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_collectiongen_logger():
    """The CLI detaches the package logger from root; undo that between tests."""
    yield
    logger = logging.getLogger("collectiongen")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Raw schema fixtures
# ---------------------------------------------------------------------------


PRODUCT_SCHEMA: Dict[str, Any] = {
    "name": {"type": "string", "meta": {"required": True}},
    "price": {"type": "decimal", "meta": {"precision": 10, "scale": 2}},
}


@pytest.fixture()
def product_schema() -> Dict[str, Any]:
    """`name` (required string) and `price` (decimal): the canonical shop/product example."""
    return copy.deepcopy(PRODUCT_SCHEMA)


@pytest.fixture()
def reference_schema() -> Dict[str, Any]:
    """A product schema with a reference to the categories collection."""
    return {
        "name": {"type": "string", "meta": {"required": True}},
        "categoryId": {"type": "string", "refTarget": "categories"},
    }


@pytest.fixture()
def rich_schema() -> Dict[str, Any]:
    """One field of every type, plus translatable and repeater children."""
    return {
        "title": {"type": "string", "meta": {"required": True, "translatable": True}},
        "body": {"type": "text", "meta": {"translatable": True}},
        "stock": {"type": "number"},
        "price": {"type": "decimal"},
        "active": {"type": "boolean", "meta": {"default": True}},
        "publishedAt": {"type": "date"},
        "settings": {"type": "json"},
        "variants": {
            "type": "repeater",
            "meta": {"children": {"label": {"type": "string"}, "amount": {"type": "number"}}},
        },
        "tagIds": {"type": "array", "refTarget": "tags"},
    }


@pytest.fixture()
def schema_file(product_schema: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    """Write the product schema to a temporary JSON file and return its path."""
    path = tmp_path / "products.json"
    path.write_text(json.dumps(product_schema), encoding="utf-8")
    return path


@pytest.fixture()
def batch_config_file(
    product_schema: Dict[str, Any],
    reference_schema: Dict[str, Any],
    tmp_path: pathlib.Path,
) -> pathlib.Path:
    """A batch config with two valid collections in the shop layer."""
    schemas = tmp_path / "schemas"
    schemas.mkdir()
    (schemas / "categories.yaml").write_text(yaml.dump({"title": {"type": "string"}}), encoding="utf-8")
    (schemas / "products.json").write_text(json.dumps(reference_schema), encoding="utf-8")

    config = {
        "dialect": "sqlite",
        "seedCount": 10,
        "collections": [
            {"layer": "shop", "name": "categories", "fieldsFile": "schemas/categories.yaml"},
            {"layer": "shop", "name": "products", "fieldsFile": "schemas/products.json", "sortable": True},
        ],
    }
    path = tmp_path / "collectiongen.yaml"
    path.write_text(yaml.dump(config), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Request / analysis fixtures
# ---------------------------------------------------------------------------


def build_request(
    raw: Dict[str, Any],
    layer: str = "shop",
    collection: str = "product",
    **options: Any,
) -> CollectionRequest:
    return CollectionRequest.from_schema(layer, collection, raw, options=CollectionOptions(**options))


def build_analyzed(raw: Dict[str, Any], **kwargs: Any) -> AnalyzedCollection:
    return analyze(build_request(raw, **kwargs))


@pytest.fixture()
def product_request(product_schema: Dict[str, Any]) -> CollectionRequest:
    return build_request(product_schema)


@pytest.fixture()
def analyzed_product(product_request: CollectionRequest) -> AnalyzedCollection:
    return analyze(product_request)


@pytest.fixture()
def settings() -> GeneratorSettings:
    return GeneratorSettings()
