"""
tests/test_analyzer.py
Unit tests for collectiongen.analyzer.
"""

from __future__ import annotations

from typing import Any, Dict

import pytest

from collectiongen.analyzer import (
    AnalyzedCollection,
    ConfigurationError,
    NamingCollisionError,
    analyze,
    auto_fields_for,
)
from collectiongen.field_types import FieldType
from collectiongen.spec import CollectionOptions, CollectionRequest, FieldDefinition

from conftest import build_analyzed


class TestAutoFields:

    def test_base_set(self) -> None:
        assert auto_fields_for(CollectionOptions()) == (
            "id", "teamId", "owner", "createdAt", "updatedAt", "createdBy", "updatedBy",
        )

    def test_hierarchy_adds_tree_columns(self) -> None:
        auto = auto_fields_for(CollectionOptions(hierarchy=True))
        for name in ("parentId", "path", "depth", "order"):
            assert name in auto

    def test_sortable_adds_order_only(self) -> None:
        auto = auto_fields_for(CollectionOptions(sortable=True))
        assert "order" in auto
        assert "parentId" not in auto

    def test_not_team_scoped(self) -> None:
        assert "teamId" not in auto_fields_for(CollectionOptions(team_scoped=False))


class TestAnalyze:

    def test_product(self, analyzed_product: AnalyzedCollection) -> None:
        assert analyzed_product.naming.prefixed == "shopProducts"
        assert [f.name for f in analyzed_product.fields] == ["name", "price"]
        assert analyzed_product.fields[1].type is FieldType.DECIMAL
        assert analyzed_product.reference_fields == ()
        assert analyzed_product.hierarchy_fields == ()

    def test_partitions_references(self, reference_schema: Dict[str, Any]) -> None:
        c = build_analyzed(reference_schema)
        assert [f.name for f in c.plain_fields] == ["name"]
        assert [f.name for f in c.reference_fields] == ["categoryId"]
        assert c.reference_fields[0].ref_target == "categories"

    def test_seedable_fields(self, reference_schema: Dict[str, Any]) -> None:
        c = build_analyzed(reference_schema)
        seedable = {s.name: s.placeholder for s in c.seedable_fields}
        assert seedable == {"name": False, "categoryId": True}
        assert not set(seedable) & set(c.auto_fields)

    def test_hierarchy_fields(self, product_schema: Dict[str, Any]) -> None:
        c = build_analyzed(product_schema, hierarchy=True)
        assert c.hierarchy_fields == ("parentId", "path", "depth", "order")
        assert c.orderable

    def test_translatable_and_json_fields(self, rich_schema: Dict[str, Any]) -> None:
        c = build_analyzed(rich_schema)
        assert c.has_translations
        assert [f.name for f in c.translatable_fields] == ["title", "body"]
        assert [f.name for f in c.json_fields] == ["settings", "variants"]
        assert [f.name for f in c.date_fields] == ["publishedAt"]

    def test_repeater_without_children_warning(self) -> None:
        c = build_analyzed({"items": {"type": "repeater"}})
        assert c.warnings == ("items: repeater has no children",)

    def test_label_defaults_to_capitalized_name(self, rich_schema: Dict[str, Any]) -> None:
        c = build_analyzed(rich_schema)
        assert c.fields[5].label == "PublishedAt"


class TestConfigurationErrors:

    def test_collision_with_auto_field(self) -> None:
        request = CollectionRequest(
            layer="shop",
            collection="products",
            fields=(FieldDefinition(name="owner", type="string"),),
        )
        with pytest.raises(NamingCollisionError) as exc_info:
            analyze(request)
        assert exc_info.value.names == ["owner"]
        assert isinstance(exc_info.value, ConfigurationError)

    def test_order_is_a_user_field_without_hierarchy_or_sortable(self) -> None:
        c = build_analyzed({"order": {"type": "number"}, "path": {"type": "string"}})
        assert [f.name for f in c.fields] == ["order", "path"]
        assert "order" not in c.auto_fields
        assert [s.field.name for s in c.seedable_fields] == ["order", "path"]

    @pytest.mark.parametrize("options", [{"hierarchy": True}, {"sortable": True}])
    def test_order_collides_with_sort_column(self, options: Dict[str, bool]) -> None:
        request = CollectionRequest(
            layer="shop",
            collection="products",
            fields=(FieldDefinition(name="order", type="number"),),
            options=CollectionOptions(**options),
        )
        with pytest.raises(NamingCollisionError):
            analyze(request)

    def test_duplicate_fields(self) -> None:
        request = CollectionRequest(
            layer="shop",
            collection="products",
            fields=(
                FieldDefinition(name="title", type="string"),
                FieldDefinition(name="title", type="text"),
            ),
        )
        with pytest.raises(ConfigurationError, match="duplicate"):
            analyze(request)
