"""
tests/test_generator.py
Tests for the generation pipeline and the atomic collection writer.
"""

from __future__ import annotations

import os
import pathlib
from typing import Any, Dict

import pytest

from collectiongen.artifacts import GeneratedFile
from collectiongen.generator import (
    STAGING_PREFIX,
    CollectionGenerator,
    CollectionWriter,
    GenerationSession,
    WriteError,
    generate_collection,
    write_result,
)
from collectiongen.spec import CollectionRequest, FieldDefinition

from conftest import build_request


def _files_under(root: pathlib.Path) -> list:
    return sorted(p for p in root.rglob("*") if p.is_file())


# ===========================================================================
# Pipeline
# ===========================================================================


class TestCollectionGenerator:

    def test_generate_is_pure(self, product_request: CollectionRequest, tmp_path: pathlib.Path) -> None:
        result = CollectionGenerator().generate(product_request)
        assert result.success
        assert len(result.files) == 12
        assert result.written == []
        assert _files_under(tmp_path) == []

    def test_configuration_error_produces_no_files(self) -> None:
        request = CollectionRequest(
            layer="shop",
            collection="products",
            fields=(FieldDefinition(name="createdBy", type="string"),),
        )
        result = CollectionGenerator().generate(request)
        assert not result.success
        assert result.files == []
        assert "createdBy" in result.errors[0]

    def test_warnings_forwarded(self) -> None:
        result = CollectionGenerator().generate(build_request({"items": {"type": "repeater"}}))
        assert result.success
        assert result.warnings == ["items: repeater has no children"]

    def test_batch_isolates_failures(self, product_schema: Dict[str, Any]) -> None:
        bad = CollectionRequest(
            layer="shop",
            collection="orders",
            fields=(FieldDefinition(name="id", type="string"),),
        )
        good = build_request(product_schema)
        results = CollectionGenerator().generate_batch([bad, good])
        assert [r.success for r in results] == [False, True]
        assert len(results[1].files) == 12


class TestGenerationSession:

    def test_new_layer_announced_once(self, product_schema: Dict[str, Any]) -> None:
        generator = CollectionGenerator(session=GenerationSession())
        first = generator.generate(build_request(product_schema, collection="products"))
        second = generator.generate(build_request(product_schema, collection="orders"))
        third = generator.generate(build_request(product_schema, layer="blog", collection="posts"))
        assert (first.new_layer, second.new_layer, third.new_layer) == (True, False, True)

    def test_sessions_are_independent(self, product_request: CollectionRequest) -> None:
        assert CollectionGenerator().generate(product_request).new_layer
        assert CollectionGenerator().generate(product_request).new_layer


# ===========================================================================
# Writer
# ===========================================================================


class TestCollectionWriter:

    def test_writes_all_files(self, product_request: CollectionRequest, tmp_path: pathlib.Path) -> None:
        result = generate_collection(product_request, tmp_path)
        assert result.success
        assert len(result.written) == 12
        schema = tmp_path / "layers/shop/collections/products/server/database/schema.ts"
        assert schema.read_text(encoding="utf-8") == result.files[0].content
        assert not list(tmp_path.glob(f"{STAGING_PREFIX}*"))

    def test_dry_run_writes_nothing(self, product_request: CollectionRequest, tmp_path: pathlib.Path) -> None:
        result = generate_collection(product_request, tmp_path, dry_run=True)
        assert result.success
        assert len(result.paths) == 12
        assert _files_under(tmp_path) == []

    def test_regeneration_is_a_no_op(self, product_request: CollectionRequest, tmp_path: pathlib.Path) -> None:
        generate_collection(product_request, tmp_path)
        again = generate_collection(product_request, tmp_path)
        assert again.success
        assert again.written == []
        assert len(again.unchanged) == 12

    def test_conflict_without_force(self, product_request: CollectionRequest, tmp_path: pathlib.Path) -> None:
        generate_collection(product_request, tmp_path)
        edited = tmp_path / "layers/shop/collections/products/types.ts"
        edited.write_text("// hand edited\n", encoding="utf-8")

        result = generate_collection(product_request, tmp_path)
        assert not result.success
        assert "already exists" in result.errors[0]
        assert edited.read_text(encoding="utf-8") == "// hand edited\n"

        forced = generate_collection(product_request, tmp_path, force=True)
        assert forced.success
        assert [p.name for p in forced.written] == ["types.ts"]
        assert edited.read_text(encoding="utf-8") != "// hand edited\n"

    def test_non_utf8_target_is_a_conflict(
        self, product_request: CollectionRequest, tmp_path: pathlib.Path,
    ) -> None:
        generate_collection(product_request, tmp_path)
        binary = tmp_path / "layers/shop/collections/products/types.ts"
        binary.write_bytes(b"\xff\xfe\x00garbage")

        result = generate_collection(product_request, tmp_path)
        assert not result.success
        assert "already exists" in result.errors[0]
        assert binary.read_bytes() == b"\xff\xfe\x00garbage"

        forced = generate_collection(product_request, tmp_path, force=True)
        assert forced.success
        assert [p.name for p in forced.written] == ["types.ts"]

    def test_failed_write_leaves_nothing(self, tmp_path: pathlib.Path, monkeypatch) -> None:
        files = [GeneratedFile(path=f"col/file{i}.ts", content=f"// {i}\n") for i in range(4)]
        real_replace = os.replace
        calls = {"n": 0}

        def flaky_replace(src, dst):
            calls["n"] += 1
            if calls["n"] == 3:
                raise OSError("disk full")
            return real_replace(src, dst)

        monkeypatch.setattr(os, "replace", flaky_replace)
        with pytest.raises(WriteError, match="rolled back"):
            CollectionWriter(tmp_path).write("col", files)

        assert _files_under(tmp_path) == []

    def test_failed_overwrite_restores_previous_files(self, tmp_path: pathlib.Path, monkeypatch) -> None:
        (tmp_path / "col").mkdir()
        for i in range(3):
            (tmp_path / f"col/file{i}.ts").write_text("old\n", encoding="utf-8")
        files = [GeneratedFile(path=f"col/file{i}.ts", content="new\n") for i in range(3)]

        real_replace = os.replace
        calls = {"n": 0}

        def flaky_replace(src, dst):
            calls["n"] += 1
            if calls["n"] == 3:
                raise OSError("disk full")
            return real_replace(src, dst)

        monkeypatch.setattr(os, "replace", flaky_replace)
        with pytest.raises(WriteError):
            CollectionWriter(tmp_path, force=True).write("col", files)

        for i in range(3):
            assert (tmp_path / f"col/file{i}.ts").read_text(encoding="utf-8") == "old\n"

    def test_write_result_skips_failed_results(self, tmp_path: pathlib.Path) -> None:
        request = CollectionRequest(
            layer="shop",
            collection="products",
            fields=(FieldDefinition(name="owner", type="string"),),
        )
        result = write_result(CollectionGenerator().generate(request), tmp_path)
        assert not result.success
        assert _files_under(tmp_path) == []
