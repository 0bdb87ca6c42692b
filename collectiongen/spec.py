"""
Collection Spec Models - Pydantic models for collection schemas

Defines the raw field-schema format, the per-collection generation request
and the batch configuration file. Raw field schemas are validated here
(losslessly, as a structured issue list) before anything is generated.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from collectiongen.field_types import FieldType, VALID_FIELD_TYPES, is_valid_field_type

logger = logging.getLogger(__name__)


FIELD_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9]*$")
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")

DEFAULT_AUTH_IMPORT = "@crouton/auth/server/utils/team"

# System-managed columns, never supplied by a schema
BASE_AUTO_FIELDS: tuple[str, ...] = (
    "id", "teamId", "owner", "createdAt", "updatedAt", "createdBy", "updatedBy",
)
HIERARCHY_FIELDS: tuple[str, ...] = ("parentId", "path", "depth", "order")
SORTABLE_FIELDS: tuple[str, ...] = ("order",)


def reserved_field_names(hierarchy: bool = False, sortable: bool = False) -> frozenset[str]:
    """Names a user field may not take, given the collection's options."""
    names = set(BASE_AUTO_FIELDS)
    if hierarchy:
        names.update(HIERARCHY_FIELDS)
    elif sortable:
        names.update(SORTABLE_FIELDS)
    return frozenset(names)


# ═══════════════════════════════════════════════════════════════════════════
# SCHEMA VALIDATION
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class SchemaIssue:
    """A validation finding tied to one field (`<schema>` for the whole document)."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass
class SchemaValidationResult:
    errors: list[SchemaIssue] = field(default_factory=list)
    warnings: list[SchemaIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return len(self.errors) == 0

    def error(self, field_name: str, message: str) -> None:
        self.errors.append(SchemaIssue(field_name, message))

    def warn(self, field_name: str, message: str) -> None:
        self.warnings.append(SchemaIssue(field_name, message))


class SchemaValidationError(ValueError):
    """Raised when a raw schema fails validation; carries the full result."""

    def __init__(self, result: SchemaValidationResult, source: str | None = None):
        self.result = result
        self.source = source
        where = f" in {source}" if source else ""
        details = "; ".join(str(e) for e in result.errors)
        super().__init__(f"Invalid schema{where}: {details}")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_schema(
    raw: Any,
    hierarchy: bool = False,
    sortable: bool = False,
) -> SchemaValidationResult:
    """
    Validate a raw field schema (object keyed by field name).

    Unknown types are errors here; unlike `field_types.lookup`, validation
    never silently defaults. Warnings never block generation.

    Args:
        raw: Parsed JSON/YAML document
        hierarchy: Whether hierarchy columns will be generated
        sortable: Whether an order column will be generated

    Returns:
        SchemaValidationResult with errors and warnings
    """
    result = SchemaValidationResult()

    if not isinstance(raw, dict):
        result.error("<schema>", "Schema must be an object keyed by field name")
        return result
    if not raw:
        result.error("<schema>", "Schema is empty. At least one field is required.")
        return result

    reserved = reserved_field_names(hierarchy=hierarchy, sortable=sortable)
    _validate_fields(raw, result, prefix="", reserved=reserved, hierarchy=hierarchy)
    return result


def _validate_meta(label: str, meta: dict[str, Any], result: SchemaValidationResult) -> None:
    for key in ("required", "unique", "translatable"):
        if key in meta and not isinstance(meta[key], bool):
            result.error(label, f"meta.{key} must be true or false")

    if "label" in meta and meta["label"] is not None and not isinstance(meta["label"], str):
        result.error(label, "meta.label must be a string")

    if "maxLength" in meta and meta["maxLength"] is not None:
        value = meta["maxLength"]
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            result.error(label, "meta.maxLength must be a positive integer")

    for key in ("precision", "scale"):
        if key in meta and meta[key] is not None and not _is_number(meta[key]):
            result.error(label, f"meta.{key} must be numeric")


def _children_mapping(
    label: str,
    children: list[Any],
    result: SchemaValidationResult,
) -> dict[str, Any]:
    """Normalise list-form repeater children to the keyed form."""
    mapping: dict[str, Any] = {}
    for i, child in enumerate(children):
        if not isinstance(child, dict) or not isinstance(child.get("name"), str):
            result.error(f"{label}.children[{i}]", "Child must be an object with a string name")
            continue
        spec = {k: v for k, v in child.items() if k != "name"}
        if child["name"] in mapping:
            result.error(f"{label}.{child['name']}", "Duplicate child field name")
            continue
        mapping[child["name"]] = spec
    return mapping


def _validate_fields(
    fields: dict[str, Any],
    result: SchemaValidationResult,
    prefix: str,
    reserved: frozenset[str],
    hierarchy: bool,
) -> None:
    for name, spec in fields.items():
        label = f"{prefix}{name}"

        if not isinstance(name, str) or not FIELD_NAME_PATTERN.match(name):
            result.error(label, "Field name must start with a letter and contain only letters and digits")
            continue

        if not prefix and name in reserved:
            extra = ""
            if name not in BASE_AUTO_FIELDS:
                extra = " with hierarchy" if hierarchy else " when sortable"
            result.error(label, f"'{name}' is auto-generated{extra} and cannot be declared in the schema")
            continue

        if not isinstance(spec, dict):
            result.error(label, "Field definition must be an object")
            continue

        field_type = spec.get("type")
        if field_type is None:
            result.error(label, 'Missing the "type" property')
            continue
        if not is_valid_field_type(field_type):
            result.error(
                label,
                f"Invalid type {field_type!r}. Valid types: {', '.join(VALID_FIELD_TYPES)}",
            )

        meta = spec.get("meta")
        if meta is not None and not isinstance(meta, dict):
            result.error(label, "meta must be an object")
            meta = None
        meta = meta or {}
        _validate_meta(label, meta, result)

        if "refTarget" in spec:
            target = spec["refTarget"]
            if not isinstance(target, str) or not target:
                result.error(label, "refTarget must be a non-empty string")
            elif field_type != FieldType.STRING.value:
                result.warn(
                    label,
                    f"Has refTarget but type is {field_type!r}; reference fields should be 'string'",
                )

        children = meta.get("children")
        if field_type == FieldType.REPEATER.value and not children:
            result.warn(label, "Repeater has no meta.children; items will be untyped")
        elif children:
            if isinstance(children, list):
                children = _children_mapping(label, children, result)
            if isinstance(children, dict):
                _validate_fields(children, result, prefix=f"{label}.", reserved=reserved, hierarchy=hierarchy)
            else:
                result.error(label, "meta.children must be an object keyed by field name or a list")


# ═══════════════════════════════════════════════════════════════════════════
# FIELD MODELS
# ═══════════════════════════════════════════════════════════════════════════


class FieldMeta(BaseModel):
    """Field metadata. Unrecognised keys are kept (`extra="allow"`)."""

    required: bool = False
    precision: float | None = None
    scale: float | None = None
    children: tuple[FieldDefinition, ...] | None = None
    max_length: int | None = Field(None, alias="maxLength")
    unique: bool = False
    translatable: bool = False
    label: str | None = None
    default: Any | None = None

    model_config = {"populate_by_name": True, "extra": "allow", "frozen": True}

    @field_validator("children", mode="before")
    @classmethod
    def children_from_mapping(cls, v: Any) -> Any:
        """Accept children keyed by name, like the top-level schema."""
        if isinstance(v, dict):
            return [{"name": name, **spec} for name, spec in v.items()]
        return v


class FieldDefinition(BaseModel):
    """One user-declared field."""

    name: str
    # Raw token; validated by `validate_schema`, fail-closed by `lookup`
    type: str
    ref_target: str | None = Field(None, alias="refTarget")
    meta: FieldMeta = Field(default_factory=FieldMeta)

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not FIELD_NAME_PATTERN.match(v):
            raise ValueError(f"invalid field name {v!r}")
        return v

    @property
    def is_reference(self) -> bool:
        return bool(self.ref_target)

    @classmethod
    def from_schema(cls, raw: dict[str, Any]) -> list[FieldDefinition]:
        """Build definitions from a schema object keyed by field name (no validation)."""
        return [cls.model_validate({"name": name, **spec}) for name, spec in raw.items()]


FieldMeta.model_rebuild()
FieldDefinition.model_rebuild()


# ═══════════════════════════════════════════════════════════════════════════
# REQUEST
# ═══════════════════════════════════════════════════════════════════════════


class CollectionOptions(BaseModel):
    """Per-collection generation options"""

    hierarchy: bool = False
    sortable: bool = False
    team_scoped: bool = Field(True, alias="teamScoped")
    dialect: Literal["sqlite", "postgres"] = "sqlite"
    seed_count: int = Field(25, alias="seedCount", ge=1)

    model_config = {"populate_by_name": True, "frozen": True}


class CollectionRequest(BaseModel):
    """Everything needed to generate one collection. Immutable."""

    layer: str
    collection: str
    fields: tuple[FieldDefinition, ...]
    options: CollectionOptions = CollectionOptions()

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator("layer", "collection")
    @classmethod
    def validate_identifier(cls, v: str) -> str:
        if not IDENTIFIER_PATTERN.match(v):
            raise ValueError(f"invalid identifier {v!r}")
        return v

    @classmethod
    def from_schema(
        cls,
        layer: str,
        collection: str,
        raw: Any,
        options: CollectionOptions | None = None,
        source: str | None = None,
    ) -> CollectionRequest:
        """Validate a raw schema and build a request from it."""
        options = options or CollectionOptions()
        fields = parse_fields(
            raw, hierarchy=options.hierarchy, sortable=options.sortable, source=source
        )
        return cls(layer=layer, collection=collection, fields=tuple(fields), options=options)


class GeneratorSettings(BaseModel):
    """Options shared by every artifact generator"""

    auth_import: str = Field(DEFAULT_AUTH_IMPORT, alias="authImport")
    seed_team_id: str = Field("seed-team", alias="seedTeamId")

    model_config = {"populate_by_name": True, "frozen": True}


# ═══════════════════════════════════════════════════════════════════════════
# LOADING
# ═══════════════════════════════════════════════════════════════════════════


def load_document(path: str | Path) -> Any:
    """Load a JSON or YAML document, chosen by file suffix."""
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(content)
        return json.loads(content)
    except UnicodeDecodeError as e:
        result = SchemaValidationResult()
        result.error("<schema>", f"{path.name} is not valid UTF-8: {e}")
        raise SchemaValidationError(result, source=str(path)) from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        result = SchemaValidationResult()
        result.error("<schema>", f"Could not parse {path.name}: {e}")
        raise SchemaValidationError(result, source=str(path)) from e


def parse_fields(
    raw: Any,
    hierarchy: bool = False,
    sortable: bool = False,
    source: str | None = None,
) -> list[FieldDefinition]:
    """
    Validate a raw schema and convert it to field definitions.

    Raises:
        SchemaValidationError: if the schema has any errors
    """
    result = validate_schema(raw, hierarchy=hierarchy, sortable=sortable)
    for warning in result.warnings:
        logger.warning("%s%s", f"{source}: " if source else "", warning)
    if not result.valid:
        raise SchemaValidationError(result, source=source)

    fields = []
    for name, spec in raw.items():
        try:
            fields.append(FieldDefinition.model_validate({**spec, "name": name}))
        except ValidationError as e:
            for error in e.errors():
                location = ".".join(str(part) for part in error["loc"])
                result.error(name, f"{location}: {error['msg']}")
    if not result.valid:
        raise SchemaValidationError(result, source=source)
    return fields


# ═══════════════════════════════════════════════════════════════════════════
# BATCH CONFIG
# ═══════════════════════════════════════════════════════════════════════════


class CollectionEntry(BaseModel):
    """One collection in a batch config"""

    layer: str
    name: str
    fields_file: str = Field(alias="fieldsFile")
    hierarchy: bool = False
    sortable: bool = False
    team_scoped: bool = Field(True, alias="teamScoped")

    model_config = {"populate_by_name": True}


class GeneratorConfig(BaseModel):
    """Batch configuration file (collectiongen.yaml)"""

    dialect: Literal["sqlite", "postgres"] = "sqlite"
    seed_count: int = Field(25, alias="seedCount", ge=1)
    auth_import: str = Field(DEFAULT_AUTH_IMPORT, alias="authImport")
    collections: list[CollectionEntry] = []

    model_config = {"populate_by_name": True}

    @classmethod
    def from_yaml(cls, yaml_content: str) -> GeneratorConfig:
        data = yaml.safe_load(yaml_content) or {}
        return cls.model_validate(data)

    @classmethod
    def from_file(cls, path: str | Path) -> GeneratorConfig:
        return cls.from_yaml(Path(path).read_text(encoding="utf-8"))

    @property
    def settings(self) -> GeneratorSettings:
        return GeneratorSettings(auth_import=self.auth_import)

    def requests(self, base_dir: str | Path) -> list[CollectionRequest]:
        """
        Build one request per configured collection.

        Fields files are resolved relative to `base_dir`. The first invalid
        schema raises; use `request_for` to handle entries one at a time.
        """
        return [self.request_for(entry, base_dir) for entry in self.collections]

    def request_for(self, entry: CollectionEntry, base_dir: str | Path) -> CollectionRequest:
        options = CollectionOptions(
            hierarchy=entry.hierarchy,
            sortable=entry.sortable,
            team_scoped=entry.team_scoped,
            dialect=self.dialect,
            seed_count=self.seed_count,
        )
        fields_path = Path(base_dir) / entry.fields_file
        return CollectionRequest.from_schema(
            entry.layer,
            entry.name,
            load_document(fields_path),
            options=options,
            source=str(fields_path),
        )
