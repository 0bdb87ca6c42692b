"""
Schema Analyzer - classifies a collection's fields for the artifact generators

Turns a `CollectionRequest` into the shared, read-only context every
generator consumes: naming, plain/reference fields, the system-managed
column set and the seedable fields.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from collectiongen.field_types import FieldType, FieldTypeMapping, lookup
from collectiongen.naming import NamingContext, naming_context
from collectiongen.spec import (
    BASE_AUTO_FIELDS,
    HIERARCHY_FIELDS,
    SORTABLE_FIELDS,
    CollectionOptions,
    CollectionRequest,
    FieldDefinition,
    reserved_field_names,
)

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """A collection request that cannot be generated."""

    def __init__(self, collection: str, message: str):
        self.collection = collection
        super().__init__(f"{collection}: {message}")


class NamingCollisionError(ConfigurationError):
    """A user field shadows a system-managed column."""

    def __init__(self, collection: str, names: list[str]):
        self.names = names
        super().__init__(
            collection,
            f"field(s) {', '.join(names)} collide with auto-generated columns",
        )


# ═══════════════════════════════════════════════════════════════════════════
# ANALYZED CONTEXT
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class AnalyzedField:
    """A user field with its resolved type-table row."""

    definition: FieldDefinition
    mapping: FieldTypeMapping

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def type(self) -> FieldType:
        return self.mapping.type

    @property
    def required(self) -> bool:
        return self.definition.meta.required

    @property
    def ref_target(self) -> str | None:
        return self.definition.ref_target or None

    @property
    def is_reference(self) -> bool:
        return self.ref_target is not None

    @property
    def translatable(self) -> bool:
        return self.definition.meta.translatable

    @property
    def label(self) -> str:
        return self.definition.meta.label or self.name[:1].upper() + self.name[1:]


@dataclass(frozen=True)
class SeedableField:
    """A field the seed module fills. Reference fields only get a placeholder."""

    field: AnalyzedField
    placeholder: bool

    @property
    def name(self) -> str:
        return self.field.name


@dataclass(frozen=True)
class AnalyzedCollection:
    naming: NamingContext
    options: CollectionOptions
    fields: tuple[AnalyzedField, ...]
    plain_fields: tuple[AnalyzedField, ...]
    reference_fields: tuple[AnalyzedField, ...]
    auto_fields: tuple[str, ...]
    hierarchy_fields: tuple[str, ...]
    seedable_fields: tuple[SeedableField, ...]
    warnings: tuple[str, ...] = field(default=())

    @property
    def translatable_fields(self) -> tuple[AnalyzedField, ...]:
        return tuple(f for f in self.fields if f.translatable)

    @property
    def has_translations(self) -> bool:
        return any(f.translatable for f in self.fields)

    @property
    def json_fields(self) -> tuple[AnalyzedField, ...]:
        """Fields stored as JSON that need parsing after a query."""
        return tuple(f for f in self.fields if f.type in (FieldType.JSON, FieldType.REPEATER))

    @property
    def date_fields(self) -> tuple[AnalyzedField, ...]:
        return tuple(f for f in self.fields if f.type == FieldType.DATE)

    @property
    def orderable(self) -> bool:
        """Whether rows carry an `order` column (sortable or hierarchy)."""
        return self.options.hierarchy or self.options.sortable


# ═══════════════════════════════════════════════════════════════════════════
# ANALYSIS
# ═══════════════════════════════════════════════════════════════════════════


def auto_fields_for(options: CollectionOptions) -> tuple[str, ...]:
    """System-managed column names for a set of options."""
    names = list(BASE_AUTO_FIELDS)
    if not options.team_scoped:
        names.remove("teamId")
    if options.hierarchy:
        names.extend(HIERARCHY_FIELDS)
    elif options.sortable:
        names.extend(SORTABLE_FIELDS)
    return tuple(names)


def analyze(request: CollectionRequest) -> AnalyzedCollection:
    """
    Analyze a collection request.

    Raises:
        NamingCollisionError: a user field uses a reserved column name
        ConfigurationError: duplicate field names
    """
    naming = naming_context(request.layer, request.collection)
    options = request.options

    names = [f.name for f in request.fields]
    reserved = reserved_field_names(hierarchy=options.hierarchy, sortable=options.sortable)
    collisions = [n for n in names if n in reserved]
    if collisions:
        raise NamingCollisionError(request.collection, collisions)

    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigurationError(request.collection, f"duplicate field(s) {', '.join(duplicates)}")

    fields = tuple(AnalyzedField(definition=f, mapping=lookup(f.type)) for f in request.fields)
    plain = tuple(f for f in fields if not f.is_reference)
    references = tuple(f for f in fields if f.is_reference)

    auto = auto_fields_for(options)
    hierarchy = HIERARCHY_FIELDS if options.hierarchy else ()

    seedable = tuple(
        SeedableField(field=f, placeholder=f.is_reference)
        for f in fields
        if f.name not in auto
    )

    warnings = []
    for f in fields:
        if f.type == FieldType.REPEATER and not f.definition.meta.children:
            warnings.append(f"{f.name}: repeater has no children")

    logger.debug(
        "Analyzed %s.%s: %d plain, %d reference, %d auto",
        request.layer, request.collection, len(plain), len(references), len(auto),
    )

    return AnalyzedCollection(
        naming=naming,
        options=options,
        fields=fields,
        plain_fields=plain,
        reference_fields=references,
        auto_fields=auto,
        hierarchy_fields=hierarchy,
        seedable_fields=seedable,
        warnings=tuple(warnings),
    )
