"""
Field Type Table - the canonical mapping from abstract field types

Every other consumer of field types (AI tool surfaces, documentation) keeps
its own copy of this table; `collectiongen.drift` checks them against it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Literal, Mapping

logger = logging.getLogger(__name__)

Dialect = Literal["sqlite", "postgres"]


class FieldType(str, Enum):
    STRING = "string"
    TEXT = "text"
    NUMBER = "number"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    JSON = "json"
    REPEATER = "repeater"
    ARRAY = "array"


VALID_FIELD_TYPES: tuple[str, ...] = tuple(t.value for t in FieldType)


@dataclass(frozen=True)
class FieldTypeMapping:
    """One row of the field type table."""

    type: FieldType
    storage: str  # Abstract storage token shown in docs
    validation: str  # Zod expression
    default: str  # TypeScript literal
    generated_type: str  # TypeScript type
    seed_generator: str  # drizzle-seed expression
    sqlite: str  # Drizzle column builder, `{name}` placeholder
    postgres: str

    def column(self, dialect: Dialect, name: str) -> str:
        """Render the Drizzle column builder for `name` in `dialect`."""
        template = self.sqlite if dialect == "sqlite" else self.postgres
        return template.format(name=name)

    @property
    def is_json(self) -> bool:
        return self.storage == "json"


# ═══════════════════════════════════════════════════════════════════════════
# TABLE
# ═══════════════════════════════════════════════════════════════════════════


_ROWS = (
    FieldTypeMapping(
        type=FieldType.STRING,
        storage="text",
        validation="z.string()",
        default="''",
        generated_type="string",
        seed_generator="f.loremIpsum({ sentencesCount: 1 })",
        sqlite="text('{name}')",
        postgres="text('{name}')",
    ),
    FieldTypeMapping(
        type=FieldType.TEXT,
        storage="text",
        validation="z.string()",
        default="''",
        generated_type="string",
        seed_generator="f.loremIpsum({ sentencesCount: 3 })",
        sqlite="text('{name}')",
        postgres="text('{name}')",
    ),
    FieldTypeMapping(
        type=FieldType.NUMBER,
        storage="integer",
        validation="z.number()",
        default="0",
        generated_type="number",
        seed_generator="f.int({ minValue: 0, maxValue: 100 })",
        sqlite="integer('{name}')",
        postgres="integer('{name}')",
    ),
    FieldTypeMapping(
        type=FieldType.DECIMAL,
        storage="decimal",
        validation="z.number()",
        default="0",
        generated_type="number",
        seed_generator="f.number({ minValue: 0, maxValue: 1000, precision: 100 })",
        sqlite="numeric('{name}')",
        postgres="numeric('{name}')",
    ),
    FieldTypeMapping(
        type=FieldType.BOOLEAN,
        storage="boolean",
        validation="z.boolean()",
        default="false",
        generated_type="boolean",
        seed_generator="f.weightedRandom([{ value: true, weight: 0.5 }, { value: false, weight: 0.5 }])",
        sqlite="integer('{name}', {{ mode: 'boolean' }})",
        postgres="boolean('{name}')",
    ),
    FieldTypeMapping(
        type=FieldType.DATE,
        storage="timestamp",
        validation="z.date()",
        default="null",
        generated_type="Date | null",
        seed_generator="f.date({ minDate: \"2020-01-01\", maxDate: \"2025-12-31\" })",
        sqlite="integer('{name}', {{ mode: 'timestamp' }})",
        postgres="timestamp('{name}', {{ withTimezone: true }})",
    ),
    FieldTypeMapping(
        type=FieldType.JSON,
        storage="json",
        validation="z.record(z.any())",
        default="{}",
        generated_type="Record<string, any>",
        seed_generator="f.valuesFromArray({ values: [{}] })",
        sqlite="jsonColumn('{name}')",
        postgres="jsonb('{name}')",
    ),
    FieldTypeMapping(
        type=FieldType.REPEATER,
        storage="json",
        validation="z.array(z.any())",
        default="[]",
        generated_type="any[]",
        seed_generator="f.valuesFromArray({ values: [[]] })",
        sqlite="jsonColumn('{name}')",
        postgres="jsonb('{name}')",
    ),
    FieldTypeMapping(
        type=FieldType.ARRAY,
        storage="json",
        validation="z.array(z.string())",
        default="[]",
        generated_type="string[]",
        seed_generator="f.valuesFromArray({ values: [[]] })",
        sqlite="jsonColumn('{name}')",
        postgres="jsonb('{name}')",
    ),
)

FIELD_TYPE_TABLE: Mapping[FieldType, FieldTypeMapping] = MappingProxyType(
    {row.type: row for row in _ROWS}
)


def is_valid_field_type(token: object) -> bool:
    return isinstance(token, str) and token in VALID_FIELD_TYPES


def lookup(field_type: FieldType | str | None) -> FieldTypeMapping:
    """
    Return the table row for a field type.

    Unknown tokens fail closed to the ``string`` row instead of raising, so a
    malformed schema degrades gracefully instead of aborting a multi-file
    generation half way. Input validation (`collectiongen.spec`) is where
    unknown types are rejected.
    """
    if isinstance(field_type, FieldType):
        return FIELD_TYPE_TABLE[field_type]
    if is_valid_field_type(field_type):
        return FIELD_TYPE_TABLE[FieldType(field_type)]
    logger.warning("Unknown field type %r, falling back to 'string'", field_type)
    return FIELD_TYPE_TABLE[FieldType.STRING]


# ═══════════════════════════════════════════════════════════════════════════
# SEED GENERATORS
# ═══════════════════════════════════════════════════════════════════════════


def seed_generator_for(name: str, field_type: FieldType | str | None) -> str:
    """Pick a drizzle-seed generator, preferring field-name heuristics over the type row."""
    n = name.lower()

    if "email" in n:
        return "f.email()"
    if n in ("name", "fullname", "full_name"):
        return "f.fullName()"
    if n in ("firstname", "first_name"):
        return "f.firstName()"
    if n in ("lastname", "last_name"):
        return "f.lastName()"
    if n in ("title", "slug"):
        return "f.loremIpsum({ sentencesCount: 1 })"
    if n in ("description", "bio", "content", "summary"):
        return "f.loremIpsum({ sentencesCount: 3 })"
    if "phone" in n:
        return "f.phoneNumber()"
    if any(k in n for k in ("url", "website", "link")):
        return 'f.valuesFromArray({ values: ["https://example.com"] })'
    if any(k in n for k in ("price", "amount", "cost", "total")):
        return "f.number({ minValue: 1, maxValue: 1000, precision: 100 })"
    if any(k in n for k in ("quantity", "count", "stock")):
        return "f.int({ minValue: 0, maxValue: 100 })"
    if "address" in n:
        return "f.streetAddress()"
    if n == "city":
        return "f.city()"
    if n == "country":
        return "f.country()"
    if n in ("state", "province"):
        return "f.state()"
    if "zip" in n or "postal" in n:
        return "f.postcode()"
    if n == "status":
        return 'f.valuesFromArray({ values: ["active", "inactive", "pending"] })'
    if n in ("type", "category"):
        return 'f.valuesFromArray({ values: ["type_a", "type_b", "type_c"] })'

    return lookup(field_type).seed_generator


# ═══════════════════════════════════════════════════════════════════════════
# REFERENCE DOCUMENT
# ═══════════════════════════════════════════════════════════════════════════


def render_field_type_reference() -> str:
    """Markdown reference table, the copy served to docs and AI tool surfaces."""
    lines = [
        "# Field Types Reference",
        "",
        "| Type | Zod Validation | TypeScript | DB (Drizzle) | Default |",
        "|------|----------------|------------|--------------|---------|",
    ]
    for row in _ROWS:
        ts_type = row.generated_type.replace("|", "\\|")
        lines.append(
            f"| `{row.type.value}` | `{row.validation}` | `{ts_type}` "
            f"| `{row.storage}` | `{row.default}` |"
        )
    return "\n".join(lines) + "\n"
