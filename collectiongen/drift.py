"""
Consistency Checker - detects drift between copies of the field type table

Read-only and stateless: compares type-name sets and reports differences,
never fixes anything.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Literal

import yaml

from collectiongen.field_types import VALID_FIELD_TYPES

logger = logging.getLogger(__name__)

DriftKind = Literal["missing", "extra"]

# Nested property names inside a FIELD_TYPES entry, not type names
_NESTED_KEYS = frozenset({"db", "drizzle", "zod", "default", "tsType"})


class DriftSourceError(ValueError):
    """A candidate copy could not be read or no type names were found in it."""


# ═══════════════════════════════════════════════════════════════════════════
# MODELS
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class NamedTable:
    """A named copy of the set of field type names."""

    name: str
    types: frozenset[str]
    source: str | None = None

    @classmethod
    def of(cls, name: str, types: Iterable[str], source: str | None = None) -> NamedTable:
        return cls(name=name, types=frozenset(types), source=source)


@dataclass(frozen=True)
class DriftEntry:
    table: str
    type_name: str
    kind: DriftKind

    def __str__(self) -> str:
        sign = "-" if self.kind == "missing" else "+"
        return f"{sign} {self.type_name}"


@dataclass
class DriftReport:
    source_of_truth: NamedTable
    tables: list[NamedTable] = field(default_factory=list)
    entries: list[DriftEntry] = field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return len(self.entries) == 0

    @property
    def mismatched_tables(self) -> list[str]:
        seen: list[str] = []
        for entry in self.entries:
            if entry.table not in seen:
                seen.append(entry.table)
        return seen

    def missing(self, table: str) -> list[str]:
        """Types in the source of truth but absent from `table`."""
        return [e.type_name for e in self.entries if e.table == table and e.kind == "missing"]

    def extra(self, table: str) -> list[str]:
        """Types in `table` the source of truth does not define."""
        return [e.type_name for e in self.entries if e.table == table and e.kind == "extra"]

    def to_text(self) -> str:
        """Human-readable diff, one block per compared table."""
        lines = [f"Source of truth: {self.source_of_truth.name} ({len(self.source_of_truth.types)} types)"]
        for table in self.tables:
            missing = self.missing(table.name)
            extra = self.extra(table.name)
            if not missing and not extra:
                lines.append(f"  {table.name}: in sync")
                continue
            lines.append(f"  {table.name}: out of sync")
            if missing:
                lines.append(f"    Missing: {', '.join(missing)}")
            if extra:
                lines.append(f"    Extra: {', '.join(extra)}")
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════════════════
# COMPARISON
# ═══════════════════════════════════════════════════════════════════════════


def canonical_table() -> NamedTable:
    """The generator's own field type table."""
    return NamedTable.of("field_types", VALID_FIELD_TYPES, source="collectiongen.field_types")


def compare(source_of_truth: NamedTable, candidates: Iterable[NamedTable]) -> DriftReport:
    """
    Compare each candidate's type set against the source of truth.

    Args:
        source_of_truth: Reference table
        candidates: Copies to check

    Returns:
        DriftReport with one entry per type in the symmetric difference
    """
    report = DriftReport(source_of_truth=source_of_truth)
    for table in candidates:
        report.tables.append(table)
        for name in sorted(source_of_truth.types - table.types):
            report.entries.append(DriftEntry(table.name, name, "missing"))
        for name in sorted(table.types - source_of_truth.types):
            report.entries.append(DriftEntry(table.name, name, "extra"))
        logger.debug(
            "%s: %d missing, %d extra",
            table.name, len(report.missing(table.name)), len(report.extra(table.name)),
        )
    return report


# ═══════════════════════════════════════════════════════════════════════════
# EXTRACTORS
# ═══════════════════════════════════════════════════════════════════════════


def extract_object_keys(ts_source: str, export_name: str = "FIELD_TYPES") -> list[str]:
    """
    Extract the top-level keys of an exported TypeScript object literal.

    Only keys opening a nested object (``string: {``) are taken, which skips
    the per-type properties inside each entry.
    """
    match = re.search(
        rf"export\s+const\s+{re.escape(export_name)}[^=]*=\s*\{{(.*?)\n\}}",
        ts_source,
        re.S,
    )
    if not match:
        return []
    keys = re.findall(r"^\s*['\"]?(\w+)['\"]?\s*:\s*\{", match.group(1), re.M)
    return [k for k in dict.fromkeys(keys) if k not in _NESTED_KEYS]


def _cells(row: str) -> list[str]:
    return [c.strip().replace("`", "") for c in row.strip().strip("|").split("|")]


def extract_markdown_types(md_source: str) -> list[str]:
    """
    Extract type names from a markdown table.

    Uses the ``Schema Type`` column when the header has one, otherwise the
    first cell of each row of the first table whose header starts with
    ``Type``.
    """
    lines = md_source.splitlines()
    for i, line in enumerate(lines):
        if not line.lstrip().startswith("|"):
            continue
        header = _cells(line)
        if "Schema Type" in header:
            column = header.index("Schema Type")
        elif header and header[0] == "Type":
            column = 0
        else:
            continue

        types: list[str] = []
        for row in lines[i + 1:]:
            if not row.lstrip().startswith("|"):
                break
            if re.match(r"^\s*\|\s*:?-+", row):
                continue
            cells = _cells(row)
            if column < len(cells):
                name = cells[column]
                if name and "-" not in name and " " not in name:
                    types.append(name)
        return list(dict.fromkeys(types))
    return []


def _types_from_data(data: Any) -> list[str]:
    if isinstance(data, dict):
        if "types" in data:
            return _types_from_data(data["types"])
        return [str(k) for k in data]
    if isinstance(data, list):
        return [str(item) for item in data]
    return []


def load_table(path: str | Path, name: str | None = None) -> NamedTable:
    """
    Load a candidate copy, dispatching on the file suffix.

    ``.ts``/``.js``/``.mjs`` read the ``FIELD_TYPES`` object, ``.md`` a
    markdown table, ``.json``/``.yaml``/``.yml`` a list of names or a
    mapping keyed by name.

    Raises:
        DriftSourceError: unreadable or non-UTF-8 file, unknown suffix or no types found
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DriftSourceError(f"cannot read {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise DriftSourceError(f"{path} is not valid UTF-8: {e}") from e

    suffix = path.suffix.lower()
    try:
        if suffix in (".ts", ".js", ".mjs"):
            types = extract_object_keys(content)
        elif suffix == ".md":
            types = extract_markdown_types(content)
        elif suffix == ".json":
            types = _types_from_data(json.loads(content))
        elif suffix in (".yaml", ".yml"):
            types = _types_from_data(yaml.safe_load(content))
        else:
            raise DriftSourceError(f"unsupported file type {path.suffix!r}: {path}")
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise DriftSourceError(f"cannot parse {path}: {e}") from e

    if not types:
        raise DriftSourceError(f"no field types found in {path}")

    return NamedTable.of(name or path.name, types, source=str(path))
