"""
Naming Engine - case conversions and the per-collection naming context

Every emitted artifact derives its identifiers from here, so a storage
table, its query module and its UI scaffold always agree on one symbol.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache


# ═══════════════════════════════════════════════════════════════════════════
# CASE HELPERS
# ═══════════════════════════════════════════════════════════════════════════


_SEGMENT_START = re.compile(r"(^|[_\-\s]+)([a-z])")


def pascal(s: str) -> str:
    """Capitalize each `_`/`-`/whitespace delimited segment and drop the delimiters."""
    return _SEGMENT_START.sub(lambda m: m.group(2).upper(), str(s))


def camel(s: str) -> str:
    """Convert to camelCase."""
    p = pascal(s)
    return p[:1].lower() + p[1:]


def to_snake_case(s: str) -> str:
    """Convert to snake_case. `emailTemplates` -> `email_templates`."""
    s = re.sub(r"([A-Z])", r"_\1", s)
    s = re.sub(r"^_", "", s)
    return s.replace("-", "_").lower()


def to_kebab_case(s: str) -> str:
    """Convert camelCase or PascalCase to kebab-case."""
    s = re.sub(r"([a-z])([A-Z])", r"\1-\2", s)
    s = re.sub(r"([A-Z])([A-Z][a-z])", r"\1-\2", s)
    return s.lower()


def layer_camel(layer: str) -> str:
    """`knowledge-base` -> `knowledgeBase`."""
    parts = re.split(r"[-_]", layer)
    return parts[0] + "".join(p[:1].upper() + p[1:] for p in parts[1:])


def layer_pascal(layer: str) -> str:
    """`knowledge-base` -> `KnowledgeBase`."""
    return "".join(p[:1].upper() + p[1:] for p in re.split(r"[-_]", layer))


@dataclass(frozen=True)
class CaseVariants:
    """Singular/plural forms of a name and their case variants."""

    singular: str
    plural: str
    pascal_case: str
    pascal_case_plural: str
    camel_case: str
    camel_case_plural: str
    upper_case: str
    kebab_case: str


def to_case(s: str) -> CaseVariants:
    """
    Derive singular/plural forms and case variants.

    Pluralization is naive on purpose: a trailing ``s`` means the name is
    already plural, anything else gets an ``s`` appended. Irregular plurals
    (``category`` -> ``categorys``) are not corrected because already
    generated code depends on these exact strings.
    """
    singular = s[:-1] if s.endswith("s") and len(s) > 1 else s
    plural = s if s.endswith("s") else s + "s"

    singular_pascal = pascal(singular)
    plural_pascal = pascal(plural)

    return CaseVariants(
        singular=singular.lower(),
        plural=plural.lower(),
        pascal_case=singular_pascal,
        pascal_case_plural=plural_pascal,
        camel_case=singular_pascal[:1].lower() + singular_pascal[1:],
        camel_case_plural=plural_pascal[:1].lower() + plural_pascal[1:],
        upper_case=singular.upper(),
        # Lowercased without hyphenation, as already generated code expects
        kebab_case=singular.lower(),
    )


# ═══════════════════════════════════════════════════════════════════════════
# NAMING CONTEXT
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class NamingContext:
    """All identifiers shared by the artifacts of one collection."""

    layer: str
    collection: str
    cases: CaseVariants
    layer_camel: str
    layer_pascal: str

    @property
    def singular(self) -> str:
        return self.cases.singular

    @property
    def plural(self) -> str:
        return self.cases.plural

    @property
    def prefixed(self) -> str:
        """Layer-prefixed table symbol, e.g. `shopProducts`."""
        return f"{self.layer_camel}{self.cases.pascal_case_plural}"

    @property
    def prefixed_pascal(self) -> str:
        """e.g. `ShopProduct` (record type, create/update/delete functions)."""
        return f"{self.layer_pascal}{self.cases.pascal_case}"

    @property
    def prefixed_pascal_plural(self) -> str:
        """e.g. `ShopProducts` (list functions, composable, components)."""
        return f"{self.layer_pascal}{self.cases.pascal_case_plural}"

    @property
    def prefixed_camel(self) -> str:
        """e.g. `shopProduct` (Zod schema variable)."""
        return f"{self.layer_camel}{self.cases.pascal_case}"

    @property
    def table_name(self) -> str:
        """SQL table name, e.g. `shop_products`."""
        return to_snake_case(f"{self.layer}_{self.cases.plural}")

    @property
    def api_path(self) -> str:
        """Route segment under `/api/teams/[id]/`, e.g. `shop-products`."""
        return f"{self.layer}-{self.cases.plural}"

    @property
    def id_param(self) -> str:
        """Router parameter holding the record id, e.g. `productId`."""
        return f"{self.cases.camel_case}Id"

    @property
    def base_path(self) -> str:
        """Collection directory relative to the app root."""
        return f"layers/{self.layer}/collections/{self.cases.plural}"


@lru_cache(maxsize=None)
def naming_context(layer: str, collection: str) -> NamingContext:
    """
    Build the naming context for a collection.

    A pure function of ``(layer, collection)``: regenerating a collection
    always yields the same symbols.
    """
    return NamingContext(
        layer=layer,
        collection=collection,
        cases=to_case(collection),
        layer_camel=layer_camel(layer),
        layer_pascal=layer_pascal(layer),
    )
