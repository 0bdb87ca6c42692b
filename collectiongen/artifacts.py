"""
Artifact Generators - one pure function per emitted file kind

Each generator takes the analyzed collection plus shared settings and
renders a Jinja2 template into a `GeneratedFile`. Nothing here touches the
filesystem; `collectiongen.generator` decides whether and where to write.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from collectiongen.analyzer import AnalyzedCollection, AnalyzedField
from collectiongen.field_types import FieldType, lookup, seed_generator_for
from collectiongen.naming import naming_context, pascal
from collectiongen.spec import GeneratorSettings

USER_SCHEMA_IMPORT = "~~/server/db/schema"
AUDIT_USER_FIELDS = ("owner", "createdBy", "updatedBy")


# ═══════════════════════════════════════════════════════════════════════════
# GENERATED FILE TRACKING
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class GeneratedFile:
    """A generated file, path relative to the application root."""

    path: str
    content: str
    template: str | None = None


# ═══════════════════════════════════════════════════════════════════════════
# JINJA ENVIRONMENT SETUP
# ═══════════════════════════════════════════════════════════════════════════


def where_clause(predicates: list[str], indent: int = 4) -> str:
    """Render a Drizzle `.where(...)`, wrapping several predicates in `and(...)`."""
    pad = " " * indent
    if len(predicates) == 1:
        return f"{pad}.where({predicates[0]})"
    inner = f",\n{pad}    ".join(predicates)
    return f"{pad}.where(\n{pad}  and(\n{pad}    {inner}\n{pad}  )\n{pad})"


def ts_string(value: Any) -> str:
    """Quote `value` as a single-quoted TypeScript string literal."""
    escaped = (
        str(value)
        .replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f"'{escaped}'"


def create_jinja_env(templates_dir: Path) -> Environment:
    """Create Jinja2 environment with code-emitting filters and globals."""

    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=select_autoescape(["html", "xml"]),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )

    env.filters["ts_string"] = ts_string

    env.globals["where_clause"] = where_clause
    env.globals["prefixed"] = lambda layer, target: naming_context(layer, target).prefixed

    return env


TEMPLATES_DIR = Path(__file__).parent / "templates"


@lru_cache(maxsize=None)
def _env(templates_dir: Path = TEMPLATES_DIR) -> Environment:
    return create_jinja_env(templates_dir)


def _render(template_path: str, path: str, **context: Any) -> GeneratedFile:
    content = _env().get_template(template_path).render(**context)
    return GeneratedFile(path=path, content=content, template=template_path)


def _base_context(c: AnalyzedCollection, settings: GeneratorSettings) -> dict[str, Any]:
    return {
        "c": c,
        "n": c.naming,
        "o": c.options,
        "settings": settings,
    }


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


# ═══════════════════════════════════════════════════════════════════════════
# STORAGE SCHEMA
# ═══════════════════════════════════════════════════════════════════════════


def _with_default(column: str, value: str, dialect: str) -> str:
    """Static defaults use `.default()` on postgres and `$default` on sqlite."""
    if dialect == "sqlite":
        return f"{column}.$default(() => {value})"
    return f"{column}.default({value})"


def _field_column(f: AnalyzedField, dialect: str) -> str:
    meta = f.definition.meta
    column = f.mapping.column(dialect, f.name)

    if dialect == "postgres":
        if f.type == FieldType.DECIMAL and meta.precision is not None:
            options = [f"precision: {_number(meta.precision)}"]
            if meta.scale is not None:
                options.append(f"scale: {_number(meta.scale)}")
            column = f"numeric('{f.name}', {{ {', '.join(options)} }})"
        elif f.type == FieldType.STRING and meta.max_length:
            column = f"varchar('{f.name}', {{ length: {meta.max_length} }})"

    if meta.required:
        column += ".notNull()"
    if meta.unique:
        column += ".unique()"

    if f.type == FieldType.BOOLEAN:
        column += f".$default(() => {'true' if meta.default is True else 'false'})"
    elif f.mapping.is_json:
        column += f".$default(() => ({f.mapping.default}))"

    return column


def storage_columns(c: AnalyzedCollection) -> list[tuple[str, str]]:
    """Ordered `(column name, Drizzle builder)` pairs for the storage schema."""
    dialect = c.options.dialect
    timestamp = (
        "integer('{0}', {{ mode: 'timestamp' }})"
        if dialect == "sqlite"
        else "timestamp('{0}', {{ withTimezone: true }})"
    )
    json_builder = "jsonColumn" if dialect == "sqlite" else "jsonb"

    columns: list[tuple[str, str]] = []
    if dialect == "sqlite":
        columns.append(("id", "text('id').primaryKey().$default(() => nanoid())"))
    else:
        columns.append(("id", "uuid('id').primaryKey().defaultRandom()"))

    if c.options.team_scoped:
        columns.append(("teamId", "text('teamId').notNull()"))
    columns.append(("owner", "text('owner').notNull()"))

    if c.options.hierarchy:
        columns.append(("parentId", "text('parentId')"))
        columns.append(("path", _with_default("text('path').notNull()", "'/'", dialect)))
        columns.append(("depth", _with_default("integer('depth').notNull()", "0", dialect)))
    if c.orderable:
        columns.append(("order", _with_default("integer('order').notNull()", "0", dialect)))

    for f in c.fields:
        columns.append((f.name, _field_column(f, dialect)))

    if c.has_translations:
        shape = "; ".join(f"{f.name}?: string" for f in c.translatable_fields)
        columns.append((
            "translations",
            f"{json_builder}('translations').$type<{{ [locale: string]: {{ {shape} }} }}>()",
        ))

    columns.extend([
        ("createdAt", timestamp.format("createdAt") + ".notNull().$default(() => new Date())"),
        (
            "updatedAt",
            timestamp.format("updatedAt")
            + ".notNull().$default(() => new Date()).$onUpdate(() => new Date())",
        ),
        ("createdBy", "text('createdBy').notNull()"),
        ("updatedBy", "text('updatedBy').notNull()"),
    ])
    return columns


def generate_storage_schema(c: AnalyzedCollection, settings: GeneratorSettings) -> GeneratedFile:
    """Drizzle table definition with every user, system and audit column."""
    columns = storage_columns(c)
    uses_varchar = any(expr.startswith("varchar(") for _, expr in columns)
    return _render(
        "schema.ts.j2",
        f"{c.naming.base_path}/server/database/schema.ts",
        columns=columns,
        uses_varchar=uses_varchar,
        table_fn="sqliteTable" if c.options.dialect == "sqlite" else "pgTable",
        **_base_context(c, settings),
    )


def generate_types(c: AnalyzedCollection, settings: GeneratorSettings) -> GeneratedFile:
    """TypeScript record types shared by queries, routes and components."""
    return _render("types.ts.j2", f"{c.naming.base_path}/types.ts", **_base_context(c, settings))


# ═══════════════════════════════════════════════════════════════════════════
# QUERY MODULE
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Join:
    """A LEFT JOIN resolving one reference column through an explicit alias."""

    field: str
    alias: str
    table: str
    selection: str


@dataclass(frozen=True)
class ArrayReference:
    """An `array` field holding ids of another collection, resolved after the query."""

    field: str
    table: str
    function: str


def _reference_table(c: AnalyzedCollection, target: str) -> tuple[str, str]:
    """Return `(import line, table expression)` for a referenced local collection."""
    target_naming = naming_context(c.naming.layer, target)
    module = f"{target_naming.cases.camel_case_plural}Schema"
    line = (
        f"import * as {module} from "
        f"'../../../{target_naming.plural}/server/database/schema'"
    )
    return line, f"{module}.{target_naming.prefixed}"


def _query_context(c: AnalyzedCollection) -> dict[str, Any]:
    table = f"tables.{c.naming.prefixed}"
    team = c.options.team_scoped

    imports: list[str] = [f"import {{ user }} from '{USER_SCHEMA_IMPORT}'"]
    joins: list[Join] = []
    array_refs: list[ArrayReference] = []

    for name in AUDIT_USER_FIELDS:
        alias = f"{name}User"
        joins.append(Join(
            field=name,
            alias=alias,
            table="user",
            selection=(
                f"{{ id: {alias}.id, name: {alias}.name, "
                f"email: {alias}.email, image: {alias}.image }}"
            ),
        ))

    for f in c.reference_fields:
        line, ref_table = _reference_table(c, f.ref_target)
        if line not in imports:
            imports.append(line)
        if f.type == FieldType.ARRAY:
            array_refs.append(ArrayReference(
                field=f.name,
                table=ref_table,
                function=f"attach{pascal(f.name)}Data",
            ))
        else:
            alias = f"{f.name}Ref"
            joins.append(Join(field=f.name, alias=alias, table=ref_table, selection=alias))

    scope = [f"eq({table}.teamId, teamId)"] if team else []
    owned = [f"eq({table}.id, recordId)", *scope, f"eq({table}.owner, ownerId)"]

    if c.orderable:
        order_by = f"asc({table}.order), desc({table}.createdAt)"
    else:
        order_by = f"desc({table}.createdAt)"

    return {
        "table": table,
        "imports": imports,
        "joins": joins,
        "array_refs": array_refs,
        "list_predicates": scope,
        "ids_predicates": [*scope, f"inArray({table}.id, ids)"],
        "owned_predicates": owned,
        "order_by": order_by,
        "core_module": (
            "drizzle-orm/sqlite-core" if c.options.dialect == "sqlite" else "drizzle-orm/pg-core"
        ),
        "team_param": "teamId: string, " if team else "",
        "team_arg": "teamId, " if team else "",
    }


def _post_process(c: AnalyzedCollection, array_refs: list[ArrayReference]) -> str:
    expr = "rows"
    if c.json_fields:
        expr = f"parseJsonFields({expr})"
    for ref in array_refs:
        expr = f"await {ref.function}({expr})"
    return expr


def generate_query_module(c: AnalyzedCollection, settings: GeneratorSettings) -> GeneratedFile:
    """Tenant- and owner-scoped data access functions."""
    context = _query_context(c)
    return _render(
        "queries.ts.j2",
        f"{c.naming.base_path}/server/database/queries.ts",
        post_process=_post_process(c, context["array_refs"]),
        **context,
        **_base_context(c, settings),
    )


# ═══════════════════════════════════════════════════════════════════════════
# VALIDATION COMPOSABLE
# ═══════════════════════════════════════════════════════════════════════════


def _zod(f: AnalyzedField) -> str:
    base = f.mapping.validation
    children = f.definition.meta.children
    if f.type == FieldType.REPEATER and children:
        props = ", ".join(
            f"{child.name}: {_zod(AnalyzedField(child, lookup(child.type)))}"
            for child in children
        )
        base = f"z.array(z.object({{ {props} }}))"

    if f.translatable:
        return f"{base}.optional()"
    if not f.required:
        return f"{base}.optional()"
    if f.type == FieldType.DATE:
        return f"z.date({{ required_error: '{f.name} is required' }})"
    if f.type in (FieldType.STRING, FieldType.TEXT):
        return f"{base}.min(1, '{f.name} is required')"
    return base


def validation_lines(c: AnalyzedCollection) -> list[str]:
    """Zod object members. Auto fields never appear."""
    lines = [f"{f.name}: {_zod(f)}" for f in c.fields]
    if c.options.hierarchy:
        lines.append("parentId: z.string().nullable().optional()")
    if c.has_translations:
        members = ", ".join(
            f"{f.name}: z.string().min(1)" if f.required else f"{f.name}: z.string().optional()"
            for f in c.translatable_fields
        )
        lines.append(f"translations: z.record(z.string(), z.object({{ {members} }})).optional()")
    return lines


def default_lines(c: AnalyzedCollection) -> list[str]:
    lines = [f"{f.name}: {f.mapping.default}" for f in c.fields]
    if c.options.hierarchy:
        lines.append("parentId: null")
    if c.has_translations:
        lines.append("translations: {}")
    return lines


def generate_validation(c: AnalyzedCollection, settings: GeneratorSettings) -> GeneratedFile:
    """Composable exposing the Zod schema, defaults, columns and collection config."""
    n = c.naming
    return _render(
        "composable.ts.j2",
        f"{n.base_path}/app/composables/use{n.prefixed_pascal_plural}.ts",
        zod_lines=validation_lines(c),
        default_lines=default_lines(c),
        **_base_context(c, settings),
    )


# ═══════════════════════════════════════════════════════════════════════════
# SEED MODULE
# ═══════════════════════════════════════════════════════════════════════════


def seed_mappings(c: AnalyzedCollection) -> list[tuple[str, str, str | None]]:
    """`(field, generator expression, note)` for every seedable field."""
    mappings = []
    for s in c.seedable_fields:
        f = s.field
        if s.placeholder:
            note = (
                f"NOTE: {f.name} references '{f.ref_target}' - "
                f"seed {f.ref_target} first, then update this"
            )
            mappings.append((
                f.name,
                f"f.valuesFromArray({{ values: ['placeholder-{f.ref_target}-id'] }})",
                note,
            ))
        else:
            mappings.append((f.name, seed_generator_for(f.name, f.type), None))
    return mappings


def generate_seed_module(c: AnalyzedCollection, settings: GeneratorSettings) -> GeneratedFile:
    """drizzle-seed module producing N synthetic records."""
    n = c.naming
    return _render(
        "seed.ts.j2",
        f"{n.base_path}/server/database/seed.ts",
        mappings=seed_mappings(c),
        function_name=f"seed{n.prefixed_pascal_plural}",
        **_base_context(c, settings),
    )


# ═══════════════════════════════════════════════════════════════════════════
# LIST / FORM SCAFFOLD
# ═══════════════════════════════════════════════════════════════════════════


def generate_list_component(c: AnalyzedCollection, settings: GeneratorSettings) -> GeneratedFile:
    return _render(
        "list.vue.j2",
        f"{c.naming.base_path}/app/components/List.vue",
        **_base_context(c, settings),
    )


def generate_form_component(c: AnalyzedCollection, settings: GeneratorSettings) -> GeneratedFile:
    """Create/update form; translatable fields are edited through the translation hook."""
    return _render(
        "form.vue.j2",
        f"{c.naming.base_path}/app/components/Form.vue",
        **_base_context(c, settings),
    )


# ═══════════════════════════════════════════════════════════════════════════
# ROUTE STUBS
# ═══════════════════════════════════════════════════════════════════════════


def route_paths(c: AnalyzedCollection) -> dict[str, str]:
    """Route kind -> file path. `reorder`/`move` only when sortable/hierarchy."""
    n = c.naming
    base = f"{n.base_path}/server/api/teams/[id]/{n.api_path}"
    paths = {
        "list": f"{base}/index.get.ts",
        "get": f"{base}/[{n.id_param}].get.ts",
        "create": f"{base}/index.post.ts",
        "update": f"{base}/[{n.id_param}].patch.ts",
        "delete": f"{base}/[{n.id_param}].delete.ts",
    }
    if c.orderable:
        paths["reorder"] = f"{base}/reorder.patch.ts"
    if c.options.hierarchy:
        paths["move"] = f"{base}/[{n.id_param}]/move.patch.ts"
    return paths


def generate_route_stubs(c: AnalyzedCollection, settings: GeneratorSettings) -> list[GeneratedFile]:
    """REST handler stubs; each resolves team and user before touching data."""
    context = _base_context(c, settings)
    context["team_arg"] = "team.id, " if c.options.team_scoped else ""
    files = []
    for kind, path in route_paths(c).items():
        depth = path.count("/") - c.naming.base_path.count("/") - 2
        context["queries_path"] = "../" * depth + "database/queries"
        context["types_path"] = "../" * (depth + 1) + "types"
        files.append(_render(f"routes/{kind}.ts.j2", path, **context))
    return files


# ═══════════════════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════════════════


ArtifactGenerator = Callable[
    [AnalyzedCollection, GeneratorSettings],
    Union[GeneratedFile, list[GeneratedFile]],
]

ARTIFACT_GENERATORS: tuple[ArtifactGenerator, ...] = (
    generate_storage_schema,
    generate_types,
    generate_query_module,
    generate_validation,
    generate_seed_module,
    generate_list_component,
    generate_form_component,
    generate_route_stubs,
)


def generate_artifacts(c: AnalyzedCollection, settings: GeneratorSettings) -> list[GeneratedFile]:
    """Run every generator; they only share the analyzed context, so order is irrelevant."""
    files: list[GeneratedFile] = []
    for generator in ARTIFACT_GENERATORS:
        produced = generator(c, settings)
        files.extend(produced if isinstance(produced, list) else [produced])
    return files
