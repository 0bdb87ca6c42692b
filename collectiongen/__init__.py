"""
collectiongen - Collection code generator

Turns a field schema into the full artifact set for one team-scoped CRUD
collection: storage schema, queries, validation, seed data, UI scaffold and
REST route stubs.
"""

__version__ = "0.1.0"

from collectiongen.analyzer import AnalyzedCollection, ConfigurationError, NamingCollisionError, analyze
from collectiongen.artifacts import ARTIFACT_GENERATORS, GeneratedFile
from collectiongen.drift import DriftReport, NamedTable, compare
from collectiongen.generator import (
    CollectionGenerator,
    GenerationResult,
    GenerationSession,
    WriteError,
    generate_collection,
)
from collectiongen.spec import (
    CollectionOptions,
    CollectionRequest,
    FieldDefinition,
    GeneratorConfig,
    GeneratorSettings,
    SchemaValidationError,
    validate_schema,
)

__all__ = [
    "AnalyzedCollection",
    "ARTIFACT_GENERATORS",
    "CollectionGenerator",
    "CollectionOptions",
    "CollectionRequest",
    "ConfigurationError",
    "DriftReport",
    "FieldDefinition",
    "GeneratedFile",
    "GenerationResult",
    "GenerationSession",
    "GeneratorConfig",
    "GeneratorSettings",
    "NamedTable",
    "NamingCollisionError",
    "SchemaValidationError",
    "WriteError",
    "analyze",
    "compare",
    "generate_collection",
    "validate_schema",
]
