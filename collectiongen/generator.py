"""
Collection Generator - runs the artifact pipeline and writes its output

analyze -> render every artifact -> (optionally) write all files atomically.
Generation is all-or-nothing per collection: either every artifact renders
and lands on disk, or nothing for that collection changes.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from jinja2 import TemplateError

from collectiongen.analyzer import ConfigurationError, analyze
from collectiongen.artifacts import GeneratedFile, generate_artifacts
from collectiongen.spec import CollectionRequest, GeneratorSettings

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".collectiongen-staging-"


class WriteError(RuntimeError):
    """Writing a collection failed; nothing from it was left on disk."""

    def __init__(self, collection: str, message: str):
        self.collection = collection
        super().__init__(f"{collection}: {message}")


# ═══════════════════════════════════════════════════════════════════════════
# RESULTS
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class GenerationResult:
    """Result of generating one collection."""

    layer: str
    collection: str
    files: list[GeneratedFile] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)
    unchanged: list[Path] = field(default_factory=list)
    new_layer: bool = False

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]


@dataclass
class GenerationSession:
    """
    Per-invocation state shared across a batch.

    Tracks which layers were already seen so the "new layer" notice is
    emitted once per layer, not once per collection.
    """

    seen_layers: set[str] = field(default_factory=set)

    def announce_layer(self, layer: str) -> bool:
        """Return True the first time `layer` is seen in this session."""
        if layer in self.seen_layers:
            return False
        self.seen_layers.add(layer)
        return True


# ═══════════════════════════════════════════════════════════════════════════
# WRITER
# ═══════════════════════════════════════════════════════════════════════════


def _same_content(target: Path, content: str) -> bool:
    # Undecodable files can never match generated text
    try:
        return target.read_text(encoding="utf-8") == content
    except UnicodeDecodeError:
        return False


class CollectionWriter:
    """
    Writes one collection's files as a unit.

    Files are staged in a temporary directory under `output_dir`, then moved
    into place. If any move fails, already moved files are removed and any
    files they replaced are restored.
    """

    def __init__(self, output_dir: Path, force: bool = False):
        """
        Args:
            output_dir: Application root the generated paths are relative to
            force: Overwrite existing files whose content differs
        """
        self.output_dir = output_dir
        self.force = force

    def write(self, collection: str, files: list[GeneratedFile]) -> tuple[list[Path], list[Path]]:
        """
        Write `files` atomically.

        Returns:
            (written paths, unchanged paths)

        Raises:
            WriteError: on a conflict without `force` or any filesystem failure
        """
        pending: list[tuple[GeneratedFile, Path]] = []
        unchanged: list[Path] = []

        for f in files:
            target = self.output_dir / f.path
            if target.exists():
                if _same_content(target, f.content):
                    unchanged.append(target)
                    continue
                if not self.force:
                    raise WriteError(collection, f"{f.path} already exists (use --force to overwrite)")
            pending.append((f, target))

        if not pending:
            return [], unchanged

        self.output_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=self.output_dir))
        moved: list[tuple[Path, Path | None]] = []

        try:
            for i, (f, _) in enumerate(pending):
                staged = staging / "files" / str(i)
                staged.parent.mkdir(parents=True, exist_ok=True)
                staged.write_text(f.content, encoding="utf-8")

            for i, (f, target) in enumerate(pending):
                backup = None
                if target.exists():
                    backup = staging / "backup" / str(i)
                    backup.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(target, backup)
                target.parent.mkdir(parents=True, exist_ok=True)
                os.replace(staging / "files" / str(i), target)
                moved.append((target, backup))
                logger.debug("Wrote %s", f.path)
        except OSError as e:
            self._rollback(moved)
            raise WriteError(collection, f"write failed, rolled back: {e}") from e
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        return [target for target, _ in moved], unchanged

    def _rollback(self, moved: list[tuple[Path, Path | None]]) -> None:
        for target, backup in reversed(moved):
            try:
                if backup is not None:
                    os.replace(backup, target)
                else:
                    target.unlink()
            except OSError as e:
                logger.error("Rollback of %s failed: %s", target, e)


# ═══════════════════════════════════════════════════════════════════════════
# COLLECTION GENERATOR
# ═══════════════════════════════════════════════════════════════════════════


class CollectionGenerator:
    """Generates the artifact set for collection requests."""

    def __init__(
        self,
        settings: GeneratorSettings | None = None,
        session: GenerationSession | None = None,
    ):
        self.settings = settings or GeneratorSettings()
        self.session = session or GenerationSession()

    def generate(self, request: CollectionRequest) -> GenerationResult:
        """
        Render every artifact for `request` without touching the filesystem.

        Args:
            request: Validated collection request

        Returns:
            GenerationResult; on failure `errors` is set and `files` is empty
        """
        result = GenerationResult(layer=request.layer, collection=request.collection)

        try:
            analyzed = analyze(request)
            files = generate_artifacts(analyzed, self.settings)
        except ConfigurationError as e:
            result.errors.append(str(e))
            return result
        except TemplateError as e:
            result.errors.append(f"{request.collection}: template error: {e}")
            return result

        result.files = files
        result.warnings.extend(analyzed.warnings)
        result.new_layer = self.session.announce_layer(request.layer)

        logger.info(
            "Generated %d files for %s/%s",
            len(files), request.layer, analyzed.naming.plural,
        )
        return result

    def generate_batch(self, requests: list[CollectionRequest]) -> list[GenerationResult]:
        """Generate several collections; a failing one does not affect the rest."""
        results = []
        for request in requests:
            result = self.generate(request)
            if not result.success:
                logger.error("Skipping %s/%s: %s", request.layer, request.collection, result.errors[0])
            results.append(result)
        return results


def write_result(result: GenerationResult, output_dir: str | Path, force: bool = False) -> GenerationResult:
    """
    Write a successful result to `output_dir`.

    A `WriteError` is recorded on the result instead of being raised, so a
    batch can carry on with its other collections.
    """
    if not result.success:
        return result

    writer = CollectionWriter(Path(output_dir), force=force)
    try:
        result.written, result.unchanged = writer.write(result.collection, result.files)
    except WriteError as e:
        result.errors.append(str(e))
    return result


# ═══════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ═══════════════════════════════════════════════════════════════════════════


def generate_collection(
    request: CollectionRequest,
    output_dir: str | Path,
    settings: GeneratorSettings | None = None,
    force: bool = False,
    dry_run: bool = False,
) -> GenerationResult:
    """
    Generate one collection and write it under `output_dir`.

    Args:
        request: Collection request
        output_dir: Application root
        settings: Shared generator settings
        force: Overwrite existing files
        dry_run: Run the whole pipeline but write nothing

    Returns:
        GenerationResult with generated files and any errors
    """
    result = CollectionGenerator(settings).generate(request)
    if dry_run:
        return result
    return write_result(result, output_dir, force=force)
