"""Crate indexing and generation pipeline."""

from __future__ import annotations

import hashlib
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from oxidoc.errors import DuplicatePathError, OxidocError, ParseError
from oxidoc.index.storage import DocumentStore
from oxidoc.ingestion.manifest import find_entry_point, read_manifest
from oxidoc.ingestion.rust_parser import ParsedFile, SubmoduleRef, parse_file
from oxidoc.models import CrateIndex, Item, ItemKind, SourceLocation
from oxidoc.utils.files import MANIFEST_NAME, compute_sha256, iter_rust_files

LOGGER = logging.getLogger(__name__)

# Declaration kinds that become stored items.
INDEXED_KINDS = frozenset({ItemKind.FUNCTION.value})

# Files whose submodules live next to them rather than in a directory named after them.
_MOD_RS_NAMES = {"lib.rs", "main.rs", "mod.rs"}


@dataclass(slots=True)
class _ModuleFile:
    path: Path
    modules: Tuple[str, ...]
    # directory holding this module's out-of-line children
    child_dir: Path


def _child_dir(path: Path, *, owns_directory: bool) -> Path:
    if owns_directory or path.name in _MOD_RS_NAMES:
        return path.parent
    return path.parent / path.stem


def _resolve_submodule(parent: _ModuleFile, ref: SubmoduleRef) -> Path | None:
    inline = ref.modules[:-1]
    if ref.path_attr is not None:
        base = parent.child_dir.joinpath(*inline) if inline else parent.path.parent
        candidate = base / ref.path_attr
        return candidate if candidate.is_file() else None

    directory = parent.child_dir.joinpath(*inline)
    for candidate in (directory / f"{ref.name}.rs", directory / ref.name / "mod.rs"):
        if candidate.is_file():
            return candidate
    return None


class CrateIndexer:
    """Turns a crate source tree into items. Reads source, writes nothing."""

    def __init__(self, *, workers: int = 4) -> None:
        self.workers = max(1, workers)

    def index(self, crate_root: Path) -> CrateIndex:
        """Index the crate at ``crate_root``.

        Raises :class:`ManifestError` when the crate metadata or entry point is missing.
        Per-file problems are collected in ``CrateIndex.errors``.
        """
        crate_root = Path(crate_root)
        manifest = read_manifest(crate_root)
        metadata = manifest.metadata
        entry = find_entry_point(crate_root, manifest)
        result = CrateIndex(metadata=metadata)

        claimed: Dict[Tuple[str, ...], Path] = {}
        seen_files = {entry.resolve()}
        pending = [_ModuleFile(entry, (), entry.parent)]

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            while pending:
                outcomes = list(executor.map(self._parse, [module.path for module in pending]))
                discovered: List[_ModuleFile] = []

                for module, outcome in zip(pending, outcomes):
                    relative = self._relative(crate_root, module.path)
                    if isinstance(outcome, ParseError):
                        LOGGER.warning("Skipping %s: %s", relative, outcome.reason)
                        result.errors.append(ParseError(relative, outcome.reason))
                        continue

                    result.files.append(relative)
                    self._collect_items(result, module, outcome, relative, claimed)

                    for ref in outcome.submodules:
                        modules = module.modules + ref.modules
                        resolved = _resolve_submodule(module, ref)
                        if resolved is None:
                            reason = f"file for module {'::'.join(modules)} not found"
                            LOGGER.warning("%s (declared in %s)", reason, relative)
                            result.errors.append(ParseError(relative, reason))
                            continue
                        if resolved.resolve() in seen_files:
                            continue
                        seen_files.add(resolved.resolve())
                        discovered.append(
                            _ModuleFile(
                                resolved,
                                modules,
                                _child_dir(resolved, owns_directory=ref.path_attr is not None),
                            )
                        )

                pending = sorted(discovered, key=lambda module: (module.modules, str(module.path)))

        LOGGER.info(
            "Indexed %s: %d items from %d files, %d problems",
            metadata,
            len(result.items),
            len(result.files),
            len(result.errors),
        )
        return result

    @staticmethod
    def _parse(path: Path) -> ParsedFile | ParseError:
        try:
            return parse_file(path)
        except ParseError as exc:
            return exc

    @staticmethod
    def _relative(crate_root: Path, path: Path) -> Path:
        try:
            return path.relative_to(crate_root)
        except ValueError:
            return path

    @staticmethod
    def _collect_items(
        result: CrateIndex,
        module: _ModuleFile,
        parsed: ParsedFile,
        relative: Path,
        claimed: Dict[Tuple[str, ...], Path],
    ) -> None:
        metadata = result.metadata
        for declaration in parsed.declarations:
            if declaration.kind not in INDEXED_KINDS:
                continue
            item = Item.create(
                kind=ItemKind(declaration.kind),
                name=declaration.name,
                parent=(metadata.lib_name, *module.modules, *declaration.modules),
                signature=declaration.signature,
                source=SourceLocation(
                    file=relative,
                    crate_name=metadata.name,
                    crate_version=metadata.version,
                    line=declaration.line,
                ),
                docs=declaration.docs,
            )
            if item.qualified_path in claimed:
                LOGGER.warning(
                    "Duplicate item %s in %s (first declared in %s)",
                    item.path_string,
                    relative,
                    claimed[item.qualified_path],
                )
                result.errors.append(DuplicatePathError(item.path_string, relative))
                continue
            claimed[item.qualified_path] = relative
            result.items.append(item)

    @staticmethod
    def fingerprint(crate_root: Path) -> str:
        """Digest of the manifest and every Rust source file of the crate."""
        crate_root = Path(crate_root)
        sha = hashlib.sha256()
        files = [crate_root / MANIFEST_NAME, *iter_rust_files(crate_root)]
        for path in files:
            if not path.is_file():
                continue
            sha.update(path.relative_to(crate_root).as_posix().encode("utf-8"))
            sha.update(b"\0")
            sha.update(compute_sha256(path).encode("ascii"))
            sha.update(b"\n")
        return sha.hexdigest()


@dataclass(slots=True)
class CrateReport:
    """Outcome of generating documentation for one crate directory."""

    path: Path
    status: str
    crate: str | None = None
    items: int = 0
    errors: List[Exception] = field(default_factory=list)


@dataclass(slots=True)
class GenerationReport:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    crates: List[CrateReport] = field(default_factory=list)

    def increment(self, report: CrateReport) -> None:
        if report.status == "inserted":
            self.inserted += 1
        elif report.status == "updated":
            self.updated += 1
        elif report.status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
        self.crates.append(report)

    @property
    def errors(self) -> List[Exception]:
        return [error for report in self.crates for error in report.errors]


class Indexer:
    """Coordinates crate indexing and persistence."""

    def __init__(
        self,
        store: DocumentStore,
        crate_indexer: CrateIndexer | None = None,
        *,
        force: bool = False,
    ) -> None:
        self.store = store
        self.crate_indexer = crate_indexer or CrateIndexer()
        self.force = force

    def index(self, crate_dirs: Sequence[Path]) -> GenerationReport:
        """Generate documentation for every crate directory, one crate at a time."""
        report = GenerationReport()
        if not crate_dirs:
            LOGGER.warning("No crates found")
            return report

        for crate_dir in crate_dirs:
            LOGGER.info(f"Processing: {crate_dir}")
            try:
                crate_report = self._index_single(Path(crate_dir))
            except OxidocError as exc:
                LOGGER.error(f"Failed to document {crate_dir}: {exc}")
                crate_report = CrateReport(path=Path(crate_dir), status="failed", errors=[exc])
            report.increment(crate_report)
        return report

    def _index_single(self, crate_dir: Path) -> CrateReport:
        manifest = read_manifest(crate_dir)
        fingerprint = self.crate_indexer.fingerprint(crate_dir)
        stored = self.store.stored_fingerprint(manifest.metadata)
        if not self.force and stored == fingerprint:
            LOGGER.info("%s is up to date", manifest.metadata)
            return CrateReport(path=crate_dir, status="skipped", crate=str(manifest.metadata))

        crate_index = self.crate_indexer.index(crate_dir)
        if not crate_index.files:
            LOGGER.error("No source file of %s could be parsed", crate_index.metadata)
            return CrateReport(
                path=crate_dir,
                status="failed",
                crate=str(crate_index.metadata),
                errors=list(crate_index.errors),
            )

        existed = self.store.crate_dir(crate_index.metadata).exists()
        self.store.write(crate_index.metadata, crate_index.items, fingerprint=fingerprint)
        return CrateReport(
            path=crate_dir,
            status="updated" if existed else "inserted",
            crate=str(crate_index.metadata),
            items=len(crate_index.items),
            errors=list(crate_index.errors),
        )
