"""Filesystem documentation store.

Layout::

    <doc_root>/<crate>-<version>/.crate.json
    <doc_root>/<crate>-<version>/<module>/.../<item>.json

Each crate generation is written to a hidden temporary directory and swapped into place,
so readers only ever see a complete generation.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from oxidoc.errors import CorruptEntry, InvalidPath, NotFound, StoreWriteError
from oxidoc.models import CrateMetadata, Item, validate_segment

LOGGER = logging.getLogger(__name__)

CRATE_FILE = ".crate.json"
ITEM_SUFFIX = ".json"

_VERSION_PART = re.compile(r"^(\d+)")
# staging and backup directories of a crate replace: .<name>-<version>.(tmp|old)-<uuid hex>
_LEFTOVER = re.compile(r"^\.(?P<target>.+)\.(?P<kind>tmp|old)-[0-9a-f]{32}$")


def version_key(version: str) -> Tuple[Tuple[int, ...], int, str]:
    """Sort key ordering semantic versions numerically, pre-releases before releases."""
    release, _, prerelease = version.partition("+")[0].partition("-")
    numbers = []
    for part in release.split("."):
        match = _VERSION_PART.match(part)
        numbers.append(int(match.group(1)) if match else 0)
    return tuple(numbers), 0 if prerelease else 1, prerelease


def _dump(data: Dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True) + "\n"


def _may_hold(dir_name: str, lib_name: str) -> bool:
    """Whether the crate directory ``dir_name`` could belong to library ``lib_name``."""
    return dir_name.replace("-", "_").startswith(f"{lib_name}_")


class DocumentStore:
    """Persistence layer mapping qualified paths to item files."""

    def __init__(self, doc_root: Path) -> None:
        self.doc_root = Path(doc_root)

    def crate_dir(self, metadata: CrateMetadata) -> Path:
        return self.doc_root / metadata.dir_name

    def item_path(self, metadata: CrateMetadata, qualified_path: Sequence[str]) -> Path:
        """File holding the item at ``qualified_path`` within ``metadata``'s crate."""
        segments = [validate_segment(segment) for segment in qualified_path]
        if len(segments) < 2:
            raise InvalidPath(f"{'::'.join(segments)} does not name an item inside a crate")
        if segments[0] != metadata.lib_name:
            raise InvalidPath(f"{'::'.join(segments)} is not part of crate {metadata.lib_name}")
        directory = self.crate_dir(metadata).joinpath(*segments[1:-1])
        return directory / f"{segments[-1]}{ITEM_SUFFIX}"

    # ------------------------------------------------------------------ writing

    def write(
        self,
        metadata: CrateMetadata,
        items: Iterable[Item],
        *,
        fingerprint: str | None = None,
    ) -> Path:
        """Replace the stored generation of ``metadata`` with ``items``."""
        items = list(items)
        seen: set[Tuple[str, ...]] = set()
        for item in items:
            if item.qualified_path in seen:
                raise StoreWriteError(f"Duplicate item path {item.path_string} in {metadata}")
            seen.add(item.qualified_path)
            # validates the crate root and segment rules
            self.item_path(metadata, item.qualified_path)

        self.doc_root.mkdir(parents=True, exist_ok=True)
        self._restore_orphans()
        self._remove_leftovers(metadata)
        target = self.crate_dir(metadata)
        staging = self.doc_root / f".{metadata.dir_name}.tmp-{uuid.uuid4().hex}"
        try:
            staging.mkdir()
            self._write_tree(staging, metadata, items, fingerprint)
            self._swap(staging, target)
        except OSError as exc:
            raise StoreWriteError(f"Could not write documentation for {metadata}: {exc}") from exc
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

        LOGGER.info("Stored %d items for %s in %s", len(items), metadata, target)
        return target

    def _write_tree(
        self,
        root: Path,
        metadata: CrateMetadata,
        items: Sequence[Item],
        fingerprint: str | None,
    ) -> None:
        crate_data: Dict[str, Any] = metadata.to_dict()
        crate_data["fingerprint"] = fingerprint
        (root / CRATE_FILE).write_text(_dump(crate_data), encoding="utf-8")

        for item in sorted(items, key=lambda entry: entry.qualified_path):
            relative = self.item_path(metadata, item.qualified_path).relative_to(
                self.crate_dir(metadata)
            )
            destination = root / relative
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_text(_dump(item.to_dict()), encoding="utf-8")

    def _swap(self, staging: Path, target: Path) -> None:
        if not target.exists():
            os.replace(staging, target)
            return

        backup = target.with_name(f".{target.name}.old-{uuid.uuid4().hex}")
        os.replace(target, backup)
        try:
            os.replace(staging, target)
        except BaseException:
            LOGGER.error("Replacing %s failed, restoring previous generation", target)
            os.replace(backup, target)
            raise
        shutil.rmtree(backup, ignore_errors=True)

    # ------------------------------------------------------------------ crates

    def _restore_orphans(self) -> None:
        """Move back generations left aside by a replace that never finished."""
        for child in sorted(self.doc_root.iterdir()):
            match = _LEFTOVER.match(child.name)
            if match is None or match.group("kind") != "old" or not child.is_dir():
                continue
            target = self.doc_root / match.group("target")
            if target.exists():
                continue
            LOGGER.warning("Restoring %s after an interrupted replace", target.name)
            try:
                os.replace(child, target)
            except OSError as exc:
                LOGGER.error("Could not restore %s: %s", target.name, exc)

    def _remove_leftovers(self, metadata: CrateMetadata) -> None:
        for child in self.doc_root.iterdir():
            match = _LEFTOVER.match(child.name)
            if match is not None and match.group("target") == metadata.dir_name and child.is_dir():
                LOGGER.info("Removing leftover %s", child.name)
                shutil.rmtree(child, ignore_errors=True)

    def _load_crate(self, directory: Path) -> CrateMetadata | None:
        path = directory / CRATE_FILE
        if not path.is_file():
            LOGGER.debug("Ignoring %s: no crate metadata", directory)
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            metadata = CrateMetadata.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise CorruptEntry(path, str(exc)) from exc
        if metadata.dir_name != directory.name:
            raise CorruptEntry(path, f"describes {metadata.dir_name}, stored as {directory.name}")
        return metadata

    def crates(self, errors: List[CorruptEntry] | None = None) -> List[CrateMetadata]:
        """Every stored crate generation, sorted by library name then version.

        A damaged crate directory raises :class:`CorruptEntry`, unless ``errors`` is given:
        then it is skipped and its error appended there.
        """
        if not self.doc_root.is_dir():
            return []
        self._restore_orphans()
        found = []
        for child in sorted(self.doc_root.iterdir()):
            if child.name.startswith(".") or not child.is_dir():
                continue
            try:
                metadata = self._load_crate(child)
            except CorruptEntry as exc:
                if errors is None:
                    raise
                LOGGER.error("Skipping %s: %s", child.name, exc)
                errors.append(exc)
                continue
            if metadata is not None:
                found.append(metadata)
        return sorted(found, key=lambda meta: (meta.lib_name, version_key(meta.version)))

    def latest_crates(self, errors: List[CorruptEntry] | None = None) -> List[CrateMetadata]:
        """The newest stored version of every crate, sorted by library name."""
        latest: Dict[str, CrateMetadata] = {}
        for metadata in self.crates(errors):
            latest[metadata.lib_name] = metadata
        return [latest[name] for name in sorted(latest)]

    def latest(self, lib_name: str) -> CrateMetadata | None:
        versions = [meta for meta in self.crates([]) if meta.lib_name == lib_name]
        return versions[-1] if versions else None

    def get_crate(self, lib_name: str, version: str | None = None) -> CrateMetadata:
        """Stored generation of ``lib_name``, the latest one unless ``version`` is given.

        Damaged directories of other crates are ignored. :class:`CorruptEntry` is raised only
        when nothing matched and a damaged directory may hold the requested crate.
        """
        damaged: List[CorruptEntry] = []
        versions = [
            meta
            for meta in self.crates(damaged)
            if meta.lib_name == lib_name and (version is None or meta.version == version)
        ]
        if versions:
            return versions[-1]
        for error in damaged:
            if _may_hold(error.path.parent.name, lib_name):
                raise error
        raise NotFound(f"Crate {lib_name} {version or ''}".strip() + " is not documented")

    def stored_fingerprint(self, metadata: CrateMetadata) -> str | None:
        path = self.crate_dir(metadata) / CRATE_FILE
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning("Unreadable crate metadata %s: %s", path, exc)
            return None
        fingerprint = data.get("fingerprint") if isinstance(data, dict) else None
        return fingerprint if isinstance(fingerprint, str) else None

    # ------------------------------------------------------------------ reading

    def _load_item(self, path: Path, expected: Tuple[str, ...] | None = None) -> Item:
        try:
            item = Item.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except FileNotFoundError as exc:
            raise NotFound(f"No documentation at {path}") from exc
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise CorruptEntry(path, str(exc)) from exc
        if expected is not None and item.qualified_path != expected:
            raise CorruptEntry(path, f"holds {item.path_string}")
        return item

    def read(self, qualified_path: Sequence[str], *, version: str | None = None) -> Item:
        """Load the item at ``qualified_path``.

        Raises :class:`NotFound` if nothing is stored there and :class:`CorruptEntry` if the
        stored file cannot be decoded.
        """
        segments = tuple(validate_segment(segment) for segment in qualified_path)
        if len(segments) < 2:
            raise NotFound(f"{'::'.join(segments)} does not name an item inside a crate")
        metadata = self.get_crate(segments[0], version)
        path = self.item_path(metadata, segments)
        if not path.is_file():
            raise NotFound(f"No documentation for {'::'.join(segments)} in {metadata}")
        return self._load_item(path, segments)

    def list(self, prefix: Sequence[str] = (), *, version: str | None = None) -> List[Item]:
        """Items whose qualified path starts with ``prefix``, sorted by path."""
        segments = tuple(validate_segment(segment) for segment in prefix)
        if not segments:
            items: List[Item] = []
            for metadata in self.latest_crates():
                items.extend(self._list_crate(metadata, ()))
            return items

        try:
            metadata = self.get_crate(segments[0], version)
        except NotFound:
            return []
        return self._list_crate(metadata, segments[1:])

    def _list_crate(self, metadata: CrateMetadata, modules: Tuple[str, ...]) -> List[Item]:
        base = self.crate_dir(metadata)
        directory = base.joinpath(*modules)
        paths: List[Path] = []
        if modules:
            exact = directory.with_name(f"{modules[-1]}{ITEM_SUFFIX}")
            if exact.is_file():
                paths.append(exact)
        if directory.is_dir():
            paths.extend(
                path
                for path in directory.rglob(f"*{ITEM_SUFFIX}")
                if not any(part.startswith(".") for part in path.relative_to(base).parts)
            )

        items = []
        for path in paths:
            relative = path.relative_to(base)
            expected = (metadata.lib_name, *relative.parts[:-1], relative.name[: -len(ITEM_SUFFIX)])
            items.append(self._load_item(path, expected))
        return sorted(items, key=lambda item: item.qualified_path)
