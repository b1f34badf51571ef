"""Cargo manifest reading."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from oxidoc.errors import InvalidPath, ManifestError
from oxidoc.models import CrateMetadata
from oxidoc.utils.files import MANIFEST_NAME

LOGGER = logging.getLogger(__name__)

DEFAULT_ENTRY_POINTS = ("src/lib.rs", "src/main.rs")


@dataclass(slots=True)
class CrateManifest:
    """The parts of ``Cargo.toml`` the indexer needs."""

    metadata: CrateMetadata
    lib_path: Path | None = None


def _get_table(data: Dict[str, Any], name: str, path: Path) -> Dict[str, Any]:
    table = data.get(name)
    if not isinstance(table, dict):
        raise ManifestError(path, f"missing [{name}] table")
    return table


def _get_string(table: Dict[str, Any], key: str, path: Path) -> str:
    value = table.get(key)
    if isinstance(value, dict) and value.get("workspace") is True:
        raise ManifestError(path, f"package.{key} is inherited from the workspace")
    if not isinstance(value, str) or not value.strip():
        raise ManifestError(path, f"package.{key} must be a non-empty string")
    return value.strip()


def read_manifest(crate_root: Path) -> CrateManifest:
    """Read crate name, version and library target from ``crate_root/Cargo.toml``."""
    path = crate_root / MANIFEST_NAME
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ManifestError(path, "manifest not found") from exc
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ManifestError(path, f"invalid TOML: {exc}") from exc

    package = _get_table(data, "package", path)
    name = _get_string(package, "name", path)
    version = _get_string(package, "version", path)

    lib = data.get("lib")
    lib_name = ""
    lib_path = None
    if isinstance(lib, dict):
        if isinstance(lib.get("name"), str):
            lib_name = lib["name"]
        if isinstance(lib.get("path"), str):
            lib_path = crate_root / lib["path"]

    try:
        metadata = CrateMetadata(name=name, version=version, lib_name=lib_name)
    except InvalidPath as exc:
        raise ManifestError(path, str(exc)) from exc

    LOGGER.debug("Read manifest %s: %s", path, metadata)
    return CrateManifest(metadata=metadata, lib_path=lib_path)


def find_entry_point(crate_root: Path, manifest: CrateManifest) -> Path:
    """Locate the crate root module: ``[lib] path``, then ``src/lib.rs``, then ``src/main.rs``."""
    candidates = [manifest.lib_path] if manifest.lib_path is not None else []
    candidates.extend(crate_root / entry for entry in DEFAULT_ENTRY_POINTS)
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    raise ManifestError(
        crate_root / MANIFEST_NAME,
        "no crate entry point found (nonstandard targets are unsupported)",
    )
