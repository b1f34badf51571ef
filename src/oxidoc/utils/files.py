"""Utility helpers for working with crate directories."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterable, Iterator

MANIFEST_NAME = "Cargo.toml"
_SKIPPED_DIRS = {"target", ".git"}


def find_crate_dirs(roots: Iterable[Path], *, max_depth: int = 2) -> Iterator[Path]:
    """Yield directories holding a ``Cargo.toml`` below the given roots.

    Covers ``registry/src/<index>/<crate>`` as well as ``rust/library/<crate>``. The search
    never descends into a crate once one is found.
    """
    for root in roots:
        if not root.is_dir():
            continue
        yield from _walk_crates(root, max_depth)


def _walk_crates(directory: Path, depth: int) -> Iterator[Path]:
    if (directory / MANIFEST_NAME).is_file():
        yield directory
        return
    if depth <= 0:
        return
    for child in sorted(directory.iterdir()):
        if child.is_dir() and child.name not in _SKIPPED_DIRS and not child.name.startswith("."):
            yield from _walk_crates(child, depth - 1)


def iter_rust_files(crate_root: Path) -> Iterator[Path]:
    """Yield every ``.rs`` file of a crate, sorted, skipping build output."""
    for path in sorted(crate_root.rglob("*.rs")):
        relative = path.relative_to(crate_root)
        if any(part in _SKIPPED_DIRS for part in relative.parts[:-1]):
            continue
        if path.is_file():
            yield path


def compute_sha256(path: Path) -> str:
    """Compute SHA256 hash for a file."""
    sha = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 20), b""):
            sha.update(chunk)
    return sha.hexdigest()
