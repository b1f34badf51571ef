"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _cargo_home() -> Path:
    cargo_home = os.environ.get("CARGO_HOME")
    if cargo_home:
        return Path(cargo_home)
    return Path.home() / ".cargo"


def _get_default_doc_root() -> Path:
    """Documentation lives next to the registry sources unless overridden."""
    override = os.environ.get("OXIDOC_DOC_ROOT")
    if override:
        return Path(override)
    return _cargo_home() / "registry" / "doc"


def _get_default_rust_src() -> Path | None:
    rust_src = os.environ.get("RUST_SRC_PATH")
    return Path(rust_src) if rust_src else None


@dataclass(slots=True)
class AppConfig:
    doc_root: Path | None = None
    registry_src: Path | None = None
    rust_src: Path | None = None
    workers: int = 4
    match_mode: str = "exact"

    def __post_init__(self) -> None:
        if self.doc_root is None:
            self.doc_root = _get_default_doc_root()
        if self.registry_src is None:
            self.registry_src = _cargo_home() / "registry" / "src"
        if self.rust_src is None:
            self.rust_src = _get_default_rust_src()

    def resolve_doc_root(self, base_dir: Path | None = None) -> Path:
        if self.doc_root is None:
            self.doc_root = _get_default_doc_root()
        if Path(self.doc_root).is_absolute() or base_dir is None:
            return Path(self.doc_root)
        return base_dir / self.doc_root

    def source_roots(self) -> list[Path]:
        """Directories searched for crates when generating everything."""
        roots = [Path(self.registry_src)] if self.registry_src is not None else []
        if self.rust_src is not None:
            roots.append(Path(self.rust_src))
        return roots
