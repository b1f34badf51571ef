"""Shared fixtures: throwaway crates and documentation stores."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict

import pytest

from oxidoc.index.storage import DocumentStore
from oxidoc.models import Item, ItemKind, SourceLocation

OXIDOC_LIB = """//! Documentation lookup.
pub mod store;

/// Runs a lookup.
pub fn run() {}
"""

OXIDOC_STORE = """use std::path::PathBuf;

pub struct Function;

/// Computes where a function's documentation is stored.
pub fn get_fn_file(path: &PathBuf, fn_doc: &Function) -> PathBuf {
    path.join("fn")
}

impl Function {
    pub fn method(&self) {}
}
"""


def write_crate(
    root: Path,
    name: str,
    version: str,
    files: Dict[str, str],
    *,
    manifest_extra: str = "",
) -> Path:
    crate_dir = root / f"{name}-{version}"
    crate_dir.mkdir(parents=True, exist_ok=True)
    (crate_dir / "Cargo.toml").write_text(
        f'[package]\nname = "{name}"\nversion = "{version}"\nedition = "2021"\n{manifest_extra}',
        encoding="utf-8",
    )
    for relative, content in files.items():
        path = crate_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return crate_dir


@pytest.fixture
def make_crate(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a crate below ``tmp_path/registry``."""

    def _make(name: str, version: str = "0.1.0", files: Dict[str, str] | None = None, **kwargs) -> Path:
        return write_crate(tmp_path / "registry", name, version, files or {}, **kwargs)

    return _make


@pytest.fixture
def oxidoc_crate(make_crate: Callable[..., Path]) -> Path:
    return make_crate(
        "oxidoc",
        "0.1.0",
        {"src/lib.rs": OXIDOC_LIB, "src/store.rs": OXIDOC_STORE},
    )


@pytest.fixture
def store(tmp_path: Path) -> DocumentStore:
    return DocumentStore(tmp_path / "doc")


def make_item(path: str, version: str = "0.1.0", signature: str | None = None, crate: str | None = None) -> Item:
    segments = path.split("::")
    return Item.create(
        kind=ItemKind.FUNCTION,
        name=segments[-1],
        parent=segments[:-1],
        signature=signature or f"fn {segments[-1]}()",
        source=SourceLocation(
            file=Path("src/lib.rs"),
            crate_name=crate or segments[0],
            crate_version=version,
            line=1,
        ),
    )
