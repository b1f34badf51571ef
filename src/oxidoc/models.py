"""Core oxidoc data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Sequence, Tuple

from oxidoc.errors import InvalidPath

PATH_SEPARATOR = "::"

_FORBIDDEN_CHARS = ("/", "\\", "\x00")


class ItemKind(str, Enum):
    """Kinds of documented declarations.

    Only functions are indexed today; the remaining members keep the set closed so new
    kinds can be populated without touching the store layout or the resolver.
    """

    FUNCTION = "function"
    STRUCT = "struct"
    TRAIT = "trait"
    CONST = "const"
    MODULE = "module"
    IMPL = "impl"


def validate_segment(segment: str) -> str:
    """Return ``segment`` unchanged or raise :class:`InvalidPath`."""
    if not isinstance(segment, str) or not segment:
        raise InvalidPath("Path segment must be a non-empty string")
    if PATH_SEPARATOR in segment:
        raise InvalidPath(f"Path segment {segment!r} contains the separator {PATH_SEPARATOR!r}")
    if any(char in segment for char in _FORBIDDEN_CHARS):
        raise InvalidPath(f"Path segment {segment!r} contains a path character")
    if segment.startswith(".") or segment != segment.strip():
        raise InvalidPath(f"Path segment {segment!r} is not an identifier")
    return segment


def split_path(path: str) -> Tuple[str, ...]:
    """Split ``crate::module::name`` into its segments.

    A single leading separator (absolute path syntax) is ignored.
    """
    text = path.strip()
    if text.startswith(PATH_SEPARATOR):
        text = text[len(PATH_SEPARATOR) :]
    if not text:
        raise InvalidPath("Empty path")
    return tuple(validate_segment(segment) for segment in text.split(PATH_SEPARATOR))


def join_path(segments: Iterable[str]) -> str:
    """Inverse of :func:`split_path`."""
    parts = [validate_segment(segment) for segment in segments]
    if not parts:
        raise InvalidPath("Empty path")
    return PATH_SEPARATOR.join(parts)


@dataclass(frozen=True, slots=True)
class CrateMetadata:
    """Name and version of an indexed crate."""

    name: str
    version: str
    lib_name: str = ""

    def __post_init__(self) -> None:
        if not self.name or not self.version:
            raise InvalidPath("Crate name and version must be non-empty")
        if not self.lib_name:
            object.__setattr__(self, "lib_name", self.name.replace("-", "_"))
        validate_segment(self.lib_name)
        validate_segment(self.dir_name)

    @property
    def dir_name(self) -> str:
        return f"{self.name}-{self.version}"

    def __str__(self) -> str:
        return self.dir_name

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "version": self.version, "lib_name": self.lib_name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CrateMetadata":
        return cls(
            name=str(data["name"]),
            version=str(data["version"]),
            lib_name=str(data.get("lib_name", "")),
        )


@dataclass(frozen=True, slots=True)
class SourceLocation:
    """Where an item was declared."""

    file: Path
    crate_name: str
    crate_version: str
    line: int = 0


@dataclass(frozen=True, slots=True)
class Item:
    """A documented declaration addressed by its qualified path."""

    kind: ItemKind
    name: str
    qualified_path: Tuple[str, ...]
    signature: str
    source: SourceLocation
    docs: str = ""

    def __post_init__(self) -> None:
        validate_segment(self.name)
        if not self.qualified_path:
            raise InvalidPath("Qualified path must not be empty")
        for segment in self.qualified_path:
            validate_segment(segment)
        if self.qualified_path[-1] != self.name:
            raise InvalidPath(
                f"Last path segment {self.qualified_path[-1]!r} does not match name {self.name!r}"
            )

    @classmethod
    def create(
        cls,
        kind: ItemKind,
        name: str,
        parent: Sequence[str],
        signature: str,
        source: SourceLocation,
        docs: str = "",
    ) -> "Item":
        validate_segment(name)
        return cls(
            kind=ItemKind(kind),
            name=name,
            qualified_path=(*parent, name),
            signature=signature,
            source=source,
            docs=docs,
        )

    @property
    def crate(self) -> str:
        return self.qualified_path[0]

    @property
    def parent(self) -> Tuple[str, ...]:
        return self.qualified_path[:-1]

    @property
    def module_path(self) -> Tuple[str, ...]:
        """Modules between the crate root and the item."""
        return self.qualified_path[1:-1]

    @property
    def path_string(self) -> str:
        return PATH_SEPARATOR.join(self.qualified_path)

    def __str__(self) -> str:
        return self.path_string

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "path": list(self.qualified_path),
            "signature": self.signature,
            "docs": self.docs,
            "source": {
                "file": self.source.file.as_posix(),
                "crate": self.source.crate_name,
                "version": self.source.crate_version,
                "line": self.source.line,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Item":
        source = data["source"]
        path = data["path"]
        if not isinstance(path, list):
            raise TypeError("path must be a list of segments")
        return cls(
            kind=ItemKind(data["kind"]),
            name=data["name"],
            qualified_path=tuple(path),
            signature=str(data["signature"]),
            source=SourceLocation(
                file=Path(source["file"]),
                crate_name=str(source["crate"]),
                crate_version=str(source["version"]),
                line=int(source.get("line", 0)),
            ),
            docs=str(data.get("docs", "")),
        )


@dataclass(slots=True)
class CrateIndex:
    """Everything the indexer extracted from one crate."""

    metadata: CrateMetadata
    items: list[Item] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)
    files: list[Path] = field(default_factory=list)
