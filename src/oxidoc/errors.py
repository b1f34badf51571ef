"""Error taxonomy shared by indexing, storage and lookup."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence


class OxidocError(Exception):
    """Base class for every error raised by oxidoc."""


class ManifestError(OxidocError):
    """Raised when a crate manifest is missing or malformed."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class ParseError(OxidocError):
    """Raised when a single source file cannot be parsed."""

    def __init__(self, path: Path | None, reason: str) -> None:
        super().__init__(f"{path}: {reason}" if path is not None else reason)
        self.path = path
        self.reason = reason


class InvalidPath(OxidocError, ValueError):
    """Raised when an identifier or qualified path is malformed."""


class DuplicatePathError(OxidocError):
    """Two declarations of one crate resolved to the same qualified path."""

    def __init__(self, qualified_path: str, path: Path) -> None:
        super().__init__(f"{path}: duplicate item {qualified_path}")
        self.qualified_path = qualified_path
        self.path = path


class StoreWriteError(OxidocError):
    """Raised when a crate generation could not be written to the store."""


class NotFound(OxidocError, LookupError):
    """Raised when no stored entry exists for a path."""


class CorruptEntry(OxidocError):
    """Raised when a stored entry cannot be decoded."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Corrupt store entry {path}: {reason}")
        self.path = path
        self.reason = reason


class StoreCorrupt(OxidocError):
    """Raised by lookups that hit unreadable entries.

    ``results`` holds whatever was resolved before and after the damaged entries so
    callers can still show it.
    """

    def __init__(self, errors: Sequence[CorruptEntry], results: Sequence[Any] = ()) -> None:
        detail = "; ".join(str(error) for error in errors)
        super().__init__(f"Documentation store is damaged: {detail}")
        self.errors = list(errors)
        self.results = list(results)
