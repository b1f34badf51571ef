"""Text helpers for declaration headers and doc comments."""

from __future__ import annotations

import re
from typing import Iterable, List

_OPEN_SPACE = re.compile(r"([(\[<])\s+")
_CLOSE_SPACE = re.compile(r"\s+([)\]>])")
_TRAILING_COMMA = re.compile(r",\s+([)\]>])")
_ESCAPE = re.compile(r"\\(.)")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Collapse whitespace and join lines."""
    return " ".join(line.strip() for line in lines if line.strip())


def collapse_signature(text: str) -> str:
    """Render a possibly multi-line declaration header on one line.

    ``fn f(\\n    a: u8,\\n) -> X`` becomes ``fn f(a: u8) -> X``. A trailing comma is only
    dropped when it was followed by a line break, so ``(u8,)`` survives.
    """
    flat = normalize_whitespace(text.splitlines())
    flat = _TRAILING_COMMA.sub(r"\1", flat)
    flat = _OPEN_SPACE.sub(r"\1", flat)
    flat = _CLOSE_SPACE.sub(r"\1", flat)
    return flat.strip()


def strip_doc_comment(line: str) -> str:
    """Turn one ``/// text`` line into ``text``."""
    body = line.rstrip("\r\n")
    if body.startswith("///"):
        body = body[3:]
    if body.startswith(" "):
        body = body[1:]
    return body.rstrip()


def strip_block_doc_comment(comment: str) -> List[str]:
    """Turn a ``/** ... */`` comment into its lines of text.

    A leading ``*`` decoration and the space after it are removed from every line; blank
    lines at either end are dropped.
    """
    body = comment[3:]
    if body.endswith("*/"):
        body = body[:-2]
    lines = []
    for line in body.splitlines():
        text = line.lstrip()
        if text.startswith("*"):
            text = text[1:]
        if text.startswith(" "):
            text = text[1:]
        lines.append(text.rstrip())
    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    return lines


def unescape_string(text: str) -> str:
    """Resolve the simple escapes of a Rust string literal (``\\n``, ``\\"``, ...)."""
    return _ESCAPE.sub(lambda match: _ESCAPES.get(match.group(1), match.group(1)), text)
