"""Rust source parsing.

Uses tree-sitter with the ``tree-sitter-rust`` grammar to turn one source file into a flat
list of declaration records plus the ``mod x;`` declarations that point at other files.
Nothing here knows about crates, qualified paths or the store.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import List, Tuple

import tree_sitter_rust
from tree_sitter import Language, Node, Parser

from oxidoc.errors import ParseError
from oxidoc.utils.text import (
    collapse_signature,
    strip_block_doc_comment,
    strip_doc_comment,
    unescape_string,
)

LOGGER = logging.getLogger(__name__)

_UTF8_BOM = b"\xef\xbb\xbf"

# tree-sitter node type -> declaration kind
_DECLARATION_KINDS = {
    "function_item": "function",
    "struct_item": "struct",
    "enum_item": "enum",
    "union_item": "union",
    "trait_item": "trait",
    "const_item": "const",
    "static_item": "static",
    "type_item": "type",
    "mod_item": "module",
    "impl_item": "impl",
    "macro_definition": "macro",
}

_CFG_TEST = re.compile(r"^#\[\s*cfg\s*\(\s*test\s*\)\s*\]$")
_PATH_ATTR = re.compile(r'^#\[\s*path\s*=\s*"([^"]+)"\s*\]$')
_DOC_ATTR = re.compile(r'^#\[\s*doc\s*=\s*"((?:[^"\\]|\\.)*)"\s*\]$')
_RAW_PREFIX = "r#"


@dataclass(slots=True)
class Declaration:
    """One item declared directly inside a module.

    ``modules`` lists the inline ``mod name { ... }`` blocks enclosing the declaration
    within its file; its length is the module nesting depth.
    """

    name: str
    kind: str
    signature: str
    modules: Tuple[str, ...] = ()
    line: int = 0
    docs: str = ""

    @property
    def depth(self) -> int:
        return len(self.modules)


@dataclass(slots=True)
class SubmoduleRef:
    """A ``mod name;`` declaration whose body lives in another file."""

    modules: Tuple[str, ...]
    path_attr: str | None = None
    line: int = 0

    @property
    def name(self) -> str:
        return self.modules[-1]


@dataclass(slots=True)
class ParsedFile:
    declarations: List[Declaration] = field(default_factory=list)
    submodules: List[SubmoduleRef] = field(default_factory=list)


@lru_cache(maxsize=1)
def _rust_language() -> Language:
    return Language(tree_sitter_rust.language())


def _first_error_line(node: Node) -> int:
    if node.type == "ERROR" or node.is_missing:
        return node.start_point[0] + 1
    for child in node.children:
        if child.has_error:
            return _first_error_line(child)
    return node.start_point[0] + 1


def _text(node: Node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8")


def _is_outer_doc(comment: str) -> bool:
    return comment.startswith("///") and not comment.startswith("////")


def _is_outer_block_doc(comment: str) -> bool:
    return comment.startswith("/**") and not comment.startswith("/***") and comment != "/**/"


def _doc_attribute(attribute: str) -> str | None:
    """Text of a ``#[doc = "..."]`` attribute, which rustdoc reads like a ``///`` line."""
    match = _DOC_ATTR.match(attribute)
    if match is None:
        return None
    return unescape_string(match.group(1))


def _header(node: Node, source: bytes) -> str:
    """Declaration text without visibility, attributes or body."""
    start = node.start_byte
    for child in node.children:
        if child.type != "visibility_modifier":
            start = child.start_byte
            break
    end = node.end_byte
    for field_name in ("body", "value"):
        target = node.child_by_field_name(field_name)
        if target is not None:
            end = min(end, target.start_byte)
    text = source[start:end].decode("utf-8").rstrip().rstrip(";=").rstrip()
    return collapse_signature(text)


def _declaration_name(node: Node, source: bytes) -> str | None:
    target = node.child_by_field_name("type" if node.type == "impl_item" else "name")
    if target is None:
        return None
    name = _text(target, source)
    # raw identifiers: `fn r#try` is called `try`
    if name.startswith(_RAW_PREFIX):
        name = name[len(_RAW_PREFIX) :]
    return name


def _path_attribute(attributes: List[str]) -> str | None:
    for attribute in attributes:
        match = _PATH_ATTR.match(attribute)
        if match:
            return match.group(1)
    return None


def _walk(container: Node, source: bytes, modules: Tuple[str, ...], parsed: ParsedFile) -> None:
    docs: List[str] = []
    attributes: List[str] = []
    for node in container.named_children:
        if node.type == "line_comment":
            comment = _text(node, source)
            if _is_outer_doc(comment):
                docs.append(strip_doc_comment(comment))
            continue
        if node.type == "block_comment":
            comment = _text(node, source)
            if _is_outer_block_doc(comment):
                docs.extend(strip_block_doc_comment(comment))
            continue
        if node.type == "inner_attribute_item":
            continue
        if node.type == "attribute_item":
            raw = _text(node, source).strip()
            doc = _doc_attribute(raw)
            if doc is not None:
                docs.extend(strip_doc_comment(f"///{line}") for line in doc.split("\n"))
            else:
                attributes.append(" ".join(raw.split()))
            continue

        pending_docs, pending_attributes = docs, attributes
        docs, attributes = [], []

        kind = _DECLARATION_KINDS.get(node.type)
        if kind is None:
            continue
        name = _declaration_name(node, source)
        if name is None:
            continue

        line = node.start_point[0] + 1
        if kind == "module" and any(_CFG_TEST.match(attr) for attr in pending_attributes):
            LOGGER.debug("Skipping test module %s at line %s", name, line)
            continue

        parsed.declarations.append(
            Declaration(
                name=name,
                kind=kind,
                signature=_header(node, source),
                modules=modules,
                line=line,
                docs="\n".join(pending_docs).strip("\n"),
            )
        )

        if kind == "module":
            body = node.child_by_field_name("body")
            if body is not None:
                _walk(body, source, modules + (name,), parsed)
            else:
                parsed.submodules.append(
                    SubmoduleRef(
                        modules=modules + (name,),
                        path_attr=_path_attribute(pending_attributes),
                        line=line,
                    )
                )


def parse_source(source: bytes, path: Path | None = None) -> ParsedFile:
    """Parse Rust source into declarations and out-of-line submodule references.

    Raises :class:`ParseError` for non UTF-8 input or any syntax error, including ones the
    parser recovered from.
    """
    if source.startswith(_UTF8_BOM):
        source = source[len(_UTF8_BOM) :]
    try:
        source.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(path, "source is not valid UTF-8") from exc

    tree = Parser(_rust_language()).parse(source)
    root = tree.root_node
    if root.has_error:
        raise ParseError(path, f"syntax error near line {_first_error_line(root)}")

    parsed = ParsedFile()
    _walk(root, source, (), parsed)
    return parsed


def parse_file(path: Path) -> ParsedFile:
    """Read and parse one source file."""
    try:
        source = path.read_bytes()
    except OSError as exc:
        raise ParseError(path, f"cannot read file: {exc}") from exc
    LOGGER.debug("Parsing %s", path)
    return parse_source(source, path)
