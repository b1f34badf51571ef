"""Plain-text report for resolved items."""

from __future__ import annotations

from typing import Iterable

from oxidoc.models import Item

RULE = "-" * 78
NO_DOCUMENTATION = "No documentation available."


def render_item(item: Item) -> str:
    path = item.path_string
    lines = [
        f"= {path}",
        "",
        f"(from crate {item.source.crate_name}-{item.source.crate_version})",
        f"=== {path}()",
        RULE,
        f"  {item.signature}",
        "",
        RULE,
        "",
        item.docs or NO_DOCUMENTATION,
    ]
    return "\n".join(lines)


def render_items(items: Iterable[Item]) -> str:
    return "\n\n".join(render_item(item) for item in items)
