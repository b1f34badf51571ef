"""Tests for the plain-text report."""

from __future__ import annotations

from conftest import make_item
from oxidoc.models import Item
from oxidoc.render import NO_DOCUMENTATION, RULE, render_item, render_items


def _documented() -> Item:
    item = make_item(
        "oxidoc::store::get_fn_file",
        signature="fn get_fn_file(path: &PathBuf, fn_doc: &Function) -> PathBuf",
    )
    return Item.create(
        kind=item.kind,
        name=item.name,
        parent=item.parent,
        signature=item.signature,
        source=item.source,
        docs="Computes the file.\n\nSee also `run`.",
    )


class TestRenderItem:
    """Test rendering a single item."""

    def test_exact_layout(self) -> None:
        expected = "\n".join(
            [
                "= oxidoc::store::get_fn_file",
                "",
                "(from crate oxidoc-0.1.0)",
                "=== oxidoc::store::get_fn_file()",
                "-" * 78,
                "  fn get_fn_file(path: &PathBuf, fn_doc: &Function) -> PathBuf",
                "",
                "-" * 78,
                "",
                "Computes the file.\n\nSee also `run`.",
            ]
        )
        assert render_item(_documented()) == expected

    def test_rule_width(self) -> None:
        assert len(RULE) == 78

    def test_missing_docs(self) -> None:
        rendered = render_item(make_item("oxidoc::run"))
        assert rendered.endswith(f"{RULE}\n\n{NO_DOCUMENTATION}")


class TestRenderItems:
    def test_blank_line_between_items(self) -> None:
        first, second = make_item("oxidoc::run"), make_item("oxidoc::stop")
        rendered = render_items([first, second])
        assert rendered == f"{render_item(first)}\n\n{render_item(second)}"

    def test_no_items(self) -> None:
        assert render_items([]) == ""
