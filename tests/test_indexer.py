"""Tests for crate indexing and the generation pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from oxidoc.errors import DuplicatePathError, ManifestError, ParseError
from oxidoc.index.indexer import CrateIndexer, GenerationReport, CrateReport, Indexer
from oxidoc.index.storage import DocumentStore


def _paths(crate_index) -> list[str]:
    return [item.path_string for item in crate_index.items]


class TestCrateIndexer:
    """Test turning crate sources into items."""

    def test_oxidoc_crate(self, oxidoc_crate: Path) -> None:
        """Should find functions in the root module and in submodule files."""
        crate_index = CrateIndexer().index(oxidoc_crate)

        assert str(crate_index.metadata) == "oxidoc-0.1.0"
        assert sorted(_paths(crate_index)) == ["oxidoc::run", "oxidoc::store::get_fn_file"]
        assert crate_index.files == [Path("src/lib.rs"), Path("src/store.rs")]
        assert crate_index.errors == []

        item = next(i for i in crate_index.items if i.name == "get_fn_file")
        assert item.signature == "fn get_fn_file(path: &PathBuf, fn_doc: &Function) -> PathBuf"
        assert item.docs == "Computes where a function's documentation is stored."
        assert item.source.file == Path("src/store.rs")
        assert item.source.crate_name == "oxidoc"
        assert item.source.crate_version == "0.1.0"
        assert item.source.line == 6

    def test_methods_are_not_indexed(self, oxidoc_crate: Path) -> None:
        crate_index = CrateIndexer().index(oxidoc_crate)
        assert "method" not in {item.name for item in crate_index.items}

    def test_bad_file_is_reported(self, make_crate: Callable[..., Path]) -> None:
        """A broken file should not stop the rest of the crate."""
        crate_dir = make_crate(
            "partial",
            files={
                "src/lib.rs": "pub mod good;\npub mod bad;\n",
                "src/good.rs": "pub fn fine() {}\n",
                "src/bad.rs": "pub fn broken(x: u8 -> {\n",
            },
        )
        crate_index = CrateIndexer().index(crate_dir)

        assert _paths(crate_index) == ["partial::good::fine"]
        assert len(crate_index.errors) == 1
        error = crate_index.errors[0]
        assert isinstance(error, ParseError)
        assert error.path == Path("src/bad.rs")

    def test_missing_module_file(self, make_crate: Callable[..., Path]) -> None:
        crate_dir = make_crate("ghostly", files={"src/lib.rs": "pub mod ghost;\npub fn here() {}\n"})
        crate_index = CrateIndexer().index(crate_dir)

        assert _paths(crate_index) == ["ghostly::here"]
        assert len(crate_index.errors) == 1
        assert crate_index.errors[0].path == Path("src/lib.rs")
        assert "ghost" in crate_index.errors[0].reason

    def test_mod_rs_and_nested_files(self, make_crate: Callable[..., Path]) -> None:
        crate_dir = make_crate(
            "layered",
            files={
                "src/lib.rs": "pub mod net;\npub mod fs;\n",
                "src/net/mod.rs": "pub mod tcp;\npub fn connect() {}\n",
                "src/net/tcp.rs": "pub fn listen() {}\n",
                "src/fs.rs": "pub mod path;\n",
                "src/fs/path.rs": "pub fn join() {}\n",
            },
        )
        crate_index = CrateIndexer().index(crate_dir)

        assert sorted(_paths(crate_index)) == [
            "layered::fs::path::join",
            "layered::net::connect",
            "layered::net::tcp::listen",
        ]
        assert crate_index.errors == []

    def test_path_attribute(self, make_crate: Callable[..., Path]) -> None:
        crate_dir = make_crate(
            "portable",
            files={
                "src/lib.rs": '#[path = "platform/unix.rs"]\npub mod sys;\n',
                "src/platform/unix.rs": "pub fn page_size() -> usize { 4096 }\n",
            },
        )
        crate_index = CrateIndexer().index(crate_dir)

        assert _paths(crate_index) == ["portable::sys::page_size"]
        assert crate_index.items[0].source.file == Path("src/platform/unix.rs")

    def test_inline_module_with_file_child(self, make_crate: Callable[..., Path]) -> None:
        crate_dir = make_crate(
            "mixed",
            files={
                "src/lib.rs": "pub mod outer {\n    pub mod inner;\n    pub fn direct() {}\n}\n",
                "src/outer/inner.rs": "pub fn nested() {}\n",
            },
        )
        crate_index = CrateIndexer().index(crate_dir)

        assert sorted(_paths(crate_index)) == ["mixed::outer::direct", "mixed::outer::inner::nested"]

    def test_hyphenated_crate(self, make_crate: Callable[..., Path]) -> None:
        crate_dir = make_crate("my-crate", files={"src/lib.rs": "pub fn run() {}\n"})
        crate_index = CrateIndexer().index(crate_dir)

        assert _paths(crate_index) == ["my_crate::run"]
        assert crate_index.items[0].source.crate_name == "my-crate"

    def test_lib_table(self, make_crate: Callable[..., Path]) -> None:
        crate_dir = make_crate(
            "renamed",
            files={"lib/root.rs": "pub fn run() {}\n"},
            manifest_extra='\n[lib]\nname = "other"\npath = "lib/root.rs"\n',
        )
        crate_index = CrateIndexer().index(crate_dir)
        assert _paths(crate_index) == ["other::run"]

    def test_main_rs_fallback(self, make_crate: Callable[..., Path]) -> None:
        crate_dir = make_crate("tool", files={"src/main.rs": "fn main() {}\nfn helper() {}\n"})
        crate_index = CrateIndexer().index(crate_dir)
        assert _paths(crate_index) == ["tool::main", "tool::helper"]

    def test_duplicate_paths(self, make_crate: Callable[..., Path]) -> None:
        """Conditional duplicates keep the first declaration and report the rest."""
        crate_dir = make_crate(
            "dual",
            files={"src/lib.rs": "#[cfg(unix)]\npub fn os() {}\n#[cfg(windows)]\npub fn os() {}\n"},
        )
        crate_index = CrateIndexer().index(crate_dir)

        assert _paths(crate_index) == ["dual::os"]
        assert crate_index.items[0].source.line == 2
        assert len(crate_index.errors) == 1
        assert isinstance(crate_index.errors[0], DuplicatePathError)
        assert crate_index.errors[0].qualified_path == "dual::os"

    def test_missing_manifest(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestError):
            CrateIndexer().index(tmp_path)

    def test_missing_entry_point(self, make_crate: Callable[..., Path]) -> None:
        crate_dir = make_crate("hollow")
        with pytest.raises(ManifestError, match="entry point"):
            CrateIndexer().index(crate_dir)

    def test_worker_count_does_not_change_results(self, make_crate: Callable[..., Path]) -> None:
        files = {"src/lib.rs": "".join(f"pub mod m{i};\n" for i in range(8))}
        for i in range(8):
            files[f"src/m{i}.rs"] = f"pub fn f{i}() {{}}\npub fn g{i}() {{}}\n"
        crate_dir = make_crate("wide", files=files)

        serial = CrateIndexer(workers=1).index(crate_dir)
        parallel = CrateIndexer(workers=4).index(crate_dir)

        assert serial.items == parallel.items
        assert serial.files == parallel.files


class TestFingerprint:
    """Test crate change detection."""

    def test_stable(self, oxidoc_crate: Path) -> None:
        assert CrateIndexer.fingerprint(oxidoc_crate) == CrateIndexer.fingerprint(oxidoc_crate)

    def test_changes_with_source(self, oxidoc_crate: Path) -> None:
        before = CrateIndexer.fingerprint(oxidoc_crate)
        (oxidoc_crate / "src" / "store.rs").write_text("pub fn other() {}\n", encoding="utf-8")
        assert CrateIndexer.fingerprint(oxidoc_crate) != before

    def test_ignores_target_dir(self, oxidoc_crate: Path) -> None:
        before = CrateIndexer.fingerprint(oxidoc_crate)
        (oxidoc_crate / "target").mkdir()
        (oxidoc_crate / "target" / "build.rs").write_text("fn x() {}\n", encoding="utf-8")
        assert CrateIndexer.fingerprint(oxidoc_crate) == before


class TestGenerationReport:
    """Test report counters."""

    def test_increment(self) -> None:
        report = GenerationReport()
        report.increment(CrateReport(path=Path("a"), status="inserted"))
        report.increment(CrateReport(path=Path("b"), status="skipped"))
        report.increment(CrateReport(path=Path("c"), status="failed", errors=[ValueError("x")]))

        assert (report.inserted, report.updated, report.skipped, report.failed) == (1, 0, 1, 1)
        assert len(report.crates) == 3
        assert len(report.errors) == 1


class TestIndexer:
    """Test the generation pipeline end to end."""

    def test_insert_then_skip(self, oxidoc_crate: Path, store: DocumentStore) -> None:
        indexer = Indexer(store)

        first = indexer.index([oxidoc_crate])
        assert first.inserted == 1
        assert first.crates[0].items == 2
        assert store.read(("oxidoc", "store", "get_fn_file")).name == "get_fn_file"

        second = indexer.index([oxidoc_crate])
        assert second.skipped == 1
        assert second.inserted == 0

    def test_force_updates(self, oxidoc_crate: Path, store: DocumentStore) -> None:
        Indexer(store).index([oxidoc_crate])
        report = Indexer(store, force=True).index([oxidoc_crate])
        assert report.updated == 1

    def test_changed_crate_replaces_items(self, oxidoc_crate: Path, store: DocumentStore) -> None:
        Indexer(store).index([oxidoc_crate])
        (oxidoc_crate / "src" / "store.rs").write_text("pub fn renamed() {}\n", encoding="utf-8")

        report = Indexer(store).index([oxidoc_crate])

        assert report.updated == 1
        paths = [item.path_string for item in store.list(("oxidoc",))]
        assert paths == ["oxidoc::run", "oxidoc::store::renamed"]

    def test_regeneration_is_byte_identical(self, oxidoc_crate: Path, store: DocumentStore) -> None:
        def snapshot() -> dict:
            root = store.doc_root
            return {
                path.relative_to(root): path.read_bytes()
                for path in sorted(root.rglob("*"))
                if path.is_file()
            }

        Indexer(store).index([oxidoc_crate])
        first = snapshot()
        Indexer(store, force=True).index([oxidoc_crate])
        assert snapshot() == first

    def test_failed_crate_does_not_stop_others(
        self, tmp_path: Path, oxidoc_crate: Path, store: DocumentStore
    ) -> None:
        broken = tmp_path / "broken"
        broken.mkdir()

        report = Indexer(store).index([broken, oxidoc_crate])

        assert report.failed == 1
        assert report.inserted == 1
        assert report.crates[0].status == "failed"
        assert isinstance(report.crates[0].errors[0], ManifestError)

    def test_unparseable_crate_fails(self, make_crate: Callable[..., Path], store: DocumentStore) -> None:
        crate_dir = make_crate("garbled", files={"src/lib.rs": "pub fn (\n"})

        report = Indexer(store).index([crate_dir])

        assert report.failed == 1
        assert isinstance(report.errors[0], ParseError)
        assert store.crates() == []

    def test_partial_crate_is_stored_with_errors(
        self, make_crate: Callable[..., Path], store: DocumentStore
    ) -> None:
        crate_dir = make_crate("half", files={"src/lib.rs": "pub mod missing;\npub fn ok() {}\n"})

        report = Indexer(store).index([crate_dir])

        assert report.inserted == 1
        assert len(report.errors) == 1
        assert store.read(("half", "ok")).name == "ok"

    def test_no_crates(self, store: DocumentStore) -> None:
        report = Indexer(store).index([])
        assert report.crates == []
