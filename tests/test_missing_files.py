"""Tests for docsbuilder.missing_files: missing and orphan pages."""
from __future__ import annotations

import logging

import pytest

from docsbuilder.doc_types import Document, OutlineEntry, TocDirective, output_url_for
from docsbuilder.metas import FrozenMetadataStore, MetadataStore
from docsbuilder.missing_files import (
    MissingFilesReport,
    check_missing_files,
    report_missing_files,
    root_index_for,
)


def _doc(path: str, *toc_files: str, orphan: bool = False) -> Document:
    return Document(
        path=path,
        source=f"{path}.md",
        url=output_url_for(path),
        title=path,
        titles=(OutlineEntry(path),),
        tocs=(TocDirective(files=toc_files),) if toc_files else (),
        orphan=orphan,
    )


def _store(*docs: Document) -> FrozenMetadataStore:
    store = MetadataStore()
    for doc in docs:
        store.register(doc.path, doc)
    return store.freeze()


class TestCheckMissingFiles:
    def test_all_referenced(self) -> None:
        store = _store(_doc("index", "a", "b"), _doc("a"), _doc("b"))
        report = check_missing_files(store, ["index", "a", "b"])
        assert report.ok
        assert report.to_dict() == {"missing": [], "orphans": []}

    def test_missing_reference(self) -> None:
        store = _store(_doc("index", "a", "ghost"), _doc("a"))
        report = check_missing_files(store, ["index", "a"])
        assert report.missing == ("ghost",)
        assert not report.ok

    def test_orphan_detected(self) -> None:
        store = _store(_doc("index", "a"), _doc("a"), _doc("lonely"))
        report = check_missing_files(store, ["index", "a", "lonely"])
        assert report.orphans == ("lonely",)

    def test_orphan_marker_exempts(self) -> None:
        store = _store(_doc("index"), _doc("changelog", orphan=True))
        report = check_missing_files(store, ["index", "changelog"])
        assert report.orphans == ()

    def test_sub_path_scope(self) -> None:
        store = _store(_doc("manual/index", "manual/a", "api/ref"), _doc("manual/a"))
        report = check_missing_files(store, ["manual/index", "manual/a"], sub_path="manual")
        assert report.missing == ()
        assert report.orphans == ()

    def test_root_index_for(self) -> None:
        assert root_index_for(None) == "index"
        assert root_index_for("manual/") == "manual/index"


class TestReportMissingFiles:
    def test_logs_warnings(self, caplog: pytest.LogCaptureFixture) -> None:
        report = MissingFilesReport(missing=("ghost",), orphans=("lonely",))
        with caplog.at_level(logging.WARNING):
            report_missing_files(report)
        assert "Found missing files: ghost" in caplog.text
        assert "Found files not included in any toctree: lonely" in caplog.text

    def test_silent_when_ok(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            report_missing_files(MissingFilesReport(missing=(), orphans=()))
        assert caplog.text == ""
