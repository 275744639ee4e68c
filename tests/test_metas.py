"""Tests for docsbuilder.metas: metadata store and cache."""
from __future__ import annotations

from pathlib import Path

import orjson
import pytest

from docsbuilder.doc_types import Document, OutlineEntry, TocDirective, output_url_for
from docsbuilder.metas import (
    METAS_VERSION,
    MetadataStore,
    StoreFrozenError,
    load_cached_metas,
    metas_path,
    save_metas,
)


def _doc(path: str, title: str = "Title") -> Document:
    return Document(
        path=path,
        source=f"{path}.md",
        url=output_url_for(path),
        title=title,
        titles=(OutlineEntry(title, (OutlineEntry("Sub"),)),),
        tocs=(TocDirective(files=("other",), max_depth=3, caption="Contents"),),
        dependencies=("other",),
        fingerprint="abc123",
    )


class TestMetadataStore:
    def test_register_and_lookup(self) -> None:
        store = MetadataStore()
        doc = _doc("guide/install")
        store.register("guide/install", doc)
        assert store.lookup("guide/install") is doc
        assert "guide/install" in store
        assert len(store) == 1

    def test_lookup_absent_returns_none(self) -> None:
        assert MetadataStore().lookup("nope") is None

    def test_overwrite_keeps_insertion_position(self) -> None:
        store = MetadataStore()
        store.register("a", _doc("a"))
        store.register("b", _doc("b"))
        store.register("a", _doc("a", title="New"))
        assert [d.path for d in store.all()] == ["a", "b"]
        assert store.lookup("a").title == "New"  # type: ignore[union-attr]

    def test_register_rejects_mismatched_path(self) -> None:
        with pytest.raises(ValueError):
            MetadataStore().register("a", _doc("b"))

    def test_frozen_store_rejects_writes(self) -> None:
        store = MetadataStore()
        store.register("a", _doc("a"))
        frozen = store.freeze()
        assert store.frozen
        with pytest.raises(StoreFrozenError):
            store.register("b", _doc("b"))
        assert frozen.paths() == ["a"]
        assert "b" not in frozen

    def test_frozen_view_is_read_only(self) -> None:
        store = MetadataStore()
        store.register("a", _doc("a"))
        frozen = store.freeze()
        assert [d.path for d in frozen] == ["a"]
        assert not hasattr(frozen, "register")


class TestMetasCache:
    def test_save_then_load(self, tmp_path: Path) -> None:
        store = MetadataStore()
        store.register("index", _doc("index", "Home"))
        store.register("guide/install", _doc("guide/install"))
        save_metas(tmp_path, store.freeze())

        restored = MetadataStore()
        assert load_cached_metas(tmp_path, restored) == 2
        doc = restored.lookup("index")
        assert doc is not None
        assert doc == _doc("index", "Home")
        assert doc.tocs[0].max_depth == 3

    def test_missing_cache_gives_empty_store(self, tmp_path: Path) -> None:
        store = MetadataStore()
        assert load_cached_metas(tmp_path, store) == 0
        assert len(store) == 0

    def test_corrupt_cache_gives_empty_store(self, tmp_path: Path) -> None:
        metas_path(tmp_path).write_text("{not json", encoding="utf-8")
        store = MetadataStore()
        assert load_cached_metas(tmp_path, store) == 0
        assert len(store) == 0

    def test_wrong_version_discarded(self, tmp_path: Path) -> None:
        payload = {
            "metas_version": "0.0",
            "entries": {"index": _doc("index").to_dict()},
        }
        metas_path(tmp_path).write_bytes(orjson.dumps(payload))
        store = MetadataStore()
        assert load_cached_metas(tmp_path, store) == 0

    def test_one_bad_entry_discards_whole_cache(self, tmp_path: Path) -> None:
        payload = {
            "metas_version": METAS_VERSION,
            "entries": {
                "a": _doc("a").to_dict(),
                "b": {"path": "b"},
            },
        }
        metas_path(tmp_path).write_bytes(orjson.dumps(payload))
        store = MetadataStore()
        assert load_cached_metas(tmp_path, store) == 0
        assert store.lookup("a") is None

    def test_key_path_mismatch_discarded(self, tmp_path: Path) -> None:
        payload = {
            "metas_version": METAS_VERSION,
            "entries": {"x": _doc("a").to_dict()},
        }
        metas_path(tmp_path).write_bytes(orjson.dumps(payload))
        assert load_cached_metas(tmp_path, MetadataStore()) == 0

    def test_non_object_payload_discarded(self, tmp_path: Path) -> None:
        metas_path(tmp_path).write_bytes(b"[1, 2, 3]")
        assert load_cached_metas(tmp_path, MetadataStore()) == 0

    @pytest.mark.parametrize(
        "titles",
        [[["Intro", []]], "abc", [{"title": "Intro", "children": [["Sub", []]]}]],
    )
    def test_malformed_outline_discarded(self, tmp_path: Path, titles: object) -> None:
        entry = _doc("a").to_dict()
        entry["titles"] = titles
        payload = {"metas_version": METAS_VERSION, "entries": {"a": entry}}
        metas_path(tmp_path).write_bytes(orjson.dumps(payload))
        store = MetadataStore()
        assert load_cached_metas(tmp_path, store) == 0
        assert len(store) == 0

    def test_non_object_toc_discarded(self, tmp_path: Path) -> None:
        entry = _doc("a").to_dict()
        entry["tocs"] = ["other"]
        payload = {"metas_version": METAS_VERSION, "entries": {"a": entry}}
        metas_path(tmp_path).write_bytes(orjson.dumps(payload))
        assert load_cached_metas(tmp_path, MetadataStore()) == 0
