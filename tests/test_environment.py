"""Tests for docsbuilder.environment: slugs, paths, and resolution."""
from __future__ import annotations

from docsbuilder.doc_types import Document, Err, Ok, OutlineEntry, output_url_for
from docsbuilder.environment import (
    KIND_DOC,
    Environment,
    canonical_path,
    is_external,
    slugify,
)
from docsbuilder.metas import FrozenMetadataStore, MetadataStore


def _store(*paths: str) -> FrozenMetadataStore:
    store = MetadataStore()
    for path in paths:
        title = path.rsplit("/", 1)[-1].title()
        store.register(
            path,
            Document(
                path=path,
                source=f"{path}.md",
                url=output_url_for(path),
                title=title,
                titles=(OutlineEntry(title),),
            ),
        )
    return store.freeze()


class TestSlugify:
    def test_basic(self) -> None:
        assert slugify("Getting Started") == "getting-started"

    def test_punctuation_runs_collapse(self) -> None:
        assert slugify("What's new?  (v2.0)") == "what-s-new-v2-0"

    def test_accents_transliterated(self) -> None:
        assert slugify("Café Déjà vu") == "cafe-deja-vu"

    def test_non_ascii_dropped(self) -> None:
        assert slugify("设置 Setup") == "setup"

    def test_deterministic_and_idempotent(self) -> None:
        for text in ("Hello, World!", "a_b_c", "--x--", "Ünïcödé", "guide/install.html#req"):
            once = slugify(text)
            assert slugify(text) == once
            assert slugify(once) == once

    def test_empty(self) -> None:
        assert slugify("") == ""
        assert slugify("!!!") == ""


class TestCanonicalPath:
    def test_relative_to_page_directory(self) -> None:
        assert canonical_path("install", "guide/index") == "guide/install"

    def test_root_relative(self) -> None:
        assert canonical_path("/intro", "guide/index") == "intro"

    def test_parent_directory(self) -> None:
        assert canonical_path("../intro.md", "guide/index") == "intro"

    def test_suffix_and_fragment_dropped(self) -> None:
        assert canonical_path("install.html#req", "guide/index") == "guide/install"

    def test_empty_targets(self) -> None:
        assert canonical_path("", "index") == ""
        assert canonical_path("#section", "index") == ""

    def test_is_external(self) -> None:
        assert is_external("https://example.com/x")
        assert is_external("mailto:me@example.com")
        assert not is_external("guide/install")


class TestEnvironmentResolve:
    def test_resolves_existing_document(self) -> None:
        env = Environment(_store("index", "guide/install"), "index")
        result = env.resolve(KIND_DOC, "/guide/install")
        assert isinstance(result, Ok)
        assert result.value.url == "/guide/install.html"
        assert result.value.title == "Install"

    def test_relative_target(self) -> None:
        env = Environment(_store("guide/index", "guide/install"), "guide/index")
        result = env.resolve(KIND_DOC, "install")
        assert isinstance(result, Ok)
        assert result.value.path == "guide/install"

    def test_unknown_target(self) -> None:
        env = Environment(_store("index"), "index")
        result = env.resolve(KIND_DOC, "missing")
        assert isinstance(result, Err)
        assert result.error.reason == "target_not_found"

    def test_unknown_kind(self) -> None:
        env = Environment(_store("index"), "index")
        result = env.resolve("ref", "index")
        assert isinstance(result, Err)
        assert result.error.reason == "unknown_kind"

    def test_external_target(self) -> None:
        env = Environment(_store("index"), "index")
        result = env.resolve(KIND_DOC, "https://example.com")
        assert isinstance(result, Err)
        assert result.error.reason == "external_target"


class TestRelativeUrl:
    def test_same_directory(self) -> None:
        env = Environment(_store(), "index")
        assert env.relative_url("/intro.html") == "intro.html"

    def test_from_subdirectory(self) -> None:
        env = Environment(_store(), "guide/install")
        assert env.relative_url("/intro.html#goals") == "../intro.html#goals"

    def test_into_subdirectory(self) -> None:
        env = Environment(_store(), "index")
        assert env.relative_url("/guide/install.html") == "guide/install.html"

    def test_external_and_relative_unchanged(self) -> None:
        env = Environment(_store(), "guide/install")
        assert env.relative_url("https://example.com/a") == "https://example.com/a"
        assert env.relative_url("intro.html") == "intro.html"

    def test_depth(self) -> None:
        assert Environment(_store(), "a/b/page").depth == 2
        assert Environment(_store(), "index").depth == 0
