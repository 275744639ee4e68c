"""Tests for docsbuilder.renderer: page rendering with TOC fences."""
from __future__ import annotations

from docsbuilder.markup import ParsedPage, parse_document
from docsbuilder.metas import FrozenMetadataStore, MetadataStore
from docsbuilder.renderer import render_body, render_page, rewrite_source_links


def _pages(files: dict[str, str]) -> tuple[dict[str, ParsedPage], FrozenMetadataStore]:
    known = [name.removesuffix(".md") for name in files]
    pages = {
        name: parse_document(name, text.encode("utf-8"), known_paths=known)
        for name, text in files.items()
    }
    store = MetadataStore()
    for page in pages.values():
        store.register(page.document.path, page.document)
    return pages, store.freeze()


class TestRenderBody:
    def test_toctree_fence_replaced(self) -> None:
        pages, store = _pages({
            "index.md": "# Home\n\n```toctree\nintro\n```\n",
            "intro.md": "# Intro\n\n## Goals\n",
        })
        body = render_body(pages["index.md"], store)
        assert "toctree-wrapper" in body
        assert '<a href="intro.html#goals">Goals</a>' in body
        assert "<pre>" not in body

    def test_hidden_toctree_leaves_no_trace(self) -> None:
        pages, store = _pages({
            "index.md": "# Home\n\n```toctree\n:hidden:\nintro\n```\n",
            "intro.md": "# Intro\n",
        })
        body = render_body(pages["index.md"], store)
        assert "toctree" not in body
        assert "intro" not in body

    def test_other_fences_render_as_code(self) -> None:
        pages, store = _pages({"index.md": "# Home\n\n```python\nx = 1\n```\n"})
        body = render_body(pages["index.md"], store)
        assert '<pre><code class="language-python">x = 1\n</code></pre>' in body

    def test_heading_ids(self) -> None:
        pages, store = _pages({"index.md": "# Getting Started\n\n## Next Steps\n"})
        body = render_body(pages["index.md"], store)
        assert '<h1 id="getting-started">Getting Started</h1>' in body
        assert '<h2 id="next-steps">Next Steps</h2>' in body


class TestRenderPage:
    def test_template_filled(self) -> None:
        pages, store = _pages({"guide/a.md": "# A & B\n"})
        html = render_page(pages["guide/a.md"], store)
        assert html.startswith("<!DOCTYPE html>")
        assert "<title>A &amp; B</title>" in html
        assert 'data-page="guide/a"' in html
        assert "{{" not in html

    def test_rewrite_source_links(self) -> None:
        body = '<a href="../intro.md#goals">x</a><a href="https://e.com/a.md">y</a>'
        assert rewrite_source_links(body) == (
            '<a href="../intro.html#goals">x</a><a href="https://e.com/a.md">y</a>'
        )
