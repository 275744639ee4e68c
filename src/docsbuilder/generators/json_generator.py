"""One JSON record per page for a separate front-end.

Runs after the HTML pass, against the frozen store, so pages restored from
the cache are exported exactly like pages rendered in this run: the body
is read back from the HTML file on disk and the TOC statistics are
recomputed with the same TocBuilder the HTML render used.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from bs4 import BeautifulSoup

from docsbuilder.build_context import BuildContext, BuildError
from docsbuilder.doc_types import Document
from docsbuilder.environment import Environment
from docsbuilder.generators.navigation import TocTree, walk_toc_tree
from docsbuilder.io_utils import save_json
from docsbuilder.metas import FrozenMetadataStore
from docsbuilder.missing_files import ROOT_INDEX
from docsbuilder.toc import TocBuilder

log = logging.getLogger(__name__)


def extract_body(html: str) -> str:
    """Inner HTML of ``<body>`` (the whole document when there is no body)."""
    soup = BeautifulSoup(html, "html.parser")
    body = soup.body
    if body is None:
        return str(soup)
    return body.decode_contents().strip()


def toc_options_for(store: FrozenMetadataStore, doc: Document) -> list[dict[str, Any]]:
    """TOC statistics of every visible TOC on ``doc``, in page order."""
    env = Environment(store, doc.path)
    options: list[dict[str, Any]] = []
    for directive in doc.tocs:
        rendered = TocBuilder(env, directive).build()
        if rendered is not None:
            options.append(rendered.options.to_dict())
    return options


class JsonGenerator:
    """Write ``<output>/<path>.fjson`` for every document in the store."""

    def __init__(self, store: FrozenMetadataStore, context: BuildContext) -> None:
        self._store = store
        self._context = context

    def generate(self, *, on_progress: Callable[[str], None] | None = None) -> list[Path]:
        tree = walk_toc_tree(self._store, ROOT_INDEX)
        written: list[Path] = []
        for doc in self._store.all():
            out_path = self._context.json_path_for(doc.path)
            try:
                save_json(self.record_for(doc, tree), out_path)
            except OSError as exc:
                raise BuildError(f"Cannot write {out_path}: {exc}") from exc
            written.append(out_path)
            if on_progress is not None:
                on_progress(doc.path)
        log.info("Exported %d JSON files", len(written))
        return written

    def record_for(self, doc: Document, tree: TocTree) -> dict[str, Any]:
        html_path = self._context.html_path_for(doc.path)
        try:
            body = extract_body(html_path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise BuildError(f"Cannot read rendered page {html_path}: {exc}") from exc

        env = Environment(self._store, doc.path)
        prev_path, next_path = tree.neighbours(doc.path)
        return {
            "title": doc.title,
            "current_page_name": doc.path,
            "parents": [self._link(env, p) for p in tree.ancestors(doc.path)],
            "prev": self._link(env, prev_path) if prev_path else None,
            "next": self._link(env, next_path) if next_path else None,
            "toc_options": toc_options_for(self._store, doc),
            "body": body,
        }

    def _link(self, env: Environment, path: str) -> dict[str, str]:
        target = self._store.lookup(path)
        assert target is not None
        return {"title": target.title, "link": env.relative_url(target.absolute_url)}
