"""Concatenate a sub-tree of rendered pages into one HTML file for PDF tools.

Pages are taken from ``<sub>/index`` and every page reachable from it
through TOCs inside ``<sub>``, in reading order. Each page body becomes a
``<div id="<uid>">`` section so cross-page links can become in-document
anchors. Image and other relative URLs are rebased onto the directory of
the combined file, ``<output>/<sub>.html``.
"""
from __future__ import annotations

import logging
import posixpath
from html import escape
from pathlib import Path

from bs4 import BeautifulSoup

from docsbuilder.build_context import HTML_SUFFIX, BuildContext, BuildError
from docsbuilder.environment import is_external
from docsbuilder.generators.navigation import walk_toc_tree
from docsbuilder.metas import FrozenMetadataStore
from docsbuilder.missing_files import root_index_for

log = logging.getLogger(__name__)

PDF_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{{title}}</title>
</head>
<body>
{{content}}
</body>
</html>
"""


def page_uid(path: str) -> str:
    """Anchor id of a page (or page fragment) inside the combined file."""
    return path.replace("/", "-").replace("#", "-")


def _resolve_href(href: str, page_dir: str) -> tuple[str, str]:
    """Split ``href`` into (logical path, fragment), relative to ``page_dir``."""
    target, _, fragment = href.partition("#")
    if not target:
        return "", fragment
    joined = posixpath.normpath(posixpath.join(page_dir, target))
    if joined.endswith(HTML_SUFFIX):
        joined = joined[: -len(HTML_SUFFIX)]
    return joined, fragment


class HtmlForPdfGenerator:
    """Write ``<output>/<sub>.html`` for the configured sub-path."""

    def __init__(self, store: FrozenMetadataStore, context: BuildContext) -> None:
        if not context.sub_path:
            raise BuildError("HTML for PDF needs a sub-path")
        self._store = store
        self._context = context

    @property
    def output_path(self) -> Path:
        return self._context.output_dir / f"{self._context.sub_path}{HTML_SUFFIX}"

    def generate(self) -> Path:
        sub = self._context.sub_path
        index = root_index_for(sub)
        index_doc = self._store.lookup(index)
        if index_doc is None:
            raise BuildError(f"Sub-path {sub!r} has no {index} page")

        tree = walk_toc_tree(self._store, index, scope=sub)
        included = set(tree.order)
        out_dir = posixpath.dirname(sub)

        sections: list[str] = []
        for path in tree.order:
            sections.append(self._section(path, included, out_dir))

        html = PDF_TEMPLATE.replace("{{title}}", escape(index_doc.title))
        html = html.replace("{{content}}", "\n".join(sections))
        out_path = self.output_path
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(html, encoding="utf-8")
        except OSError as exc:
            raise BuildError(f"Cannot write {out_path}: {exc}") from exc
        log.info("Combined %d pages into %s", len(tree.order), out_path)
        return out_path

    def _section(self, path: str, included: set[str], out_dir: str) -> str:
        html_path = self._context.html_path_for(path)
        try:
            raw = html_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise BuildError(f"Cannot read rendered page {html_path}: {exc}") from exc

        soup = BeautifulSoup(raw, "html.parser")
        body = soup.body or soup
        page_dir = posixpath.dirname(path)

        for tag in body.find_all("a", href=True):
            href = str(tag["href"])
            if is_external(href):
                continue
            target, fragment = _resolve_href(href, page_dir)
            if not target:
                # In-page anchor; ids are made unique below
                if fragment:
                    tag["href"] = f"#{page_uid(f'{path}#{fragment}')}"
                continue
            if target in included:
                anchor = f"{target}#{fragment}" if fragment else target
                tag["href"] = f"#{page_uid(anchor)}"
            else:
                tag["href"] = self._rebase(href, page_dir, out_dir)

        for tag in body.find_all("img", src=True):
            src = str(tag["src"])
            if not is_external(src) and not src.startswith(("/", "data:")):
                tag["src"] = self._rebase(src, page_dir, out_dir)

        for tag in body.find_all(id=True):
            tag["id"] = page_uid(f"{path}#{tag['id']}")

        inner = body.decode_contents().strip()
        return f'<div id="{page_uid(path)}" class="pdf-page">\n{inner}\n</div>'

    @staticmethod
    def _rebase(url: str, page_dir: str, out_dir: str) -> str:
        target, sep, fragment = url.partition("#")
        if not target or target.startswith("/"):
            return url
        joined = posixpath.normpath(posixpath.join(page_dir, target))
        rebased = posixpath.relpath(joined, out_dir or ".")
        return f"{rebased}{sep}{fragment}"
