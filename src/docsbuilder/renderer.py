"""Render parsed pages to standalone HTML.

Tokens come from ``docsbuilder.markup``; ``toctree`` fences are replaced by
the TOC builder's output for the page being rendered. Everything else is
markdown-it-py's stock HTML. Relative ``.md`` links are rewritten to the
``.html`` pages they become.
"""
from __future__ import annotations

import re
from html import escape
from typing import Any

from docsbuilder.environment import Environment
from docsbuilder.markup import TOC_META_KEY, ParsedPage, create_markdown
from docsbuilder.metas import FrozenMetadataStore
from docsbuilder.toc import TocBuilder, render_toc_html

PAGE_TEMPLATE = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{{title}}</title>
</head>
<body>
<div class="section" data-page="{{page}}">
{{content}}
</div>
</body>
</html>
"""

ENV_KEY = "environment"

_MD_LINK_RE = re.compile(r'href="([^":#?]+)\.md((?:#[^"]*)?)"')


def _render_toctree_fence(
    self: Any,
    tokens: list[Any],
    idx: int,
    options: Any,
    env: dict[str, Any],
) -> str:
    directive = tokens[idx].meta.get(TOC_META_KEY)
    if directive is None:
        return self.fence(tokens, idx, options, env)
    return render_toc_html(TocBuilder(env[ENV_KEY], directive).build())


_md = create_markdown()
_md.add_render_rule("fence", _render_toctree_fence)


def rewrite_source_links(body: str) -> str:
    """Point ``href="x.md"`` links at the rendered ``x.html`` page."""
    return _MD_LINK_RE.sub(r'href="\1.html\2"', body)


def render_body(page: ParsedPage, store: FrozenMetadataStore) -> str:
    """Render the page content (no template)."""
    env = {ENV_KEY: Environment(store, page.document.path)}
    body = _md.renderer.render(page.tokens, _md.options, env)
    return rewrite_source_links(body)


def render_page(page: ParsedPage, store: FrozenMetadataStore) -> str:
    """Render a full standalone HTML page."""
    doc = page.document
    html = PAGE_TEMPLATE.replace("{{title}}", escape(doc.title))
    html = html.replace("{{page}}", escape(doc.path))
    return html.replace("{{content}}", render_body(page, store))
