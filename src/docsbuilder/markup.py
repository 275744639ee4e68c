"""Markdown source -> heading outline, TOC directives, and render tokens.

The Markdown syntax itself is handled by markdown-it-py. This module only
walks the token stream it produces:

- ``heading_open`` tokens become outline entries (nested by heading level)
  and receive an ``id`` attribute (the slug their TOC anchors point to);
- a heading made of a single link (``## [Title](other.md)``) is an
  explicit ``(title, target)`` entry;
- ``toctree`` fences are parsed into TocDirective objects and attached to
  the token's ``meta`` so the renderer does not parse them twice.

A first line reading ``:orphan:`` marks a page that is intentionally not
listed in any TOC.
"""
from __future__ import annotations

import posixpath
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from markdown_it import MarkdownIt

from docsbuilder.directives import TOCTREE_INFO, parse_toctree
from docsbuilder.doc_types import (
    Document,
    OutlineEntry,
    TocDirective,
    compute_doc_fingerprint,
    output_url_for,
)
from docsbuilder.environment import canonical_path, is_external, slugify
from docsbuilder.io_utils import decode_source

ORPHAN_MARKER = ":orphan:"
TOC_META_KEY = "toc_directive"


def create_markdown() -> MarkdownIt:
    """Markdown parser shared by the outline pass and the renderer."""
    return MarkdownIt("commonmark").enable("table")


_md = create_markdown()


@dataclass(slots=True)
class ParsedPage:
    """A freshly parsed source file: its metadata plus the tokens to render."""
    document: Document
    tokens: list[Any] = field(default_factory=list[Any])


@dataclass(slots=True)
class _HeadingNode:
    level: int
    title: str
    target: str | None
    children: list[_HeadingNode] = field(default_factory=list)

    def freeze(self) -> OutlineEntry:
        return OutlineEntry(
            title=self.title,
            children=tuple(c.freeze() for c in self.children),
            target=self.target,
        )


def logical_path_for(source: str) -> str:
    """Logical path of a source file name ("guide/install.md" -> "guide/install")."""
    root, _ext = posixpath.splitext(source)
    return root


def split_orphan_marker(text: str) -> tuple[bool, str]:
    """Return (is_orphan, text without the marker line)."""
    first, _sep, rest = text.partition("\n")
    if first.strip() == ORPHAN_MARKER:
        return True, rest
    return False, text


def parse_document(
    source: str,
    raw: bytes,
    *,
    known_paths: Iterable[str] = (),
) -> ParsedPage:
    """Parse one source file.

    Args:
        source: File name relative to the source dir ("guide/install.md").
        raw: File bytes.
        known_paths: Discovered logical paths (for ``:glob:`` TOC entries).

    Raises:
        MarkupSyntaxError: from the directive parser.
    """
    path = logical_path_for(source)
    known = tuple(known_paths)
    orphan, text = split_orphan_marker(decode_source(raw))
    tokens = _md.parse(text)

    roots: list[_HeadingNode] = []
    stack: list[_HeadingNode] = []
    tocs: list[TocDirective] = []

    for i, tok in enumerate(tokens):
        if tok.type == "heading_open":
            inline = tokens[i + 1] if i + 1 < len(tokens) else None
            title, target = _heading_title(inline, path)
            anchor = slugify(target if target is not None else title)
            if anchor:
                tok.attrSet("id", anchor)
            node = _HeadingNode(level=int(tok.tag[1:]), title=title, target=target)
            while stack and stack[-1].level >= node.level:
                stack.pop()
            (stack[-1].children if stack else roots).append(node)
            stack.append(node)
        elif tok.type == "fence" and _fence_name(tok.info) == TOCTREE_INFO:
            directive = parse_toctree(
                tok.content,
                path,
                known,
                source=source,
                line=tok.map[0] + 1 if tok.map else None,
            )
            tok.meta[TOC_META_KEY] = directive
            tocs.append(directive)

    titles = tuple(node.freeze() for node in roots)
    document = Document(
        path=path,
        source=source,
        url=output_url_for(path),
        title=titles[0].title if titles else posixpath.basename(path),
        titles=titles,
        tocs=tuple(tocs),
        dependencies=_dependencies(tocs, titles),
        fingerprint=compute_doc_fingerprint(raw),
        orphan=orphan,
    )
    return ParsedPage(document=document, tokens=tokens)


def _fence_name(info: str) -> str:
    parts = info.strip().split()
    return parts[0] if parts else ""


def _heading_title(inline: Any, path: str) -> tuple[str, str | None]:
    """Plain-text title of a heading, plus its override target if any."""
    if inline is None or inline.type != "inline":
        return "", None
    children: list[Any] = list(inline.children or [])
    is_single_link = (
        len(children) >= 2
        and children[0].type == "link_open"
        and children[-1].type == "link_close"
        and sum(1 for c in children if c.type == "link_open") == 1
    )
    if not is_single_link:
        return _plain_text(children), None

    href = str(children[0].attrGet("href") or "")
    title = _plain_text(children[1:-1])
    if not href or is_external(href) or href.startswith("#"):
        return title, href or None
    logical = canonical_path(href, path)
    return title, f"/{logical}" if logical else href


def _plain_text(children: list[Any]) -> str:
    parts: list[str] = []
    for child in children:
        if child.type in ("text", "code_inline"):
            parts.append(child.content)
        elif child.type in ("softbreak", "hardbreak"):
            parts.append(" ")
        elif child.children:
            parts.append(_plain_text(list(child.children)))
    return "".join(parts).strip()


def _dependencies(
    tocs: list[TocDirective],
    titles: tuple[OutlineEntry, ...],
) -> tuple[str, ...]:
    deps: dict[str, None] = {}
    for toc in tocs:
        for f in toc.files:
            deps[f] = None

    def walk(entries: tuple[OutlineEntry, ...]) -> None:
        for entry in entries:
            if entry.target and entry.target.startswith("/"):
                deps[entry.target.lstrip("/")] = None
            walk(entry.children)

    walk(titles)
    return tuple(deps)
