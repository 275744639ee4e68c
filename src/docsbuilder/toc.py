"""Table-of-contents construction for ``toctree`` directives.

For every file a directive lists, the builder resolves the file through the
page's Environment and walks its heading outline depth-first, stopping at
the directive's ``max_depth``. Children below the cutoff are never built,
so the depth limit is a property of the tree rather than a render filter.

Target rules:
  - the first level-1 heading of a *different* file links to the page
    itself (no anchor);
  - every other heading links to ``<page url>#<slug(title)>``;
  - an explicit ``(title, target)`` heading resolves its target as its own
    document reference, falling back to the raw target when that fails.

Unresolvable files are skipped without a placeholder or an error.

``toc_size`` is shared with the JSON export so the size bucket computed for
the HTML page and for the JSON record can never disagree.
"""
from __future__ import annotations

from html import escape

from docsbuilder.doc_types import (
    TOC_SIZE_LARGE,
    TOC_SIZE_MEDIUM,
    TOC_SIZE_SMALL,
    Err,
    Ok,
    OutlineEntry,
    RenderedToc,
    TocDirective,
    TocItem,
    TocOptions,
)
from docsbuilder.environment import KIND_DOC, Environment


def toc_size(num_visible_items: int) -> str:
    """Size bucket for a TOC: 0-9 small, 10-19 medium, 20+ large."""
    if num_visible_items < 10:
        return TOC_SIZE_SMALL
    if num_visible_items < 20:
        return TOC_SIZE_MEDIUM
    return TOC_SIZE_LARGE


def count_visible_items(items: list[TocItem] | tuple[TocItem, ...], max_depth: int) -> int:
    """Number of items, at any level, whose level is within ``max_depth``."""
    return sum(
        1
        for item in items
        for flat in item.flatten()
        if flat.level <= max_depth
    )


def build_toc_options(items: list[TocItem] | tuple[TocItem, ...], max_depth: int) -> TocOptions:
    num_visible = count_visible_items(items, max_depth)
    return TocOptions(
        max_depth=max_depth,
        num_visible_items=num_visible,
        size=toc_size(num_visible),
    )


class TocBuilder:
    """Build the TOC of one directive, for the page bound to ``env``."""

    def __init__(self, env: Environment, directive: TocDirective) -> None:
        self._env = env
        self._directive = directive

    def build(self) -> RenderedToc | None:
        """Return the rendered TOC, or None for hidden directives."""
        if self._directive.hidden:
            return None

        items: list[TocItem] = []
        for file in self._directive.files:
            match self._env.resolve(KIND_DOC, f"/{file}"):
                case Err():
                    continue
                case Ok(value=reference):
                    url = self._env.relative_url(reference.url)
                    self._build_level(url, reference.titles, 1, items, file)

        return RenderedToc(
            directive=self._directive,
            items=tuple(items),
            options=build_toc_options(items, self._directive.max_depth),
        )

    def _build_level(
        self,
        url: str,
        titles: tuple[OutlineEntry, ...],
        level: int,
        items: list[TocItem],
        file: str,
    ) -> None:
        for index, entry in enumerate(titles):
            # first h1 of another file links to the file itself
            with_anchor = not (
                level == 1 and index == 0 and file != self._env.current_path
            )
            title, target = self._generate_target(url, entry, with_anchor)
            item = TocItem(
                target_id=Environment.slugify(target),
                target_url=target,
                title=title,
                level=level,
            )
            if entry.children and level < self._directive.max_depth:
                self._build_level(url, entry.children, level + 1, item.children, file)
            items.append(item)

    def _generate_target(
        self,
        url: str,
        entry: OutlineEntry,
        with_anchor: bool,
    ) -> tuple[str, str]:
        target = url
        if with_anchor:
            anchor = entry.target if entry.target is not None else entry.title
            target += "#" + Environment.slugify(anchor)

        if entry.target is None:
            return entry.title, target

        match self._env.resolve(KIND_DOC, entry.target):
            case Err():
                return entry.title, entry.target
            case Ok(value=reference):
                return entry.title, self._env.relative_url(reference.url)


# ---------------------------------------------------------------------------
# HTML rendering
# ---------------------------------------------------------------------------


def render_toc_html(rendered: RenderedToc | None) -> str:
    """Render a TOC block. Hidden directives (None) render nothing at all."""
    if rendered is None:
        return ""
    opts = rendered.options
    parts = [
        f'<div class="toctree-wrapper toc-size-{opts.size}" '
        f'data-max-depth="{opts.max_depth}" '
        f'data-num-visible-items="{opts.num_visible_items}">'
    ]
    if rendered.directive.caption:
        parts.append(f'<p class="caption">{escape(rendered.directive.caption)}</p>')
    if rendered.items:
        parts.append(_render_level(rendered.items))
    parts.append("</div>")
    return "\n".join(parts) + "\n"


def _render_level(items: list[TocItem] | tuple[TocItem, ...]) -> str:
    lines = ["<ul>"]
    for item in items:
        children = _render_level(item.children) if item.children else ""
        lines.append(
            f'<li id="{escape(item.target_id)}" class="toctree-l{item.level}">'
            f'<a href="{escape(item.target_url)}">{escape(item.title)}</a>'
            f"{children}</li>"
        )
    lines.append("</ul>")
    return "\n".join(lines)
