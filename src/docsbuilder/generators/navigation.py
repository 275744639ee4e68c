"""Document order and parent links derived from the TOC tree.

The TOC tree is walked depth-first from a root page, following every TOC
directive (hidden ones included) in order. Each page is visited once; the
first page that lists it becomes its parent.
"""
from __future__ import annotations

from dataclasses import dataclass

from docsbuilder.metas import FrozenMetadataStore


@dataclass(frozen=True, slots=True)
class TocTree:
    root: str
    order: tuple[str, ...]          # Depth-first pre-order, root first
    parents: dict[str, str]         # child -> parent

    def ancestors(self, path: str) -> list[str]:
        """Ancestors of ``path`` from the root down (``path`` excluded)."""
        chain: list[str] = []
        current = self.parents.get(path)
        while current is not None:
            chain.append(current)
            current = self.parents.get(current)
        chain.reverse()
        return chain

    def neighbours(self, path: str) -> tuple[str | None, str | None]:
        """(previous, next) pages of ``path`` in reading order."""
        if path not in self.order:
            return None, None
        i = self.order.index(path)
        prev_path = self.order[i - 1] if i > 0 else None
        next_path = self.order[i + 1] if i + 1 < len(self.order) else None
        return prev_path, next_path


def walk_toc_tree(
    store: FrozenMetadataStore,
    root: str,
    *,
    scope: str = "",
) -> TocTree:
    """Walk TOCs from ``root``; with ``scope`` only paths under it are followed."""
    prefix = scope.rstrip("/") + "/" if scope else ""
    order: list[str] = []
    parents: dict[str, str] = {}
    seen: set[str] = set()

    def visit(path: str) -> None:
        seen.add(path)
        order.append(path)
        doc = store.lookup(path)
        if doc is None:
            return
        for child in doc.toc_files():
            if child in seen or child not in store or not child.startswith(prefix):
                continue
            parents[child] = path
            visit(child)

    if root in store:
        visit(root)
    return TocTree(root=root, order=tuple(order), parents=parents)
