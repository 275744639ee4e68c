"""Reference resolution against the metadata store for one rendering page.

An ``Environment`` is bound to the page being rendered. It resolves logical
identifiers to documents, rewrites rooted URLs relative to that page, and
produces URL/id-safe slugs.

Resolution returns ``Ok[Reference] | Err[ResolutionError]`` instead of
raising: a referenced file may legitimately be absent (sub-path builds,
files not written yet), and every call site has to decide what to do with
the failure.

Usage::

    env = Environment(frozen_store, current_path="guide/index")
    match env.resolve("doc", "install"):
        case Ok(value=ref): env.relative_url(ref.url)   # "install.html"
        case Err(error=e): ...                          # e.reason
"""
from __future__ import annotations

import posixpath
import re
import unicodedata

from docsbuilder.doc_types import (
    Document,
    Err,
    Ok,
    Reference,
    ResolutionError,
    Result,
)
from docsbuilder.metas import FrozenMetadataStore, MetadataStore

KIND_DOC = "doc"

_SOURCE_SUFFIXES: tuple[str, ...] = (".md", ".html")

_NON_ALNUM_RE = re.compile(r"[\W_]+")
_NON_SLUG_RE = re.compile(r"[^A-Za-z0-9-]+")
_HYPHEN_RUN_RE = re.compile(r"-{2,}")


def slugify(text: str) -> str:
    """Deterministic ASCII slug usable as a URL fragment and an HTML id.

    Non-alphanumeric runs become a single hyphen, accents are transliterated
    (``é`` -> ``e``), characters with no ASCII form are dropped, and the
    result is trimmed and lowercased. ``slugify(slugify(x)) == slugify(x)``.
    """
    text = _NON_ALNUM_RE.sub("-", text)
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = _NON_SLUG_RE.sub("", text)
    text = _HYPHEN_RUN_RE.sub("-", text.strip("-"))
    return text.strip("-").lower()


def is_external(target: str) -> bool:
    return "://" in target or target.startswith("mailto:")


def canonical_path(target: str, current_path: str) -> str:
    """Canonical logical path for ``target`` as written on page ``current_path``.

    A leading slash means source-root relative; anything else is relative to
    the current page's directory. Fragments and ``.md``/``.html`` suffixes
    are dropped. Returns ``""`` for targets that do not name a page.
    """
    target = target.split("#", 1)[0].strip()
    if not target:
        return ""
    if target.startswith("/"):
        joined = target.lstrip("/")
    else:
        joined = posixpath.join(posixpath.dirname(current_path), target)
    if not joined:
        return ""
    normalized = posixpath.normpath(joined)
    for suffix in _SOURCE_SUFFIXES:
        if normalized.endswith(suffix):
            normalized = normalized[: -len(suffix)]
            break
    if normalized in ("", "."):
        return ""
    return normalized


class Environment:
    """Resolver bound to the page currently being rendered."""

    slugify = staticmethod(slugify)

    def __init__(
        self,
        store: FrozenMetadataStore | MetadataStore,
        current_path: str,
    ) -> None:
        self._store = store
        self._current_path = current_path

    @property
    def current_path(self) -> str:
        return self._current_path

    @property
    def current_dir(self) -> str:
        return posixpath.dirname(self._current_path)

    @property
    def depth(self) -> int:
        """Directory depth of the current page ("a/b/page" -> 2)."""
        return self._current_path.count("/")

    def canonical_path(self, target: str) -> str:
        return canonical_path(target, self._current_path)

    def resolve(self, kind: str, target: str) -> Result[Reference, ResolutionError]:
        """Resolve ``target`` of reference ``kind`` to a document in the store."""
        if kind != KIND_DOC:
            return Err(ResolutionError(reason="unknown_kind", kind=kind, target=target))
        if is_external(target):
            return Err(ResolutionError(reason="external_target", kind=kind, target=target))
        path = self.canonical_path(target)
        doc = self._store.lookup(path) if path else None
        if doc is None:
            return Err(ResolutionError(reason="target_not_found", kind=kind, target=target))
        return Ok(_reference_for(doc))

    def relative_url(self, url: str) -> str:
        """Rewrite a rooted URL (``/a/b.html#x``) relative to the current page.

        External and already-relative URLs are returned unchanged.
        """
        if not url or is_external(url) or not url.startswith("/"):
            return url
        path, sep, fragment = url[1:].partition("#")
        if path:
            relative = posixpath.relpath(path, self.current_dir or ".")
        else:
            relative = posixpath.basename(self._current_path) + ".html"
        return relative + sep + fragment


def _reference_for(doc: Document) -> Reference:
    return Reference(
        path=doc.path,
        url=doc.absolute_url,
        title=doc.title,
        titles=doc.titles,
    )
