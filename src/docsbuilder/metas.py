"""Metadata store and its on-disk cache.

The store is two-phase. ``MetadataStore`` accepts registrations while a
build discovers, restores, and parses documents; ``freeze()`` then hands
out a ``FrozenMetadataStore`` that every rendering-time reader uses. Once
frozen, the builder rejects writes, so TOC resolution can never observe a
store that changes underneath it.

Usage::

    store = MetadataStore()
    load_cached_metas(output_dir, cached)       # soft: 0 on any failure
    store.register(doc.path, doc)
    frozen = store.freeze()
    frozen.lookup("guide/install")
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from pathlib import Path
from types import MappingProxyType

import orjson

from docsbuilder.doc_types import Document
from docsbuilder.io_utils import load_json, save_json

log = logging.getLogger(__name__)

METAS_VERSION = "1.0"
METAS_FILENAME = "metas.json"


class StoreFrozenError(RuntimeError):
    """Raised when registering into a store that has already been frozen."""


class MetadataStore:
    """Build-phase registry mapping logical path -> Document.

    Writes are serialised by a lock. Documents are immutable, so a reader
    sees either the previous entry or the complete new one.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Document] = {}
        self._lock = threading.Lock()
        self._frozen = False

    def register(self, path: str, document: Document) -> None:
        """Insert or overwrite ``path``. Overwrites keep the original position."""
        if path != document.path:
            raise ValueError(
                f"register path {path!r} does not match document path {document.path!r}"
            )
        with self._lock:
            if self._frozen:
                raise StoreFrozenError(f"cannot register {path!r}: store is frozen")
            self._entries[path] = document

    def lookup(self, path: str) -> Document | None:
        return self._entries.get(path)

    def all(self) -> list[Document]:
        """All documents in insertion order."""
        with self._lock:
            return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> FrozenMetadataStore:
        """End the build phase and return the read-only view."""
        with self._lock:
            self._frozen = True
            return FrozenMetadataStore(dict(self._entries))


class FrozenMetadataStore:
    """Read-only view of a fully populated store."""

    __slots__ = ("_entries",)

    def __init__(self, entries: dict[str, Document]) -> None:
        self._entries = MappingProxyType(entries)

    def lookup(self, path: str) -> Document | None:
        return self._entries.get(path)

    def all(self) -> list[Document]:
        return list(self._entries.values())

    def paths(self) -> list[str]:
        return list(self._entries.keys())

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Document]:
        return iter(self._entries.values())


# ---------------------------------------------------------------------------
# Cache persistence
# ---------------------------------------------------------------------------


def metas_path(cache_dir: Path) -> Path:
    """Return the canonical cache file path inside ``cache_dir``."""
    return cache_dir / METAS_FILENAME


def load_cached_metas(cache_dir: Path, store: MetadataStore) -> int:
    """Restore a previously saved store into ``store``.

    Never raises for a missing, unreadable, or malformed cache: the cache is
    discarded as a whole, nothing is registered, and 0 is returned so the
    build falls back to a full parse.
    """
    path = metas_path(cache_dir)
    if not path.is_file():
        log.debug("No metadata cache at %s", path)
        return 0
    try:
        payload = load_json(path)
        documents = _documents_from_payload(payload)
    except (OSError, orjson.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        log.debug("Discarding unreadable metadata cache %s: %s", path, exc)
        return 0
    for doc in documents:
        store.register(doc.path, doc)
    return len(documents)


def _documents_from_payload(payload: object) -> list[Document]:
    if not isinstance(payload, dict):
        raise ValueError("cache payload is not an object")
    version = payload.get("metas_version")
    if version != METAS_VERSION:
        raise ValueError(f"cache version {version!r} != {METAS_VERSION!r}")
    entries = payload.get("entries")
    if not isinstance(entries, dict):
        raise ValueError("cache entries is not an object")
    documents: list[Document] = []
    for key, raw in entries.items():
        if not isinstance(raw, dict):
            raise ValueError(f"cache entry {key!r} is not an object")
        doc = Document.from_dict(raw)
        if doc.path != key:
            raise ValueError(f"cache entry key {key!r} != path {doc.path!r}")
        documents.append(doc)
    return documents


def save_metas(cache_dir: Path, store: MetadataStore | FrozenMetadataStore) -> Path:
    """Persist every document of ``store`` to ``cache_dir/metas.json``."""
    path = metas_path(cache_dir)
    payload = {
        "metas_version": METAS_VERSION,
        "entries": {doc.path: doc.to_dict() for doc in store.all()},
    }
    save_json(payload, path, pretty=False)
    return path
