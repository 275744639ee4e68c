"""Core types shared by the metadata, resolution, and TOC layers.

Every layer in the build shares these types. Documents and outline entries
are immutable once constructed so a populated store can be read from any
phase without copying.

Type hierarchy:
  Ok[T] / Err[E]    Strict algebraic Result type
  OutlineEntry      One heading of a document outline (title + children)
  TocDirective      Parsed ``toctree`` block: referenced files + options
  Document          Resolved metadata for one source file
  Reference         Successful document resolution
  ResolutionError   Typed failure for document resolution
  TocItem           One rendered TOC entry (not persisted)
  TocOptions        Summary statistics of a rendered TOC
  RenderedToc       TOC items + options
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, Generic, TypeAlias, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")

# ---------------------------------------------------------------------------
# Result ADT: strict Ok/Err, not (value, error) tuples
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Success case of Result[T, E].

    Usage::

        result: Result[Reference, ResolutionError] = env.resolve("doc", "/index")
        match result:
            case Ok(value=ref): print(ref.url)
            case Err(error=e): print(e.reason)
    """
    value: T


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failure case of Result[T, E].

    Preserves the typed failure reason. Callers decide whether the failure
    is soft (skip the item) or worth reporting.
    """
    error: E


Result: TypeAlias = Union[Ok[T], Err[E]]


# ---------------------------------------------------------------------------
# Outline types
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class OutlineEntry:
    """A heading in a document outline.

    ``target`` is set when the heading is an explicit ``(title, target)``
    pair (a heading made of a single link). Internal targets are stored
    source-root relative with a leading slash (``/guide/install``).
    """
    title: str
    children: tuple[OutlineEntry, ...] = ()
    target: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "title": self.title,
            "children": [c.to_dict() for c in self.children],
        }
        if self.target is not None:
            data["target"] = self.target
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OutlineEntry:
        _require_mapping(data, "outline entry")
        target = data.get("target")
        return cls(
            title=str(data["title"]),
            children=tuple(cls.from_dict(c) for c in data.get("children", [])),
            target=str(target) if target is not None else None,
        )



def _require_mapping(data: object, what: str) -> None:
    """Reject cached records of the wrong shape before reading fields."""
    if not isinstance(data, dict):
        raise TypeError(f"{what} must be an object, got {type(data).__name__}")


DEFAULT_TOC_DEPTH = 2


@dataclass(frozen=True, slots=True)
class TocDirective:
    """A ``toctree`` block found in a document.

    Invariants (enforced in __post_init__):
        - max_depth >= 1
    """
    files: tuple[str, ...]          # Logical paths, source-root relative
    max_depth: int = DEFAULT_TOC_DEPTH
    hidden: bool = False
    caption: str = ""
    glob: bool = False

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": list(self.files),
            "max_depth": self.max_depth,
            "hidden": self.hidden,
            "caption": self.caption,
            "glob": self.glob,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TocDirective:
        _require_mapping(data, "toc directive")
        return cls(
            files=tuple(str(f) for f in data["files"]),
            max_depth=int(data.get("max_depth", DEFAULT_TOC_DEPTH)),
            hidden=bool(data.get("hidden", False)),
            caption=str(data.get("caption", "")),
            glob=bool(data.get("glob", False)),
        )


@dataclass(frozen=True, slots=True)
class Document:
    """Resolved metadata for one source file, keyed by logical path."""
    path: str                          # "guide/install", stable across output formats
    source: str                        # "guide/install.md", relative to the source dir
    url: str                           # "guide/install.html", relative to the output dir
    title: str
    titles: tuple[OutlineEntry, ...]
    tocs: tuple[TocDirective, ...] = ()
    dependencies: tuple[str, ...] = ()  # Logical paths the rendered page depends on
    fingerprint: str = ""              # SHA256 of the source bytes
    orphan: bool = False

    @property
    def absolute_url(self) -> str:
        return "/" + self.url

    def toc_files(self) -> list[str]:
        """All logical paths referenced by this document's TOC directives."""
        return [f for toc in self.tocs for f in toc.files]

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "source": self.source,
            "url": self.url,
            "title": self.title,
            "titles": [t.to_dict() for t in self.titles],
            "tocs": [t.to_dict() for t in self.tocs],
            "dependencies": list(self.dependencies),
            "fingerprint": self.fingerprint,
            "orphan": self.orphan,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Document:
        _require_mapping(data, "document")
        return cls(
            path=str(data["path"]),
            source=str(data["source"]),
            url=str(data["url"]),
            title=str(data["title"]),
            titles=tuple(OutlineEntry.from_dict(t) for t in data["titles"]),
            tocs=tuple(TocDirective.from_dict(t) for t in data.get("tocs", [])),
            dependencies=tuple(str(d) for d in data.get("dependencies", [])),
            fingerprint=str(data.get("fingerprint", "")),
            orphan=bool(data.get("orphan", False)),
        )


def output_url_for(path: str) -> str:
    """Output URL (relative to the output dir) for a logical path."""
    return f"{path}.html"


def compute_doc_fingerprint(raw: bytes) -> str:
    """SHA256 fingerprint of a source file's bytes."""
    return hashlib.sha256(raw).hexdigest()


# ---------------------------------------------------------------------------
# Resolution types
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Reference:
    """Successful resolution of a logical identifier to a document."""
    path: str
    url: str                           # Rooted: "/guide/install.html"
    title: str
    titles: tuple[OutlineEntry, ...]


@dataclass(frozen=True, slots=True)
class ResolutionError:
    """Typed failure for document resolution. None erases the reason; this preserves it."""
    reason: str  # "target_not_found" | "unknown_kind" | "external_target"
    kind: str
    target: str


# ---------------------------------------------------------------------------
# TOC output types
# ---------------------------------------------------------------------------

TOC_SIZE_SMALL = "small"
TOC_SIZE_MEDIUM = "medium"
TOC_SIZE_LARGE = "large"


@dataclass(slots=True)
class TocItem:
    """One entry of a rendered table of contents. Built fresh on every render."""
    target_id: str
    target_url: str
    title: str
    level: int                         # 1-based nesting level
    children: list[TocItem] = field(default_factory=list)

    def flatten(self) -> list[TocItem]:
        out: list[TocItem] = [self]
        for child in self.children:
            out.extend(child.flatten())
        return out

    def to_dict(self) -> dict[str, Any]:
        return {
            "targetId": self.target_id,
            "targetUrl": self.target_url,
            "title": self.title,
            "level": self.level,
            "children": [c.to_dict() for c in self.children],
        }


@dataclass(frozen=True, slots=True)
class TocOptions:
    """Layout statistics of a TOC; the JSON export and the HTML render must agree."""
    max_depth: int
    num_visible_items: int
    size: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "maxDepth": self.max_depth,
            "numVisibleItems": self.num_visible_items,
            "size": self.size,
        }


@dataclass(frozen=True, slots=True)
class RenderedToc:
    """Output of the TOC builder for a non-hidden directive."""
    directive: TocDirective
    items: tuple[TocItem, ...]
    options: TocOptions
