"""Build pipeline: discover -> restore cache -> parse -> render -> export.

Usage::

    context = BuildContext.create(Path("docs"))
    result = build(context)
    print(result.cached, "files were loaded from cache")

Only the main process writes to the metadata store. Worker processes, when
``context.workers > 1``, parse source files and return ``ParsedPage``
objects; registration happens afterwards in discovery order, so the store
(and therefore ``metas.json``) does not depend on scheduling.
"""
from __future__ import annotations

import logging
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from multiprocessing import Pool
from pathlib import Path
from typing import Any, TypeAlias

from docsbuilder.build_context import (
    IMAGES_DIRNAME,
    SOURCE_SUFFIX,
    BuildContext,
    BuildError,
)
from docsbuilder.directives import MarkupSyntaxError
from docsbuilder.doc_types import Document, compute_doc_fingerprint
from docsbuilder.generators import HtmlForPdfGenerator, JsonGenerator
from docsbuilder.io_utils import write_text
from docsbuilder.markup import ParsedPage, logical_path_for, parse_document
from docsbuilder.metas import (
    FrozenMetadataStore,
    MetadataStore,
    load_cached_metas,
    save_metas,
)
from docsbuilder.missing_files import (
    MissingFilesReport,
    check_missing_files,
    report_missing_files,
)
from docsbuilder.renderer import render_page

log = logging.getLogger(__name__)

ProgressCallback: TypeAlias = Callable[[str, str], None]  # (phase, path)


@dataclass(frozen=True, slots=True)
class SourceFile:
    path: str          # Logical path
    source: str        # Relative to the source dir, with suffix
    raw: bytes
    fingerprint: str


@dataclass(slots=True)
class BuildPlan:
    reused: list[Document] = field(default_factory=list[Document])
    dirty: list[SourceFile] = field(default_factory=list[SourceFile])


@dataclass(slots=True)
class BuildResult:
    store: FrozenMetadataStore
    discovered: list[str]
    parsed: int
    cached: int
    report: MissingFilesReport
    outputs: list[Path] = field(default_factory=list[Path])

    def to_summary(self) -> dict[str, Any]:
        return {
            "documents": len(self.store),
            "discovered": len(self.discovered),
            "parsed": self.parsed,
            "loaded_from_cache": self.cached,
            "missing": list(self.report.missing),
            "orphans": list(self.report.orphans),
            "outputs": [str(p) for p in self.outputs],
        }


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _is_skipped_dir(part: str) -> bool:
    return part.startswith((".", "_"))


def discover_sources(context: BuildContext) -> list[SourceFile]:
    """Collect ``*.md`` files under the source dir, sorted by path.

    Hidden and ``_``-prefixed directories are skipped, as is the output dir
    when it lives inside the source dir. With a sub-path, only files under
    it are collected.
    """
    scope = f"{context.sub_path}/" if context.sub_path else ""
    found: list[SourceFile] = []
    for file_path in sorted(context.source_dir.rglob(f"*{SOURCE_SUFFIX}")):
        if not file_path.is_file() or file_path.is_relative_to(context.output_dir):
            continue
        rel = file_path.relative_to(context.source_dir)
        if any(_is_skipped_dir(part) for part in rel.parts[:-1]):
            continue
        source = rel.as_posix()
        if scope and not source.startswith(scope):
            continue
        try:
            raw = file_path.read_bytes()
        except OSError as exc:
            raise BuildError(f"Cannot read source file {file_path}: {exc}") from exc
        found.append(
            SourceFile(
                path=logical_path_for(source),
                source=source,
                raw=raw,
                fingerprint=compute_doc_fingerprint(raw),
            )
        )
    return found


# ---------------------------------------------------------------------------
# Incremental planning
# ---------------------------------------------------------------------------


def plan_build(
    sources: list[SourceFile],
    cached: MetadataStore | FrozenMetadataStore,
    context: BuildContext,
) -> BuildPlan:
    """Split discovered files into reusable cache entries and files to parse.

    A cache entry is reused when its fingerprint and source name match and
    its HTML page still exists. A page whose TOC lists (or whose headings
    link to) a page with new, changed, or deleted content is reparsed so it
    picks up the new titles. Pages with ``:glob:`` TOCs are reparsed
    whenever files were added or removed.
    """
    plan = BuildPlan()
    if context.disable_cache or len(cached) == 0:
        plan.dirty = list(sources)
        return plan

    discovered = {s.path for s in sources}
    cached_paths = {doc.path for doc in cached.all()}
    files_changed = discovered != cached_paths

    content_changed: set[str] = cached_paths - discovered
    for src in sources:
        doc = cached.lookup(src.path)
        if doc is None or doc.fingerprint != src.fingerprint or doc.source != src.source:
            content_changed.add(src.path)

    for src in sources:
        doc = cached.lookup(src.path)
        if (
            doc is None
            or src.path in content_changed
            or not context.html_path_for(src.path).is_file()
            or (files_changed and any(t.glob for t in doc.tocs))
            or any(dep in content_changed for dep in doc.dependencies)
        ):
            plan.dirty.append(src)
        else:
            plan.reused.append(doc)
    return plan


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _parse_one(item: tuple[SourceFile, tuple[str, ...]]) -> ParsedPage:
    """Worker entry point (module level so it pickles)."""
    src, known = item
    return parse_document(src.source, src.raw, known_paths=known)


def parse_sources(
    sources: list[SourceFile],
    known_paths: Iterable[str],
    *,
    workers: int = 1,
    on_parsed: Callable[[str], None] | None = None,
) -> list[ParsedPage]:
    """Parse ``sources``; results keep the input order.

    Raises:
        BuildError: a file contains markup the directive parser rejects.
    """
    known = tuple(sorted(known_paths))
    work = [(src, known) for src in sources]
    pages: list[ParsedPage] = []
    try:
        if workers > 1 and len(work) > 1:
            with Pool(processes=workers) as pool:
                for page in pool.imap(_parse_one, work, chunksize=8):
                    pages.append(page)
                    if on_parsed is not None:
                        on_parsed(page.document.path)
        else:
            for item in work:
                page = _parse_one(item)
                pages.append(page)
                if on_parsed is not None:
                    on_parsed(page.document.path)
    except MarkupSyntaxError as exc:
        raise BuildError(f"Markup error: {exc}") from exc
    return pages


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def copy_images(context: BuildContext) -> Path | None:
    """Copy ``<source>/_images`` to ``<output>/_images`` when present."""
    src = context.images_dir
    if not src.is_dir():
        return None
    dest = context.output_dir / IMAGES_DIRNAME
    try:
        shutil.copytree(src, dest, dirs_exist_ok=True)
    except (OSError, shutil.Error) as exc:
        raise BuildError(f"Cannot copy images to {dest}: {exc}") from exc
    log.debug("Copied %s to %s", src, dest)
    return dest


def _write_pages(
    pages: list[ParsedPage],
    store: FrozenMetadataStore,
    context: BuildContext,
    on_written: Callable[[str], None] | None = None,
) -> None:
    for page in pages:
        out_path = context.html_path_for(page.document.path)
        try:
            write_text(out_path, render_page(page, store))
        except OSError as exc:
            raise BuildError(f"Cannot write {out_path}: {exc}") from exc
        if on_written is not None:
            on_written(page.document.path)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build(
    context: BuildContext,
    *,
    on_progress: ProgressCallback | None = None,
) -> BuildResult:
    """Run one complete build.

    Raises:
        BuildError: any fatal condition (bad directories, markup errors,
            unwritable output, missing PDF index page).
    """
    context.validate()

    def progress(phase: str) -> Callable[[str], None] | None:
        if on_progress is None:
            return None
        return lambda path: on_progress(phase, path)

    sources = discover_sources(context)
    log.info("Discovered %d source files in %s", len(sources), context.source_dir)

    cached = MetadataStore()
    if not context.disable_cache:
        load_cached_metas(context.metas_dir, cached)

    plan = plan_build(sources, cached, context)
    discovered = [s.path for s in sources]
    pages = parse_sources(
        plan.dirty,
        discovered,
        workers=context.workers,
        on_parsed=progress("parse"),
    )
    log.info("Parsed %d files, reusing %d from cache", len(pages), len(plan.reused))

    # Registration in discovery order, whichever side a document came from
    by_path: dict[str, Document] = {doc.path: doc for doc in plan.reused}
    by_path.update((p.document.path, p.document) for p in pages)
    store = MetadataStore()
    for path in discovered:
        store.register(path, by_path[path])
    frozen = store.freeze()

    _write_pages(pages, frozen, context, on_written=progress("render"))
    try:
        save_metas(context.metas_dir, frozen)
    except OSError as exc:
        raise BuildError(f"Cannot write metadata cache: {exc}") from exc
    copy_images(context)

    report = check_missing_files(frozen, discovered, sub_path=context.sub_path or None)
    report_missing_files(report)

    outputs: list[Path]
    if context.sub_path:
        outputs = [HtmlForPdfGenerator(frozen, context).generate()]
    else:
        outputs = JsonGenerator(frozen, context).generate(on_progress=progress("export"))

    return BuildResult(
        store=frozen,
        discovered=discovered,
        parsed=len(pages),
        cached=len(plan.reused),
        report=report,
        outputs=outputs,
    )
