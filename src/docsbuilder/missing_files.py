"""Post-build check of TOC references against the discovered source files.

Two diagnostics, neither of which fails the build:

- missing: a TOC lists a logical path that has no source file;
- orphans: a source file that no TOC lists (the root index and pages whose
  first line is ``:orphan:`` are exempt).
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from docsbuilder.metas import FrozenMetadataStore

log = logging.getLogger(__name__)

ROOT_INDEX = "index"


@dataclass(frozen=True, slots=True)
class MissingFilesReport:
    missing: tuple[str, ...]
    orphans: tuple[str, ...]

    @property
    def ok(self) -> bool:
        return not self.missing and not self.orphans

    def to_dict(self) -> dict[str, list[str]]:
        return {"missing": list(self.missing), "orphans": list(self.orphans)}


def _in_scope(path: str, sub_path: str | None) -> bool:
    return not sub_path or path.startswith(sub_path.rstrip("/") + "/")


def root_index_for(sub_path: str | None) -> str:
    return f"{sub_path.strip('/')}/{ROOT_INDEX}" if sub_path else ROOT_INDEX


def check_missing_files(
    store: FrozenMetadataStore,
    discovered: Iterable[str],
    *,
    sub_path: str | None = None,
) -> MissingFilesReport:
    """Compare every TOC reference in ``store`` with the discovered paths."""
    discovered_set = set(discovered)
    referenced: set[str] = set()
    for doc in store.all():
        referenced.update(doc.toc_files())

    missing = sorted(
        p for p in referenced - discovered_set if _in_scope(p, sub_path)
    )
    exempt = {root_index_for(sub_path)}
    exempt.update(doc.path for doc in store.all() if doc.orphan)
    orphans = sorted(discovered_set - referenced - exempt)
    return MissingFilesReport(missing=tuple(missing), orphans=tuple(orphans))


def report_missing_files(report: MissingFilesReport) -> None:
    """Log the report; missing references and orphans are warnings."""
    if report.missing:
        log.warning("Found missing files: %s", ", ".join(report.missing))
    if report.orphans:
        log.warning(
            "Found files not included in any toctree: %s", ", ".join(report.orphans)
        )
