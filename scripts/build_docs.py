#!/usr/bin/env python3
"""Build HTML (plus JSON, or a combined HTML-for-PDF file) from Markdown docs.

Reads every ``*.md`` file under SOURCE_DIR, resolves cross-document
titles and table-of-contents directives, and writes one HTML page per
source file into OUTPUT_DIR. Metadata is cached in OUTPUT_DIR/metas.json
so unchanged files are not parsed again on the next run.

Without ``--parse-sub-path`` a ``.fjson`` record is exported per page.
With it, only the files under that directory are built and concatenated
into ``OUTPUT_DIR/<sub-path>.html`` for PDF conversion.

Usage:
    python3 scripts/build_docs.py docs/

    python3 scripts/build_docs.py docs/ build/ --workers 4 --verbose

    # Single book for PDF:
    python3 scripts/build_docs.py docs/ build/ --parse-sub-path manual

    # Ignore metas.json:
    python3 scripts/build_docs.py docs/ --disable-cache
"""
from __future__ import annotations

import argparse
import json
import logging
import platform
import sys
import time
from pathlib import Path

try:
    import resource as _resource_mod
except ImportError:  # Windows
    _resource_mod = None  # type: ignore[assignment]

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from docsbuilder.build_context import BuildContext, BuildError
from docsbuilder.builder import build

log = logging.getLogger("build_docs")


# ---------------------------------------------------------------------------
# Progress reporter
# ---------------------------------------------------------------------------


def _get_rss_mb() -> float | None:
    """Return current process RSS in MB, or None if unavailable."""
    if _resource_mod is None:
        return None
    usage = _resource_mod.getrusage(_resource_mod.RUSAGE_SELF)
    rss = usage.ru_maxrss
    # macOS returns bytes; Linux returns kilobytes
    if platform.system() == "Darwin":
        return rss / (1024 * 1024)
    return rss / 1024


class _ProgressReporter:
    """Per-phase progress lines on stderr, at most one every ``interval_sec``."""

    def __init__(self, *, interval_sec: float = 5.0) -> None:
        self._interval_sec = interval_sec
        self._phase = ""
        self._count = 0
        self._start = time.monotonic()
        self._last_report = 0.0

    def __call__(self, phase: str, path: str) -> None:
        if phase != self._phase:
            if self._phase:
                self.finish()
            self._phase = phase
            self._count = 0
            self._start = time.monotonic()
        self._count += 1
        now = time.monotonic()
        if now - self._last_report >= self._interval_sec:
            self._print_line(path)
            self._last_report = now

    def finish(self) -> None:
        if self._phase:
            self._print_line()

    def _print_line(self, path: str = "") -> None:
        elapsed = time.monotonic() - self._start
        rate = self._count / max(0.01, elapsed)
        mem = _get_rss_mb()
        mem_str = f" | mem {mem:.0f}MB" if mem is not None else ""
        where = f" | {path}" if path else ""
        print(
            f"[{self._phase}] {self._count} files | {rate:.1f} files/sec{mem_str}{where}",
            file=sys.stderr,
        )


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Build HTML documentation from a directory of Markdown files.",
    )
    parser.add_argument(
        "source_dir",
        type=Path,
        help="Directory containing the Markdown sources (*.md)",
    )
    parser.add_argument(
        "output_dir",
        type=Path,
        nargs="?",
        default=None,
        help="Output directory (default: SOURCE_DIR/html)",
    )
    parser.add_argument(
        "--parse-sub-path",
        type=str,
        default="",
        help=(
            "Build only this sub-directory and concatenate it into "
            "OUTPUT_DIR/<sub-path>.html for PDF conversion"
        ),
    )
    parser.add_argument(
        "--disable-cache",
        action="store_true",
        help="Ignore OUTPUT_DIR/metas.json and parse every file",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of parallel parser processes (default: 1)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    logging.getLogger("markdown_it").setLevel(logging.WARNING)

    context = BuildContext.create(
        args.source_dir,
        args.output_dir,
        sub_path=args.parse_sub_path,
        disable_cache=args.disable_cache,
        workers=args.workers,
    )
    t0 = time.time()
    progress = _ProgressReporter()
    try:
        result = build(context, on_progress=progress)
    except BuildError as exc:
        log.error("%s", exc)
        return 1
    progress.finish()

    if result.cached:
        log.info("(%d files were loaded from cache)", result.cached)
    summary = result.to_summary()
    summary["output_dir"] = str(context.output_dir)
    summary["elapsed_sec"] = round(time.time() - t0, 2)
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
