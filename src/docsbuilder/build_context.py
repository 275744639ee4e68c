"""Process-wide build configuration.

A BuildContext is created once from the command line and passed to every
component; nothing mutates it afterwards.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_OUTPUT_DIRNAME = "html"
IMAGES_DIRNAME = "_images"
SOURCE_SUFFIX = ".md"
HTML_SUFFIX = ".html"
JSON_SUFFIX = ".fjson"


class BuildError(RuntimeError):
    """Fatal build condition; the build aborts and the CLI exits non-zero."""


@dataclass(frozen=True, slots=True)
class BuildContext:
    source_dir: Path
    output_dir: Path
    sub_path: str = ""                 # "" = full build with JSON export
    disable_cache: bool = False
    workers: int = 1

    @classmethod
    def create(
        cls,
        source_dir: Path,
        output_dir: Path | None = None,
        *,
        sub_path: str = "",
        disable_cache: bool = False,
        workers: int = 1,
    ) -> BuildContext:
        """Normalise paths; the output dir defaults to ``<source_dir>/html``."""
        source = source_dir.resolve()
        output = (output_dir or source / DEFAULT_OUTPUT_DIRNAME).resolve()
        return cls(
            source_dir=source,
            output_dir=output,
            sub_path=sub_path.strip().strip("/"),
            disable_cache=disable_cache,
            workers=workers,
        )

    @property
    def metas_dir(self) -> Path:
        """Directory holding the metadata cache."""
        return self.output_dir

    @property
    def images_dir(self) -> Path:
        return self.source_dir / IMAGES_DIRNAME

    def html_path_for(self, path: str) -> Path:
        return self.output_dir / f"{path}{HTML_SUFFIX}"

    def json_path_for(self, path: str) -> Path:
        return self.output_dir / f"{path}{JSON_SUFFIX}"

    def validate(self) -> None:
        """Check fatal preconditions and create the output directory.

        Raises:
            BuildError: unreadable source dir, unusable output dir, bad
                sub-path or worker count.
        """
        if not self.source_dir.is_dir():
            raise BuildError(f"Source directory not found: {self.source_dir}")
        if not os.access(self.source_dir, os.R_OK | os.X_OK):
            raise BuildError(f"Source directory is not readable: {self.source_dir}")
        if self.sub_path and not (self.source_dir / self.sub_path).is_dir():
            raise BuildError(
                f"Sub-path {self.sub_path!r} is not a directory of {self.source_dir}"
            )
        if self.workers < 1:
            raise BuildError(f"workers must be >= 1, got {self.workers}")
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BuildError(f"Cannot create output directory {self.output_dir}: {exc}") from exc
        if not os.access(self.output_dir, os.W_OK):
            raise BuildError(f"Output directory is not writable: {self.output_dir}")
