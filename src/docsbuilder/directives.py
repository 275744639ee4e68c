"""``toctree`` directive parsing.

A TOC directive is a fenced block with the info string ``toctree``::

    ```toctree
    :maxdepth: 2
    :caption: User guide

    install
    configuration
    /reference/index
    ```

Option lines (``:name: value``) and entry lines are parsed with a Lark
grammar. Entries are canonicalised to logical paths relative to the page
the directive appears on; with ``:glob:`` entries containing wildcard
characters expand against the discovered paths.
"""
from __future__ import annotations

import fnmatch
import importlib
from collections.abc import Iterable
from typing import Any

from docsbuilder.doc_types import DEFAULT_TOC_DEPTH, TocDirective
from docsbuilder.environment import canonical_path

# ---------------------------------------------------------------------------
# Dynamic Lark import: importlib returns ModuleType (known), getattr returns
# Any (not Unknown).
# ---------------------------------------------------------------------------
_lark_mod = importlib.import_module("lark")
_lark_exc = importlib.import_module("lark.exceptions")

_LarkClass: Any = _lark_mod.Lark
_TransformerBase: Any = _lark_mod.Transformer
_v_args_decorator: Any = _lark_mod.v_args
_UnexpectedInput: type[Exception] = _lark_exc.UnexpectedInput

TOCTREE_INFO = "toctree"

_GLOB_CHARS = ("*", "?", "[")


class MarkupSyntaxError(ValueError):
    """Raised when a source file contains markup the builder cannot accept."""

    def __init__(self, message: str, *, source: str = "", line: int | None = None) -> None:
        location = source
        if source and line is not None:
            location = f"{source}:{line}"
        super().__init__(f"{location}: {message}" if location else message)
        self.source = source
        self.line = line


# Entry lines cannot start with ":" so the contextual lexer never confuses
# them with option names.
TOCTREE_GRAMMAR = r"""
    start: _NL* (_item _NL)* _item?
    _item: option | entry
    option: OPTION_NAME OPTION_VALUE?
    entry: ENTRY
    OPTION_NAME: /:[A-Za-z][\w-]*:/
    OPTION_VALUE: /[^\s][^\n]*/
    ENTRY: /[^\s:][^\n]*/
    _NL: /(\r?\n[\t ]*)+/
    %ignore /[\t ]+/
"""

_toctree_parser: Any = None


def _get_toctree_parser() -> Any:
    """Return the singleton Lark parser, creating it on first call."""
    global _toctree_parser
    if _toctree_parser is None:
        try:
            _toctree_parser = _LarkClass(TOCTREE_GRAMMAR, parser="lalr")
        except Exception:
            _toctree_parser = _LarkClass(TOCTREE_GRAMMAR, parser="earley", ambiguity="resolve")
    return _toctree_parser


@_v_args_decorator(inline=True)
class ToctreeTransformer(_TransformerBase):
    """Transform the Lark parse tree into a list of options and entries."""

    def start(self, *items: Any) -> list[Any]:
        return list(items)

    def option(self, name: Any, value: Any = None) -> tuple[str, str | None]:
        key = str(name).strip(":").lower()
        return (key, str(value).strip() if value is not None else None)

    def entry(self, token: Any) -> str:
        return str(token).strip()


_toctree_transformer = ToctreeTransformer()


def parse_toctree(
    body: str,
    current_path: str,
    known_paths: Iterable[str] = (),
    *,
    source: str = "",
    line: int | None = None,
) -> TocDirective:
    """Parse a ``toctree`` block body into a TocDirective.

    Args:
        body: Text between the fences.
        current_path: Logical path of the page holding the directive.
        known_paths: Discovered logical paths, used for ``:glob:`` expansion.
        source: Source file name for error messages.
        line: Line of the opening fence for error messages.

    Raises:
        MarkupSyntaxError: unparseable body or an invalid option value.
    """
    text = body if body.endswith("\n") else body + "\n"
    try:
        tree: Any = _get_toctree_parser().parse(text)
    except _UnexpectedInput as exc:
        raise MarkupSyntaxError(
            f"invalid toctree body: {exc}", source=source, line=line,
        ) from exc
    items: list[Any] = _toctree_transformer.transform(tree)

    options: dict[str, str | None] = {}
    entries: list[str] = []
    for item in items:
        if isinstance(item, tuple):
            options[item[0]] = item[1]
        elif item:
            entries.append(item)

    max_depth = _parse_depth(options, source=source, line=line)
    glob = "glob" in options
    files: list[str] = []
    for entry in entries:
        if glob and any(ch in entry for ch in _GLOB_CHARS):
            pattern = canonical_path(entry, current_path)
            files.extend(
                p for p in sorted(known_paths)
                if p != current_path and _glob_match(p, pattern)
            )
            continue
        path = canonical_path(entry, current_path)
        if path:
            files.append(path)

    return TocDirective(
        files=tuple(files),
        max_depth=max_depth,
        hidden="hidden" in options,
        caption=options.get("caption") or "",
        glob=glob,
    )


def _glob_match(path: str, pattern: str) -> bool:
    """Segment-wise match: wildcards never cross a ``/``."""
    parts = path.split("/")
    pattern_parts = pattern.split("/")
    return len(parts) == len(pattern_parts) and all(
        fnmatch.fnmatchcase(part, pat) for part, pat in zip(parts, pattern_parts)
    )


def _parse_depth(options: dict[str, str | None], *, source: str, line: int | None) -> int:
    key = "maxdepth" if "maxdepth" in options else "depth"
    if key not in options:
        return DEFAULT_TOC_DEPTH
    raw = options[key]
    if raw is None:
        raise MarkupSyntaxError(
            f"toctree :{key}: needs a value", source=source, line=line,
        )
    try:
        depth = int(raw)
    except ValueError:
        raise MarkupSyntaxError(
            f"toctree maxdepth must be an integer, got {raw!r}", source=source, line=line,
        ) from None
    if depth < 1:
        raise MarkupSyntaxError(
            f"toctree maxdepth must be >= 1, got {depth}", source=source, line=line,
        )
    return depth
