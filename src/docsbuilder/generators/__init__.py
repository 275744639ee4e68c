"""Output generators: per-page JSON export and combined HTML for PDF."""

from docsbuilder.generators.html_for_pdf import HtmlForPdfGenerator, page_uid
from docsbuilder.generators.json_generator import (
    JsonGenerator,
    extract_body,
    toc_options_for,
)
from docsbuilder.generators.navigation import TocTree, walk_toc_tree

__all__ = [
    "HtmlForPdfGenerator",
    "JsonGenerator",
    "TocTree",
    "extract_body",
    "page_uid",
    "toc_options_for",
    "walk_toc_tree",
]
