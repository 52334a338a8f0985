"""Page parsers."""

from .base import BaseParser, TextQuality, assess_text_quality, first_success
from .detail import BookDetailParser, DetailParse, enrich_book, format_table_of_contents
from .dom import HtmlDocument
from .search import SearchParse, SearchResultParser, parse_books

__all__ = [
    "BaseParser",
    "BookDetailParser",
    "DetailParse",
    "HtmlDocument",
    "SearchParse",
    "SearchResultParser",
    "TextQuality",
    "assess_text_quality",
    "enrich_book",
    "first_success",
    "format_table_of_contents",
    "parse_books",
]
