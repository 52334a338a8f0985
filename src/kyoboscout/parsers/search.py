"""Search result page parser."""

import logging
import time
from dataclasses import dataclass

from bs4 import Tag

from kyoboscout import selectors as sel
from kyoboscout.errors import ParseError
from kyoboscout.models import UNKNOWN_AUTHOR, Book, SearchParseMetrics
from kyoboscout.text import (
    clean,
    clean_author,
    clean_publisher,
    clean_title,
    contains_any,
    find_full_date,
    has_letter,
    parse_authors,
)
from kyoboscout.urls import build_cover_image_url, build_detail_url, extract_book_id

from .base import BaseParser, first_success

BATCH_SIZE = 10
LINK_FALLBACK_LIMIT = 20
ID_LINK_SELECTORS = [
    'a[href*="/detail/S"]',
    'a[href*="/detail/"]',
    'a[href*="product.kyobobook.co.kr/detail"]',
    "a[href]",
]
COVER_SIZE_NAMES = {"150x0": "small", "200x0": "medium", "300x0": "large"}


@dataclass
class SearchParse:
    """Books parsed from a search page together with parse metrics."""

    books: list[Book]
    metrics: SearchParseMetrics


class SearchResultParser(BaseParser):
    """Parser for search.kyobobook.co.kr result pages."""

    name = "search"

    def parse(self, max_results: int = sel.MAX_SEARCH_RESULTS) -> SearchParse:
        """Parse up to max_results books, in page order.

        Raises:
            ParseError: If the page has no recognizable result items and is
                not a "no results" page.
        """
        started = time.perf_counter()
        metrics = SearchParseMetrics()

        items, strategy = self.find_result_items()
        metrics.total_items = len(items)
        metrics.strategy = strategy

        if not items:
            metrics.parse_time = time.perf_counter() - started
            if self.is_no_results_page():
                self.logger.info("Search page reports no results")
                return SearchParse(books=[], metrics=metrics)
            raise ParseError("No search result items found", source="SearchResultParser")

        books: list[Book] = []
        for start in range(0, len(items), BATCH_SIZE):
            if len(books) >= max_results:
                break
            batch = items[start : start + BATCH_SIZE]
            books.extend(self._parse_batch(batch, start, max_results - len(books), metrics))

        metrics.successful_items = len(books)
        metrics.parse_time = time.perf_counter() - started
        self.logger.debug(
            "Parsed %d/%d search items using %s",
            len(books),
            len(items),
            strategy,
            extra={"payload": metrics.to_dict()},
        )
        return SearchParse(books=books, metrics=metrics)

    def _parse_batch(self, batch: list[Tag], offset: int, remaining: int, metrics: SearchParseMetrics) -> list[Book]:
        books = []
        for index, item in enumerate(batch, start=offset + 1):
            if len(books) >= remaining:
                break
            try:
                book = self.parse_item(item)
            except Exception as e:
                metrics.failed_items += 1
                metrics.errors.append(f"Item {index}: {e}")
                self.logger.warning("Failed to parse search item %d: %s", index, e)
                continue
            if book is None:
                metrics.skipped_items += 1
                continue
            books.append(book)
        return books

    # Candidate discovery

    def find_result_items(self) -> tuple[list[Tag], str | None]:
        """Locate listing items, returning them with the name of the strategy used."""
        for selector in sel.SEARCH_RESULT_ITEMS:
            items = [item for item in self.doc.select(selector) if self.is_valid_item(item)]
            if items:
                return items, selector

        items = [item for item in self.find_items_by_links() if self.is_valid_item(item)]
        if items:
            return items, "detail-links"

        # A lone title link is still a book; drop only the minimum text rule
        for selector in sel.SEARCH_RESULT_ITEMS:
            items = [item for item in self.doc.select(selector) if self.is_valid_item(item, min_text=1)]
            if items:
                return items, f"relaxed:{selector}"
        return [], None

    def is_valid_item(self, item: Tag, min_text: int = sel.MIN_ITEM_TEXT) -> bool:
        """Visible, links to a detail page, has some text and is not a package."""
        if not self.doc.is_visible(item):
            return False
        if item.select_one('a[href*="detail"]') is None:
            return False
        text = self.doc.text(item)
        if len(text) < min_text:
            return False
        return not contains_any(text, sel.PACKAGE_KEYWORDS)

    def find_items_by_links(self) -> list[Tag]:
        """Find product containers by walking up from detail page links."""
        containers: list[Tag] = []
        seen: set[int] = set()
        for link in self.doc.all_by_selectors(sel.BOOK_DETAIL_LINKS):
            container = self.doc.find_ancestor(link, self._looks_like_container, max_depth=5)
            if container is None or id(container) in seen:
                continue
            seen.add(id(container))
            containers.append(container)
            if len(containers) >= LINK_FALLBACK_LIMIT:
                break
        return containers

    def _looks_like_container(self, element: Tag) -> bool:
        names = self.doc.class_and_id(element).lower()
        if not any(keyword in names for keyword in sel.PRODUCT_CONTAINER_KEYWORDS):
            return False
        return 20 < len(self.doc.text(element)) < 1000

    def is_no_results_page(self) -> bool:
        if self.doc.first_by_selectors(sel.NO_RESULTS) is not None:
            return True
        return contains_any(self.doc.full_text(), sel.NO_RESULTS_TEXT)

    # Field extraction

    def parse_item(self, item: Tag) -> Book | None:
        """Build a Book from one listing item, or None if it has no id or title."""
        url, book_id = self.extract_url_and_id(item)
        if not book_id:
            return None
        title = self.extract_title(item)
        if len(title) < 2:
            return None

        authors = self.extract_authors(item)
        publisher = self.extract_publisher(item)
        barcode = self.extract_barcode(item)
        cover = self.extract_cover_image(item) or build_cover_image_url(barcode or book_id)

        return Book.create(
            id=book_id,
            title=title,
            authors=authors or [UNKNOWN_AUTHOR],
            publisher=publisher,
            publish_date=find_full_date(self.doc.text(item)),
            isbn=barcode,
            cover_image_url=cover,
            detail_page_url=url,
        )

    def extract_url_and_id(self, item: Tag) -> tuple[str, str]:
        def from_selector(selector: str):
            def strategy():
                for link in self.doc.select(selector, item):
                    book_id = extract_book_id(self.doc.attr(link, "href"))
                    if book_id:
                        return book_id
                return None

            return strategy

        book_id = first_success(from_selector(selector) for selector in ID_LINK_SELECTORS)
        if not book_id:
            return "", ""
        return build_detail_url(book_id), book_id

    def extract_title(self, item: Tag) -> str:
        """Longest valid title among detail links, then title selectors."""
        best = ""
        for link in self.doc.select('a[href*="detail"]', item):
            raw = self.doc.attr(link, "title") or self.doc.attr(link, "aria-label") or clean(link.get_text())
            title = clean_title(raw)
            if self._is_valid_title(title) and len(title) > len(best):
                best = title
        if best:
            return best

        title = clean_title(self.text_of_first(sel.TITLE, item))
        return title if self._is_valid_title(title) else ""

    @staticmethod
    def _is_valid_title(title: str) -> bool:
        if len(title) < 2 or len(title) > sel.MAX_TITLE:
            return False
        if title.lower() in sel.INVALID_TITLES:
            return False
        return has_letter(title)

    def extract_authors(self, item: Tag) -> list[str]:
        container = self.doc.first_by_selectors(sel.AUTHOR, item)
        if container is None:
            return []
        authors = []
        for link in self.doc.select("a", container):
            name = clean_author(self.doc.text(link))
            if 0 < len(name) < sel.MAX_AUTHOR_LENGTH and name not in authors:
                authors.append(name)
        if authors:
            return authors[: sel.MAX_AUTHORS]
        return parse_authors(self.doc.text(container))

    def extract_publisher(self, item: Tag) -> str:
        return clean_publisher(self.text_of_first(sel.PUBLISHER, item))

    def _lazy_cover(self, item: Tag) -> Tag | None:
        return self.doc.select_one(sel.LAZY_COVER, item)

    def extract_barcode(self, item: Tag) -> str | None:
        """A 12-13 digit ``data-kbbfn-bid`` is the book's barcode (its ISBN)."""
        lazy = self._lazy_cover(item)
        bid = self.doc.attr(lazy, "data-kbbfn-bid") or self.doc.attr(lazy, "data-bid")
        if bid.isdigit() and len(bid) in (12, 13):
            return bid
        return None

    def extract_cover_image(self, item: Tag) -> str:
        def from_images():
            for image in self.doc.all_by_selectors(sel.COVER_IMAGE, item):
                url = self.doc.image_url(image)
                if url:
                    return url
            return None

        def from_lazy_attributes():
            lazy = self._lazy_cover(item)
            if lazy is None:
                return None
            bid = self.doc.attr(lazy, "data-kbbfn-bid") or self.doc.attr(lazy, "data-bid")
            pid = self.doc.attr(lazy, "data-kbbfn-pid") or self.doc.attr(lazy, "data-pid")
            size = self.doc.attr(lazy, "data-kbbfn-size") or "200x0"
            code = bid or pid
            if not code:
                return None
            return build_cover_image_url(code, COVER_SIZE_NAMES.get(size, "medium"))

        def from_background_styles():
            for element in self.doc.select("[style]", item):
                url = self.doc.image_url(element)
                if url:
                    return url
            return None

        return first_success([from_images, from_lazy_attributes, from_background_styles]) or ""

    def analyze_structure(self) -> dict:
        """Snapshot of the page layout, useful when parsing stops working."""
        terms = ["search", "result", "list", "prod", "book", "item"]
        term_counts = {}
        for term in terms:
            count = len(self.doc.select(f'[class*="{term}"]'))
            if count:
                term_counts[term] = count
        return {
            "page_title": self.doc.title(),
            "search_term_elements": term_counts,
            "detail_links": len(self.doc.select('a[href*="detail"], a[href*="product"]')),
            "list_elements": len(self.doc.select('ul, ol, div[class*="list"], section[class*="list"]')),
            "stats": self.doc.structure(),
        }


def parse_books(
    html: str,
    max_results: int = sel.MAX_SEARCH_RESULTS,
    logger: logging.Logger | None = None,
) -> list[Book]:
    """Parse a search result page into a list of books."""
    return SearchResultParser(html, logger).parse(max_results).books
