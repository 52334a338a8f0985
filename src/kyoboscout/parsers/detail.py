"""Book detail page parser.

Each field has its own chain of fallbacks, and every extractor runs in
isolation: an exception in one is recorded in the parse results and the
others still run. JSON-LD data, when the page has it, seeds the update and
the HTML extractors only fill whatever it left empty.
"""

import json
import logging
import re
import urllib.parse
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from bs4 import Tag

from kyoboscout import selectors as sel
from kyoboscout.errors import ParseError
from kyoboscout.markdown import collapse_lines, html_to_markdown, strip_bullet
from kyoboscout.models import UNKNOWN_AUTHOR, UNKNOWN_TITLE, Book, DetailParseResults
from kyoboscout.text import (
    clean_author,
    clean_publisher,
    clean_title,
    extract_pages,
    extract_rating,
    find_full_date,
    normalize_date,
    normalize_isbn,
    parse_authors,
    parse_categories,
    strip_html,
)
from kyoboscout.urls import (
    PRODUCT_URL,
    build_cover_image_url,
    is_kyobo_url,
    is_valid_image_url,
    optimize_image_url,
    to_absolute_url,
)

from .base import BaseParser, assess_text_quality, extract_by_pattern, first_success

CHAPTER_LINE = re.compile(
    r"^(?:제?\s*\d+\s*[장절부편]|chapter\s*\d+|part\s*\d+|\d+\.(?!\d)|\d+\s*-(?!\d))",
    re.IGNORECASE,
)
SUBHEADING_LINE = re.compile(r"^(?:\d+\.\d+|\d+-\d+|[가-힣]\.|[(（]\d+[)）])")
PAGE_LABEL = re.compile(r"페이지|쪽수|쪽")
TOC_CONTAINER_NAME = re.compile(r"toc|contents|목차", re.IGNORECASE)
HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}

MIN_TOC_LENGTH = 10
MIN_DESCRIPTION_LENGTH = 20
MAX_TOC_SIBLINGS = 50
MAX_TOC_LINE = 300
COVER_WIDTH = 300

TOC_URL_KEYWORDS = ("toc", "contents", "목차")
TOC_URL_EXCLUDED_HOSTS = (
    "contents.kyobobook.co.kr",
    "image.kyobobook.co.kr",
    "static.kyobobook.co.kr",
    "simg.kyobobook.co.kr",
)
TOC_URL_EXCLUDED_WORDS = ("analytics", "gtm", "beacon", "tracking", "/log", "pixel", "cdn")
STATIC_EXTENSION = re.compile(r"\.(?:js|css|png|jpe?g|gif|svg|webp|ico|woff2?|ttf|map)(?:$|\?)", re.IGNORECASE)


@dataclass
class DetailParse:
    """An enriched book together with per-field parse results."""

    book: Book
    results: DetailParseResults


def format_table_of_contents(raw: str | None) -> str:
    """Normalize a table of contents into one entry per line.

    Chapter lines ("1장", "Chapter 1", "1.") stay flush left and
    subheadings ("1.1", "1-1", "가.", "(1)") are indented two spaces.
    """
    if not raw:
        return ""
    text = html_to_markdown(raw) if "<" in raw else raw
    lines = [strip_bullet(line) for line in collapse_lines(text).split("\n")]

    formatted = []
    for line in lines:
        if not line:
            continue
        if CHAPTER_LINE.match(line):
            formatted.append(line)
        elif SUBHEADING_LINE.match(line):
            formatted.append("  " + line)
        elif 2 <= len(line) <= MAX_TOC_LINE:
            formatted.append(line)
    return "\n".join(formatted)[: sel.MAX_TOC].rstrip()


def toc_from_json(data: Any) -> str:
    """Turn a decoded JSON table of contents (list or object) into text lines."""
    if isinstance(data, dict):
        for key in ("items", "book_contents_list", "list", "data"):
            if isinstance(data.get(key), list):
                return toc_from_json(data[key])
        for key in ("toc", "content", "contents", "text"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return format_table_of_contents(value)
            if isinstance(value, list):
                return toc_from_json(value)
        return ""
    if isinstance(data, list):
        lines = []
        for entry in data:
            if isinstance(entry, dict):
                value = entry.get("title") or entry.get("text") or entry.get("name") or entry.get("content")
            else:
                value = entry
            if value is not None and str(value).strip():
                lines.append(strip_html(str(value)))
        return format_table_of_contents("\n".join(lines))
    if isinstance(data, str):
        return format_table_of_contents(data)
    return ""


class BookDetailParser(BaseParser):
    """Parser for product.kyobobook.co.kr detail pages."""

    name = "detail"

    def __init__(self, html: str, logger: logging.Logger | None = None) -> None:
        super().__init__(html, logger)
        self.results = DetailParseResults()

    def parse(self, book: Book) -> DetailParse:
        """Merge detail page data into book.

        Raises:
            ParseError: If the extracted values cannot be merged into the book.
        """
        self.results = DetailParseResults()
        updates = self.extract_updates(book)
        try:
            enriched = book.update(**updates)
        except Exception as e:
            raise ParseError(
                f"Failed to merge detail page data: {e}",
                source="BookDetailParser",
                book_id=book.id,
                cause=e,
            ) from e

        self.logger.debug(
            "Detail parse for %s: %d/%d fields",
            book.id,
            self.results.successful_fields,
            self.results.total_fields,
            extra={"payload": self.results.to_dict()},
        )
        return DetailParse(book=enriched, results=self.results)

    def enrich_book(self, book: Book) -> Book:
        return self.parse(book).book

    def get_parse_results(self) -> DetailParseResults:
        return self.results

    def _run(self, tag: str, extractor: Callable[[], Any]) -> Any:
        try:
            return extractor()
        except Exception as e:
            self.results.errors.append(f"{tag}: {e}")
            self.logger.debug("%s extraction failed: %s", tag, e)
            return None

    def extract_updates(self, book: Book) -> dict:
        """Collect every field the page provides."""
        updates: dict[str, Any] = {}
        results = self.results

        linked = self._run("JSON-LD", self.extract_json_ld) or {}
        updates.update({key: value for key, value in linked.items() if value})
        if book.title != UNKNOWN_TITLE:
            updates.pop("title", None)
        if book.authors and book.authors != [UNKNOWN_AUTHOR]:
            updates.pop("authors", None)

        def fill(field: str, tag: str, extractor: Callable[[], Any], flag: str | None = None) -> None:
            if not updates.get(field):
                value = self._run(tag, extractor)
                if not value:
                    return
                updates[field] = value
            setattr(results, flag or field, True)

        fill("isbn", "ISBN", self.extract_isbn)
        fill("pages", "Pages", self.extract_pages)
        fill("description", "Description", self.extract_description)
        fill("publisher", "Publisher", self.extract_publisher)
        fill("publish_date", "PublishDate", self.extract_publish_date)

        if not updates.get("title") and book.title == UNKNOWN_TITLE:
            title = self._run("Title", self.extract_title)
            if title:
                updates["title"] = title
        if not updates.get("authors") and (not book.authors or book.authors == [UNKNOWN_AUTHOR]):
            authors = self._run("Authors", self.extract_authors)
            if authors:
                updates["authors"] = authors

        fill("table_of_contents", "TOC", self.extract_table_of_contents)
        fill("categories", "Categories", self.extract_categories)
        fill("rating", "Rating", self.extract_rating)
        fill("cover_image_url", "Cover", self.extract_cover_image, flag="cover_image")

        if not updates.get("cover_image_url"):
            code = updates.get("isbn") or book.isbn or book.id
            updates["cover_image_url"] = build_cover_image_url(code, "large")
        return updates

    # JSON-LD

    def extract_json_ld(self) -> dict:
        """Pull book fields from schema.org Book/Product JSON-LD blocks."""
        nodes: list[dict] = []
        for script in self.doc.scripts("application/ld+json"):
            script = script.strip()
            if not script:
                continue
            try:
                data = json.loads(script)
            except json.JSONDecodeError as e:
                self.logger.debug("Skipping malformed JSON-LD block: %s", e)
                continue
            if isinstance(data, list):
                nodes.extend(node for node in data if isinstance(node, dict))
            elif isinstance(data, dict) and isinstance(data.get("@graph"), list):
                nodes.extend(node for node in data["@graph"] if isinstance(node, dict))
            elif isinstance(data, dict):
                nodes.append(data)

        found: dict[str, Any] = {}
        for node in nodes:
            node_type = node.get("@type") or ""
            if isinstance(node_type, list):
                node_type = " ".join(str(t) for t in node_type)
            if not re.search(r"Book|Product", str(node_type), re.IGNORECASE):
                continue

            if not found.get("title") and isinstance(node.get("name"), str):
                found["title"] = clean_title(node["name"])
            if not found.get("isbn"):
                for key in ("isbn", "gtin13", "sku"):
                    isbn = normalize_isbn(str(node.get(key) or ""))
                    if isbn:
                        found["isbn"] = isbn
                        break
            if not found.get("cover_image_url"):
                image = _json_ld_image(node.get("image"))
                if image and is_valid_image_url(to_absolute_url(image)):
                    found["cover_image_url"] = optimize_image_url(image, COVER_WIDTH)
            if not found.get("description") and isinstance(node.get("description"), str):
                description = collapse_lines(html_to_markdown(node["description"]), keep_blank=True)
                if description:
                    found["description"] = description[: sel.MAX_DESCRIPTION]
            if not found.get("publisher"):
                publisher = _json_ld_name(node.get("publisher") or node.get("brand"))
                if publisher:
                    found["publisher"] = clean_publisher(publisher)
            if not found.get("authors"):
                author = node.get("author")
                entries = author if isinstance(author, list) else [author]
                names = [clean_author(_json_ld_name(entry)) for entry in entries if entry]
                names = [name for name in names if name]
                if names:
                    found["authors"] = names[: sel.MAX_AUTHORS]
        return found

    # Field extractors

    def extract_isbn(self) -> str | None:
        for selector in sel.DETAIL_ISBN:
            element = self.doc.select_one(selector)
            if element is None:
                continue
            text = self.doc.text(element)
            isbn = normalize_isbn(extract_by_pattern(text, sel.ISBN_PATTERN))
            if not isbn and len(text) <= 20:
                isbn = normalize_isbn(text)
            if isbn:
                return isbn
        return normalize_isbn(extract_by_pattern(self.doc.full_text(), sel.ISBN_PATTERN))

    def extract_pages(self) -> int | None:
        def from_selectors():
            for selector in sel.DETAIL_PAGES:
                pages = extract_pages(self.doc.text(self.doc.select_one(selector)))
                if pages:
                    return pages
            return None

        def from_containers():
            for element in self.doc.select(sel.DETAIL_CONTAINERS):
                pages = extract_pages(self.doc.text(element))
                if pages:
                    return pages
            return None

        def from_labels():
            for string in self.doc.soup.find_all(string=PAGE_LABEL):
                label = string.parent
                if not isinstance(label, Tag) or label.name in ("script", "style"):
                    continue
                for element in (label, label.find_next_sibling(), label.parent):
                    pages = extract_pages(self.doc.text(element)) or _bare_number(self.doc.text(element))
                    if pages:
                        return pages
            return None

        def from_full_text():
            return extract_pages(self.doc.full_text())

        return first_success([from_selectors, from_containers, from_labels, from_full_text])

    def extract_description(self) -> str | None:
        for selector in sel.DETAIL_DESCRIPTION:
            element = self.doc.select_one(selector)
            if element is None:
                continue
            markup = self.doc.inner_html(element) or self.doc.text(element)
            text = collapse_lines(html_to_markdown(markup), keep_blank=True)
            quality = assess_text_quality(text, max_length=sel.MAX_DESCRIPTION)
            if quality.is_valid and MIN_DESCRIPTION_LENGTH <= len(text) <= sel.MAX_DESCRIPTION:
                return text
        return None

    def extract_publisher(self) -> str | None:
        for selector in sel.DETAIL_PUBLISHER:
            text = self.doc.text(self.doc.select_one(selector))
            if 1 < len(text) < 60:
                publisher = clean_publisher(text)
                if publisher:
                    return publisher
        label = extract_by_pattern(self.doc.full_text(), sel.PUBLISHER_LABEL_PATTERN)
        return clean_publisher(label) or None

    def extract_publish_date(self) -> str | None:
        for selector in sel.DETAIL_PUBLISH_DATE:
            published = normalize_date(self.doc.text(self.doc.select_one(selector)), allow_partial=False)
            if published:
                return published
        return find_full_date(self.doc.full_text())

    def extract_title(self) -> str | None:
        title = clean_title(self.text_of_first(sel.DETAIL_TITLE))
        return title or clean_title(self.doc.meta("og:title")) or None

    def extract_authors(self) -> list[str]:
        for selector in sel.DETAIL_AUTHOR:
            elements = self.doc.select(selector)
            if not elements:
                continue
            links = elements if elements[0].name == "a" else self.doc.select("a", elements[0])
            names = dict.fromkeys(clean_author(self.doc.text(link)) for link in links)
            names = [name for name in names if 0 < len(name) < sel.MAX_AUTHOR_LENGTH]
            return names[: sel.MAX_AUTHORS] or parse_authors(self.doc.text(elements[0]))
        return []

    def extract_categories(self) -> list[str]:
        categories: dict[str, None] = {}
        for element in self.doc.all_by_selectors(sel.CATEGORIES):
            for category in parse_categories(self.doc.text(element)):
                if len(category) >= 2:
                    categories.setdefault(category)
        return list(categories)[: sel.MAX_CATEGORIES]

    def extract_rating(self) -> float | None:
        for selector in sel.RATING:
            element = self.doc.select_one(selector)
            if element is None:
                continue
            rating = extract_rating(self.doc.text(element))
            if rating is not None:
                return rating
        return None

    def extract_cover_image(self) -> str | None:
        def from_portrait():
            return self.doc.image_url(self.doc.select_one(sel.PORTRAIT_IMAGE))

        def from_meta():
            for prop in sel.META_IMAGES:
                url = to_absolute_url(self.doc.meta(prop))
                if is_valid_image_url(url):
                    return url
            return None

        def from_images():
            for image in self.doc.all_by_selectors(sel.COVER_IMAGE):
                url = self.doc.image_url(image)
                if url:
                    return url
            return None

        url = first_success([from_portrait, from_meta, from_images])
        return optimize_image_url(url, COVER_WIDTH) if url else None

    # Table of contents

    def extract_table_of_contents(self) -> str | None:
        """Find the table of contents, trying the most structured sources first."""
        heading = self.find_toc_heading()

        strategies: list[Callable[[], str | None]] = []
        if heading is not None:
            strategies += [
                lambda: self._toc_from_container(self.doc.next_sibling(heading)),
                lambda: self._toc_from_container(self.doc.next_sibling(heading.parent)),
                lambda: self._toc_from_siblings(heading),
                lambda: self._toc_from_lists(heading),
            ]
        strategies += [
            self._toc_from_content_selectors,
            self._toc_from_full_text,
            self._toc_from_generic_selectors,
        ]
        return first_success(strategies)

    def find_toc_heading(self) -> Tag | None:
        for heading in self.doc.select(sel.TOC_HEADINGS):
            if "목차" in self.doc.text(heading):
                return heading
        return None

    def _accept_toc(self, raw: str | None) -> str | None:
        toc = format_table_of_contents(raw)
        return toc if len(toc) > MIN_TOC_LENGTH else None

    def _toc_from_container(self, container: Tag | None) -> str | None:
        """Specialized list items, then a content box, then the raw markup."""
        if container is None:
            return None
        items = [self.doc.inner_html(item) for item in self.doc.select(sel.TOC_ITEM, container)]
        items = [item for item in items if item.strip()]
        if items:
            toc = self._accept_toc("\n".join(items))
            if toc:
                return toc
        box = self.doc.select_one(sel.TOC_BOX, container)
        if box is not None:
            toc = self._accept_toc(self.doc.inner_html(box))
            if toc:
                return toc
        return self._accept_toc(self.doc.inner_html(container))

    def _toc_from_siblings(self, heading: Tag) -> str | None:
        parts = []
        for sibling in self.doc.next_siblings(heading, MAX_TOC_SIBLINGS):
            text = self.doc.text(sibling)
            if sibling.name in HEADING_TAGS and "목차" not in text:
                if any(keyword in text for keyword in sel.TOC_STOP_KEYWORDS):
                    break
            if sibling.name in sel.TOC_BLOCK_TAGS:
                parts.append(self.doc.inner_html(sibling) or text)
        return self._accept_toc("\n".join(parts)) if parts else None

    def _toc_from_lists(self, heading: Tag) -> str | None:
        container = self.doc.find_ancestor(
            heading, lambda el: bool(TOC_CONTAINER_NAME.search(self.doc.class_and_id(el))), max_depth=5
        )
        container = container or heading.parent
        if container is None:
            return None
        lists = self.doc.select("ul, ol", container)
        list_ids = {id(lst) for lst in lists}
        top_level = [lst for lst in lists if id(lst.find_parent(["ul", "ol"])) not in list_ids]
        parts = [self.doc.inner_html(lst) for lst in top_level]
        return self._accept_toc("\n".join(parts)) if parts else None

    def _toc_from_content_selectors(self) -> str | None:
        for selector in sel.TOC_CONTENT:
            element = self.doc.select_one(selector)
            if element is None:
                continue
            content = html_to_markdown(self.doc.inner_html(element) or self.doc.text(element))
            if MIN_TOC_LENGTH < len(content) <= sel.MAX_TOC:
                toc = self._accept_toc(content)
                if toc:
                    return toc
        return None

    def _toc_from_full_text(self) -> str | None:
        text = collapse_lines(self.doc.full_text(), keep_blank=True)
        match = sel.TOC_BODY_PATTERN.search(text)
        return self._accept_toc(match.group(1)) if match else None

    def _toc_from_generic_selectors(self) -> str | None:
        lines: dict[str, None] = {}
        for container in self.doc.all_by_selectors(sel.TOC_GENERIC):
            entries = self.doc.select("li, p", container) or [container]
            for entry in entries:
                for line in collapse_lines(html_to_markdown(self.doc.inner_html(entry))).split("\n"):
                    line = strip_bullet(line)
                    if 2 <= len(line) <= MAX_TOC_LINE:
                        lines.setdefault(line)
        return self._accept_toc("\n".join(lines)) if lines else None

    # Table of contents discovery for the service

    def inline_json_toc(self) -> str | None:
        """Table of contents embedded as JSON in an inline script."""
        decoder = json.JSONDecoder()
        for script in self.doc.scripts():
            for key in ("book_contents_list", "toc"):
                for match in re.finditer(rf'"{key}"\s*:\s*', script):
                    try:
                        value, _ = decoder.raw_decode(script, match.end())
                    except json.JSONDecodeError:
                        continue
                    if key == "book_contents_list" and not isinstance(value, list):
                        continue
                    toc = toc_from_json(value)
                    if len(toc) > 1:
                        return toc
        return None

    def discovered_toc_urls(self, base_url: str = PRODUCT_URL) -> list[str]:
        """Same-site URLs in attributes that look like table-of-contents endpoints."""
        found: dict[str, None] = {}
        for element in self.doc.soup.find_all(True):
            for name, value in element.attrs.items():
                if name not in ("href", "src") and not name.startswith("data-"):
                    continue
                if not isinstance(value, str) or not value.strip():
                    continue
                value = value.strip()
                if not value.startswith(("/", "http", "//")):
                    continue
                url = to_absolute_url(value, base_url)
                if _is_toc_endpoint(url):
                    found.setdefault(url)
        return list(found)

    def analyze_page_structure(self) -> dict:
        """Snapshot of the page layout, useful when parsing stops working."""
        detail_selectors = [".prod_detail_area", ".book_detail", ".product_detail", "#contents"]
        sections = [self.doc.text(h) for h in self.doc.select("h1, h2, h3, h4, h5, h6")]
        return {
            "page_title": self.doc.title(),
            "has_detail_content": any(self.doc.select_one(s) is not None for s in detail_selectors),
            "detail_sections": [s for s in sections if s][:10],
            "image_count": len(self.doc.select("img")),
            "link_count": len(self.doc.select("a[href]")),
            "stats": self.doc.structure(),
        }


def _json_ld_name(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        name = value.get("name")
        return name if isinstance(name, str) else ""
    return ""


def _json_ld_image(value: Any) -> str:
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        value = value.get("url") or value.get("contentUrl")
    return value if isinstance(value, str) else ""


def _bare_number(text: str) -> int | None:
    match = re.search(r"(?:쪽수|페이지)\s*[:\-]?\s*(\d{1,4})\b", text)
    if match:
        pages = int(match.group(1))
        if 0 < pages < sel.MAX_PAGES:
            return pages
    return None


def _is_toc_endpoint(url: str) -> bool:
    if not is_kyobo_url(url):
        return False
    parts = urllib.parse.urlsplit(url)
    host = (parts.hostname or "").lower()
    if host in TOC_URL_EXCLUDED_HOSTS:
        return False
    target = urllib.parse.unquote(f"{parts.path}?{parts.query}").lower()
    if STATIC_EXTENSION.search(parts.path):
        return False
    if any(word in f"{host}{target}" for word in TOC_URL_EXCLUDED_WORDS):
        return False
    return any(keyword in target for keyword in TOC_URL_KEYWORDS)


def enrich_book(book: Book, html: str, logger: logging.Logger | None = None) -> Book:
    """Merge the data of a detail page into book."""
    return BookDetailParser(html, logger).enrich_book(book)
