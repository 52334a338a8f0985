"""Selector-based querying over a parsed HTML document."""

import re
from collections.abc import Callable, Iterable

from bs4 import BeautifulSoup, Tag

from kyoboscout.text import clean
from kyoboscout.urls import is_valid_image_url, to_absolute_url

BACKGROUND_IMAGE = re.compile(r"background(?:-image)?\s*:\s*url\((['\"]?)(.*?)\1\)", re.IGNORECASE)

HIDDEN_STYLES = [
    re.compile(r"display\s*:\s*none", re.IGNORECASE),
    re.compile(r"visibility\s*:\s*hidden", re.IGNORECASE),
    re.compile(r"opacity\s*:\s*0(?:\.0+)?\s*(?:;|$)", re.IGNORECASE),
]


def _srcset_last(srcset: str | None) -> str | None:
    """Return the URL of the last (usually largest) srcset candidate."""
    if not srcset:
        return None
    candidates = [part.strip() for part in srcset.split(",") if part.strip()]
    if not candidates:
        return None
    return candidates[-1].split()[0]


class HtmlDocument:
    """A parsed HTML page with the handful of queries the parsers need."""

    def __init__(self, html: str) -> None:
        self.html = html or ""
        self.soup = BeautifulSoup(self.html, "lxml")

    def select(self, selector: str, root: Tag | None = None) -> list[Tag]:
        return list((root or self.soup).select(selector))

    def select_one(self, selector: str, root: Tag | None = None) -> Tag | None:
        return (root or self.soup).select_one(selector)

    def first_by_selectors(self, selectors: Iterable[str], root: Tag | None = None) -> Tag | None:
        """Return the first element matched by the first selector that matches."""
        for selector in selectors:
            element = self.select_one(selector, root)
            if element is not None:
                return element
        return None

    def all_by_selectors(self, selectors: Iterable[str], root: Tag | None = None) -> list[Tag]:
        """Return every element matched by any selector, without duplicates."""
        found: list[Tag] = []
        seen: set[int] = set()
        for selector in selectors:
            for element in self.select(selector, root):
                if id(element) not in seen:
                    seen.add(id(element))
                    found.append(element)
        return found

    @staticmethod
    def text(element: Tag | None) -> str:
        """Whitespace-collapsed text content of an element."""
        if element is None:
            return ""
        return clean(element.get_text(" "))

    @staticmethod
    def raw_text(element: Tag | None) -> str:
        """Text content with the original line breaks kept."""
        if element is None:
            return ""
        return element.get_text()

    @staticmethod
    def inner_html(element: Tag | None) -> str:
        if element is None:
            return ""
        return element.decode_contents()

    @staticmethod
    def attr(element: Tag | None, name: str) -> str:
        if element is None:
            return ""
        value = element.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return (value or "").strip()

    def meta(self, prop: str) -> str:
        """Content of ``<meta property=...>`` or ``<meta name=...>``."""
        element = self.soup.find("meta", attrs={"property": prop}) or self.soup.find(
            "meta", attrs={"name": prop}
        )
        return self.attr(element, "content")

    def title(self) -> str:
        return self.text(self.soup.title)

    def full_text(self) -> str:
        """Body text with line breaks kept and scripts and styles left out."""
        body = self.soup.body or self.soup
        parts = []
        for string in body.find_all(string=True):
            if string.parent is not None and string.parent.name in ("script", "style", "noscript", "template"):
                continue
            parts.append(str(string))
        return "".join(parts)

    def scripts(self, script_type: str | None = None) -> list[str]:
        """Text of script elements, optionally filtered by their type attribute."""
        found = []
        for script in self.soup.find_all("script"):
            if script_type and self.attr(script, "type").lower() != script_type:
                continue
            found.append(script.string or script.get_text() or "")
        return found

    def image_url(self, element: Tag | None) -> str:
        """Best image URL for an img/source element, or its background style."""
        if element is None:
            return ""
        if element.name in ("img", "source"):
            candidates = [
                self.attr(element, "src"),
                self.attr(element, "data-src"),
                self.attr(element, "data-original"),
                self.attr(element, "data-lazy"),
                _srcset_last(self.attr(element, "srcset")),
                _srcset_last(self.attr(element, "data-srcset")),
            ]
            for candidate in candidates:
                if candidate:
                    url = to_absolute_url(candidate)
                    if is_valid_image_url(url):
                        return url
        match = BACKGROUND_IMAGE.search(self.attr(element, "style"))
        if match and match.group(2):
            url = to_absolute_url(match.group(2))
            if is_valid_image_url(url):
                return url
        return ""

    def link_url(self, element: Tag | None, base_url: str | None = None) -> str:
        href = self.attr(element, "href")
        if not href or href.startswith(("javascript:", "#")):
            return ""
        return to_absolute_url(href, base_url) if base_url else to_absolute_url(href)

    @staticmethod
    def find_ancestor(element: Tag, predicate: Callable[[Tag], bool], max_depth: int = 10) -> Tag | None:
        """Walk up to max_depth parents and return the first matching one."""
        current = element.parent
        depth = 0
        while isinstance(current, Tag) and current.name != "[document]" and depth < max_depth:
            if predicate(current):
                return current
            current = current.parent
            depth += 1
        return None

    @staticmethod
    def next_siblings(element: Tag, limit: int | None = None) -> list[Tag]:
        """Following sibling elements (text nodes skipped)."""
        siblings = []
        for sibling in element.find_next_siblings():
            siblings.append(sibling)
            if limit and len(siblings) >= limit:
                break
        return siblings

    @staticmethod
    def next_sibling(element: Tag | None) -> Tag | None:
        if element is None:
            return None
        return element.find_next_sibling()

    @staticmethod
    def is_visible(element: Tag) -> bool:
        """Check inline styles and the hidden attribute on the element and its parents."""
        node = element
        while isinstance(node, Tag) and node.name != "[document]":
            if node.has_attr("hidden"):
                return False
            style = node.get("style") or ""
            if any(pattern.search(style) for pattern in HIDDEN_STYLES):
                return False
            node = node.parent
        return True

    @staticmethod
    def class_and_id(element: Tag) -> str:
        classes = element.get("class") or []
        return " ".join([*classes, element.get("id") or ""]).strip()

    def structure(self) -> dict:
        """Element counts, handy when a page layout changes."""
        return {
            "total_elements": len(self.soup.find_all(True)),
            "text_elements": len(self.select("p, div, span, h1, h2, h3, h4, h5, h6")),
            "link_elements": len(self.select("a[href]")),
            "image_elements": len(self.select("img[src]")),
            "html_length": len(self.html),
        }
