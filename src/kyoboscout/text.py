"""Text normalization helpers for scraped bookstore content."""

import html
import re
from datetime import date

from kyoboscout.selectors import (
    EXCLUDED_CATEGORIES,
    FULL_DATE_PATTERN,
    MAX_AUTHOR_LENGTH,
    MAX_AUTHORS,
    MAX_CATEGORIES,
    MAX_PAGES,
    RATING_PATTERN,
)

AUTHOR_SEPARATORS = re.compile(r"[,;|·・]")
CATEGORY_SEPARATORS = re.compile(r"[>»›]")

# Role words that follow (or precede) an author's name, e.g. "한강 저", "홍길동 옮김"
AUTHOR_ROLE = re.compile(
    r"(?:^|\s)(?:저|편|역|그림|지음|옮김|감수|글|저자|번역|역자|엮음|편저|공저)(?=\s|$)"
)

PAGE_PATTERNS = [
    re.compile(r"(\d{1,4})\s*페이지"),
    re.compile(r"쪽수\s*[:\-]?\s*(\d{1,4})"),
    re.compile(r"(\d{1,4})\s*쪽"),
    re.compile(r"\bp\.\s*(\d{1,4})\b", re.IGNORECASE),
    re.compile(r"\b(\d{1,4})\s*p\b", re.IGNORECASE),
]

PARTIAL_DATE_PATTERNS = [
    re.compile(r"(\d{4})\s*[년/\-.]\s*(\d{1,2})"),
    re.compile(r"(\d{4})"),
]


def clean(text: str | None) -> str:
    """Collapse all whitespace runs to single spaces and trim."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def clean_title(title: str | None) -> str:
    """Clean a book title, removing bookstore metadata.

    Handles things like:
    - "[국내도서] 채식주의자"
    - "채식주의자 (국내배송)"
    - "채식주의자 | 교보문고"
    """
    text = clean(title)
    if not text:
        return ""
    text = re.sub(r"^\[[^\]]*\]\s*", "", text)
    text = re.sub(r"\([^)]*배송[^)]*\)\s*", "", text)
    text = re.sub(r"\s*[|\-]\s*교보문고\s*$", "", text)
    text = re.sub(r"^\s*-\s*", "", text)
    text = re.sub(r"\s*-\s*$", "", text)
    return text.strip()


def clean_author(author: str | None) -> str:
    """Clean one author name, dropping parenthesized notes and role words."""
    text = clean(author)
    if not text:
        return ""
    text = re.sub(r"\s*\([^)]*\)\s*", " ", text)
    text = AUTHOR_ROLE.sub(" ", text)
    return clean(text)


def parse_authors(authors: str | None) -> list[str]:
    """Split an author string on common separators into at most five names."""
    if not authors:
        return []
    names = []
    for part in AUTHOR_SEPARATORS.split(authors):
        name = clean_author(part)
        if 0 < len(name) < MAX_AUTHOR_LENGTH and name not in names:
            names.append(name)
    return names[:MAX_AUTHORS]


def clean_publisher(publisher: str | None) -> str:
    """Clean a publisher name, stripping corporate suffixes."""
    text = clean(publisher)
    if not text:
        return ""
    text = re.sub(r"^\s*(?:㈜|\(주\)|주식회사)\s*", "", text)
    text = re.sub(r"\s*(?:출판사|출판|주식회사|㈜|\(주\))\s*$", "", text)
    return text.strip()


def is_valid_category(category: str) -> bool:
    return 0 < len(category) < 50 and category not in EXCLUDED_CATEGORIES


def parse_categories(categories: str | None) -> list[str]:
    """Split a breadcrumb string ("국내도서 > 소설 > 한국소설") into categories."""
    if not categories:
        return []
    parts = [clean(part) for part in CATEGORY_SEPARATORS.split(categories)]
    unique = dict.fromkeys(part for part in parts if is_valid_category(part))
    return list(unique)[:MAX_CATEGORIES]


def strip_html(markup: str | None) -> str:
    """Remove tags and decode entities."""
    if not markup:
        return ""
    text = re.sub(r"<[^>]+>", "", markup)
    text = html.unescape(text).replace("\xa0", " ")
    return text.strip()


def extract_pages(text: str | None) -> int | None:
    """Extract a page count such as "344쪽", "쪽수 344" or "p. 344".

    Only values in (0, 5000) are accepted.
    """
    if not text:
        return None
    for pattern in PAGE_PATTERNS:
        match = pattern.search(text)
        if match:
            pages = int(match.group(1))
            if 0 < pages < MAX_PAGES:
                return pages
    return None


def extract_rating(text: str | None) -> float | None:
    """Extract a rating normalized to a 10-point scale.

    The site shows both 5-point and 10-point ratings without saying which,
    so values of 5 or less are taken to be on the 5-point scale and doubled.
    """
    if not text:
        return None
    match = RATING_PATTERN.search(text)
    if not match:
        return None
    try:
        rating = float(match.group(1))
    except ValueError:
        return None
    if rating <= 5:
        return round(rating * 2, 2)
    return rating if rating <= 10 else None


def _format_date(year: str, month: str = "1", day: str = "1") -> str | None:
    try:
        return date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        return None


def find_full_date(text: str | None) -> str | None:
    """Find the first complete ``YYYY년 MM월 DD일``-style date in text."""
    if not text:
        return None
    for match in FULL_DATE_PATTERN.finditer(text):
        formatted = _format_date(*match.groups())
        if formatted:
            return formatted
    return None


def normalize_date(text: str | None, allow_partial: bool = True) -> str | None:
    """Normalize a date string to ``YYYY-MM-DD``.

    Accepts "2024년 3월 5일", "2024-03-05", "2024.3.5" and "2024/03/05".
    With ``allow_partial`` a bare "2024.03" or "2024" falls back to the first
    day of the month or year.
    """
    full = find_full_date(text)
    if full or not allow_partial or not text:
        return full
    for pattern in PARTIAL_DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            formatted = _format_date(*match.groups())
            if formatted:
                return formatted
    return None


def normalize_isbn(isbn: str | None) -> str | None:
    """Keep digits and X; accept only ISBN-10 or ISBN-13 lengths."""
    if not isbn:
        return None
    cleaned = re.sub(r"[^0-9Xx]", "", isbn).upper()
    if len(cleaned) in (10, 13):
        return cleaned
    return None


def truncate(text: str, max_length: int, suffix: str = "...") -> str:
    """Shorten text to max_length characters, marking the cut with suffix."""
    if not text or len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)].rstrip() + suffix


def contains_any(text: str | None, keywords) -> bool:
    """Check if any keyword occurs in text."""
    if not text:
        return False
    return any(keyword in text for keyword in keywords)


def has_letter(text: str) -> bool:
    """Check for at least one Latin or Hangul letter."""
    return re.search(r"[A-Za-z가-힣]", text) is not None


def special_char_ratio(text: str) -> float:
    """Fraction of characters that are neither word characters, Hangul nor whitespace."""
    if not text:
        return 0.0
    specials = re.findall(r"[^\w\s가-힣]", text)
    return len(specials) / len(text)
