"""Data models for KyoboScout."""

import re
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone

from kyoboscout.selectors import MAX_CATEGORIES, MAX_DESCRIPTION, MAX_TITLE, MAX_TOC
from kyoboscout.text import clean, normalize_isbn
from kyoboscout.urls import canonical_book_id

UNKNOWN_AUTHOR = "저자미상"
UNKNOWN_TITLE = "제목미상"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _clean_block(text: str | None) -> str | None:
    """Trim a multi-line field, collapsing whitespace inside each line only.

    Leading indentation is kept so nested table of contents entries survive.
    """
    if not text:
        return None
    lines = []
    for line in text.split("\n"):
        body = line.strip()
        if not body:
            lines.append("")
            continue
        indent = line[: len(line) - len(line.lstrip())].replace("\t", "  ")
        lines.append(indent + re.sub(r"\s+", " ", body))
    cleaned = "\n".join(lines).strip("\n")
    return cleaned or None


def _clean_list(values, limit: int | None = None, unique: bool = False) -> list[str]:
    items = [clean(value) for value in values or [] if value]
    items = [item for item in items if item]
    if unique:
        items = list(dict.fromkeys(items))
    return items[:limit] if limit else items


@dataclass(frozen=True)
class Book:
    """A book record built from a search listing and optionally a detail page.

    Use ``Book.create`` rather than the constructor so that every field is
    normalized, and ``book.update`` to merge new information.
    """

    id: str
    title: str
    authors: list[str] = field(default_factory=list)
    publisher: str = ""
    subtitle: str | None = None
    publish_date: str | None = None  # ISO YYYY-MM-DD
    isbn: str | None = None
    pages: int | None = None
    language: str = "ko"
    description: str | None = None
    table_of_contents: str | None = None
    categories: list[str] = field(default_factory=list)
    rating: float | None = None  # 0-10 scale
    cover_image_url: str | None = None
    detail_page_url: str | None = None
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now, compare=False)
    updated_at: datetime = field(default_factory=_now, compare=False)

    @classmethod
    def create(cls, id: str, title: str, now: datetime | None = None, **values) -> "Book":
        """Create a normalized Book.

        Raises:
            ValueError: If id or title is empty after normalization.
        """
        timestamp = now or _now()
        normalized = _normalize({"id": id, "title": title, **values})
        return cls(**normalized, created_at=timestamp, updated_at=timestamp)

    def update(self, now: datetime | None = None, **changes) -> "Book":
        """Return a copy with the given fields replaced.

        Fields passed as None are left untouched; updated_at is always
        refreshed.
        """
        known = {f.name for f in fields(self)} - {"created_at", "updated_at"}
        unknown = set(changes) - known
        if unknown:
            raise TypeError(f"Unknown Book fields: {', '.join(sorted(unknown))}")

        merged = {name: getattr(self, name) for name in known}
        merged.update({key: value for key, value in changes.items() if value is not None})
        normalized = _normalize(merged)
        return replace(self, **normalized, updated_at=now or _now())

    @property
    def has_enrichment(self) -> bool:
        """True when the record carries detail-page data, not just listing data."""
        return bool(
            (self.description and self.description.strip())
            or (self.table_of_contents and self.table_of_contents.strip())
            or (self.isbn and len(self.isbn) >= 10)
            or (self.pages and self.pages > 0)
        )

    @property
    def display_authors(self) -> list[str]:
        return self.authors or [UNKNOWN_AUTHOR]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        return data


def _normalize(values: dict) -> dict:
    book_id = canonical_book_id(values.get("id"))
    title = clean(values.get("title"))[:MAX_TITLE]
    if not book_id:
        raise ValueError("Book id must not be empty")
    if not title:
        raise ValueError("Book title must not be empty")

    normalized = dict(values)
    normalized["id"] = book_id
    normalized["title"] = title
    normalized["authors"] = _clean_list(values.get("authors"))
    normalized["publisher"] = clean(values.get("publisher"))
    normalized["subtitle"] = clean(values.get("subtitle")) or None
    normalized["publish_date"] = clean(values.get("publish_date")) or None
    normalized["isbn"] = normalize_isbn(values.get("isbn"))
    normalized["language"] = clean(values.get("language")) or "ko"
    normalized["categories"] = _clean_list(values.get("categories"), MAX_CATEGORIES, unique=True)
    normalized["tags"] = _clean_list(values.get("tags"), unique=True)
    normalized["cover_image_url"] = clean(values.get("cover_image_url")) or None
    normalized["detail_page_url"] = clean(values.get("detail_page_url")) or None

    description = _clean_block(values.get("description"))
    normalized["description"] = description[:MAX_DESCRIPTION] if description else None
    toc = _clean_block(values.get("table_of_contents"))
    normalized["table_of_contents"] = toc[:MAX_TOC] if toc else None

    pages = values.get("pages")
    normalized["pages"] = int(pages) if isinstance(pages, (int, float)) and pages > 0 else None

    rating = values.get("rating")
    if isinstance(rating, (int, float)) and 0 <= rating <= 10:
        normalized["rating"] = float(rating)
    else:
        normalized["rating"] = None
    return normalized


@dataclass
class SearchParseMetrics:
    """What happened while parsing one search result page."""

    total_items: int = 0
    successful_items: int = 0
    failed_items: int = 0
    skipped_items: int = 0
    strategy: str | None = None
    parse_time: float = 0.0
    errors: list[str] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        if not self.total_items:
            return 0.0
        return self.successful_items / self.total_items * 100

    def to_dict(self) -> dict:
        data = asdict(self)
        data["success_rate"] = self.success_rate
        return data


@dataclass
class DetailParseResults:
    """Which detail page fields were found, plus swallowed extractor errors."""

    isbn: bool = False
    pages: bool = False
    description: bool = False
    table_of_contents: bool = False
    categories: bool = False
    rating: bool = False
    cover_image: bool = False
    publisher: bool = False
    publish_date: bool = False
    errors: list[str] = field(default_factory=list)

    FIELDS = (
        "isbn",
        "pages",
        "description",
        "table_of_contents",
        "categories",
        "rating",
        "cover_image",
        "publisher",
        "publish_date",
    )

    @property
    def total_fields(self) -> int:
        return len(self.FIELDS)

    @property
    def successful_fields(self) -> int:
        return sum(1 for name in self.FIELDS if getattr(self, name))

    @property
    def success_rate(self) -> float:
        return self.successful_fields / self.total_fields * 100

    @classmethod
    def from_cache(cls) -> "DetailParseResults":
        """Results reported for a detail record served from the cache."""
        return cls(**{name: True for name in cls.FIELDS})

    def to_dict(self) -> dict:
        data = asdict(self)
        data["success_rate"] = self.success_rate
        return data


@dataclass
class SearchResult:
    """Result of a search, possibly enriched with detail pages."""

    books: list[Book]
    total_found: int
    search_time: float
    query: str
    has_more: bool
    metrics: SearchParseMetrics
    from_cache: bool = False


@dataclass
class BookDetailResult:
    """Result of fetching a single detail page."""

    book: Book
    parse_results: DetailParseResults
    fetch_time: float
    from_cache: bool = False
