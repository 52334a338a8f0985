"""Book search and detail orchestration."""

import asyncio
import json
import logging
import re
import time
from dataclasses import replace
from typing import TypeVar

from kyoboscout.cache import BookCache, MemoryCache
from kyoboscout.client import KyoboClient
from kyoboscout.config import Settings
from kyoboscout.errors import CacheError, KyoboError, ParseError, ValidationError
from kyoboscout.log import get_logger
from kyoboscout.models import UNKNOWN_TITLE, Book, BookDetailResult, DetailParseResults, SearchResult
from kyoboscout.parsers import BookDetailParser, SearchResultParser, format_table_of_contents
from kyoboscout.parsers.detail import toc_from_json
from kyoboscout.urls import build_detail_url, build_search_url, build_toc_api_url, canonical_book_id

T = TypeVar("T")

MIN_QUERY_LENGTH = 2
MAX_QUERY_LENGTH = 100
MAX_DISCOVERED_TOC_URLS = 4
MAX_FRAGMENT_LINE = 300


def toc_from_response(body: str) -> str | None:
    """Read a table of contents from an endpoint response.

    JSON arrays and objects are tried first, then the body is treated as an
    HTML fragment with one entry per line.
    """
    text = body.strip()
    if not text:
        return None
    if text.startswith(("{", "[")):
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            data = None
        if data is not None:
            toc = toc_from_json(data)
            if toc:
                return toc

    fragment = re.sub(r"<br\s*/?>", "\n", text, flags=re.IGNORECASE)
    fragment = re.sub(r"</(?:li|p)>", "\n", fragment, flags=re.IGNORECASE)
    fragment = re.sub(r"<[^>]+>", "", fragment)
    lines = [line.strip() for line in re.split(r"\n+", fragment.replace("\r", "\n"))]
    lines = [line for line in lines if 1 < len(line) < MAX_FRAGMENT_LINE]
    if len(lines) < 2:
        return None
    return format_table_of_contents("\n".join(lines)) or None


class BookService:
    """Searches kyobobook.co.kr and fetches detail pages, with caching.

    Args:
        client: HTTP client used for every request.
        settings: Defaults for limits, timeouts and cache sizes.
        book_cache: Cache of enriched detail records.
        search_cache: Cache of search results.
        logger: Logger; defaults to ``kyoboscout.service``.
    """

    def __init__(
        self,
        client: KyoboClient,
        settings: Settings | None = None,
        book_cache: BookCache | None = None,
        search_cache: MemoryCache[SearchResult] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.settings = settings or Settings()
        self.logger = logger or get_logger("service")
        if book_cache is None:
            book_cache = BookCache(
                max_size=self.settings.book_cache_size,
                ttl=self.settings.book_cache_ttl,
                sweep_interval=self.settings.cache_sweep_interval,
            )
        if search_cache is None:
            search_cache = MemoryCache(
                max_size=self.settings.search_cache_size,
                ttl=self.settings.search_cache_ttl,
                sweep_interval=self.settings.cache_sweep_interval,
            )
        self.book_cache = book_cache
        self.search_cache = search_cache

    def validate_query(self, query: str | None) -> str:
        """Return the trimmed query.

        Raises:
            ValidationError: If the query is empty, too short or too long.
        """
        trimmed = (query or "").strip()
        if not trimmed:
            raise ValidationError("검색어가 비어있습니다", field="query", value=query)
        if len(trimmed) < MIN_QUERY_LENGTH:
            raise ValidationError("검색어는 2글자 이상이어야 합니다", field="query", value=query)
        if len(trimmed) > MAX_QUERY_LENGTH:
            raise ValidationError("검색어는 100글자를 초과할 수 없습니다", field="query", value=query)
        return trimmed

    # Cache access never fails a request

    def _cache_get(self, cache: MemoryCache[T], key: str) -> T | None:
        try:
            return cache.get(key)
        except Exception as e:
            error = CacheError(f"Cache read failed: {e}", operation="get", context={"key": key}, cause=e)
            self.logger.warning("%s", error, extra={"payload": error.to_dict()})
            return None

    def _cache_set(self, cache: MemoryCache[T], key: str, value: T) -> None:
        try:
            cache.set(key, value)
        except Exception as e:
            error = CacheError(f"Cache write failed: {e}", operation="set", context={"key": key}, cause=e)
            self.logger.warning("%s", error, extra={"payload": error.to_dict()})

    async def search_books(
        self,
        query: str,
        max_results: int | None = None,
        enable_detail_fetch: bool | None = None,
        cache_results: bool = True,
        timeout: float | None = None,
    ) -> SearchResult:
        """Search for books, optionally enriching each result from its detail page.

        Raises:
            ValidationError: If the query is invalid.
            NetworkError: If the search page cannot be fetched.
            ParseError: If the page cannot be parsed.
        """
        started = time.perf_counter()
        query = self.validate_query(query)
        max_results = max_results or self.settings.max_results
        if enable_detail_fetch is None:
            enable_detail_fetch = self.settings.enable_detail_fetch

        key = BookCache.search_key(query, max_results, enable_detail_fetch)
        if cache_results:
            cached = self._cache_get(self.search_cache, key)
            if cached is not None:
                self.logger.debug("Search cache hit for %r", query)
                return replace(cached, search_time=time.perf_counter() - started, from_cache=True)

        self.logger.debug("Searching for %r (max %d)", query, max_results)
        try:
            html = await self.client.get(build_search_url(query, max_results), timeout=timeout)
            parsed = SearchResultParser(html).parse(max_results)
            books = parsed.books
            if enable_detail_fetch and books:
                books = await self.enrich_books(books, timeout=timeout)
        except KyoboError as e:
            self.logger.error("Search for %r failed: %s", query, e)
            raise
        except Exception as e:
            self.logger.error("Search for %r failed: %s", query, e)
            raise ParseError(
                "도서 검색 중 오류가 발생했습니다",
                source="BookService",
                context={"query": query},
                cause=e,
            ) from e

        metrics = parsed.metrics
        processed = metrics.successful_items + metrics.failed_items + metrics.skipped_items
        result = SearchResult(
            books=books,
            total_found=metrics.total_items,
            search_time=time.perf_counter() - started,
            query=query,
            has_more=processed < metrics.total_items,
            metrics=parsed.metrics,
        )
        if cache_results:
            self._cache_set(self.search_cache, key, result)

        self.logger.info("Found %d books for %r in %.2fs", len(books), query, result.search_time)
        return result

    async def get_book_detail(
        self,
        book_id: str,
        timeout: float | None = None,
        toc_api_first: bool | None = None,
        base: Book | None = None,
    ) -> BookDetailResult:
        """Fetch and parse the detail page of one book.

        A cached record is only served if it carries detail data; listing-only
        records are refetched.

        Args:
            book_id: Product id, with or without the "S" prefix.
            timeout: Per-request timeout in seconds.
            toc_api_first: Query table-of-contents endpoints even when the
                page itself has one.
            base: Listing record to enrich instead of an empty one.

        Raises:
            ValidationError: If book_id is empty.
            NetworkError: If the detail page cannot be fetched.
            ParseError: If the page cannot be merged into a record.
        """
        started = time.perf_counter()
        book_id = canonical_book_id(book_id)
        if not book_id:
            raise ValidationError("도서 ID가 비어있습니다", field="book_id", value=book_id)
        if toc_api_first is None:
            toc_api_first = self.settings.toc_api_first

        key = BookCache.detail_key(book_id)
        cached = self._cache_get(self.book_cache, key)
        if cached is not None:
            if cached.has_enrichment:
                self.logger.debug("Detail cache hit for %s", book_id)
                return BookDetailResult(
                    book=cached,
                    parse_results=DetailParseResults.from_cache(),
                    fetch_time=time.perf_counter() - started,
                    from_cache=True,
                )
            self.logger.debug("Ignoring listing-only cache entry for %s", book_id)

        detail_url = build_detail_url(book_id)
        try:
            html = await self.client.get(detail_url, timeout=timeout)
            if base is None:
                base = Book.create(id=book_id, title=UNKNOWN_TITLE, detail_page_url=detail_url)
            elif not base.detail_page_url:
                base = base.update(detail_page_url=detail_url)

            parser = BookDetailParser(html)
            parsed = parser.parse(base)
            book = parsed.book
            if toc_api_first or not book.table_of_contents:
                toc = await self.fetch_table_of_contents(parser, book_id, detail_url, timeout)
                if toc:
                    book = book.update(table_of_contents=toc)
                    parsed.results.table_of_contents = True
        except KyoboError as e:
            self.logger.error("Detail fetch for %s failed: %s", book_id, e)
            raise
        except Exception as e:
            self.logger.error("Detail fetch for %s failed: %s", book_id, e)
            raise ParseError(
                "도서 상세 정보 조회 중 오류가 발생했습니다",
                source="BookService",
                book_id=book_id,
                cause=e,
            ) from e

        self._cache_set(self.book_cache, key, book)
        result = BookDetailResult(
            book=book,
            parse_results=parsed.results,
            fetch_time=time.perf_counter() - started,
        )
        self.logger.info("Fetched details for %s (%s) in %.2fs", book_id, book.title, result.fetch_time)
        return result

    async def fetch_table_of_contents(
        self,
        parser: BookDetailParser,
        book_id: str,
        detail_url: str,
        timeout: float | None = None,
    ) -> str | None:
        """Best-effort table of contents from inline JSON or site endpoints.

        Tries inline JSON, then up to four endpoints found in the page, then
        the product TOC API. Failures are logged and skipped.
        """
        try:
            toc = parser.inline_json_toc()
            if toc:
                return toc
            urls = parser.discovered_toc_urls()[:MAX_DISCOVERED_TOC_URLS]
        except Exception as e:
            self.logger.debug("Table of contents discovery failed for %s: %s", book_id, e)
            urls = []

        for url in urls:
            toc = await self._fetch_toc(url, timeout, headers={"Referer": detail_url})
            if toc:
                return toc

        return await self._fetch_toc(build_toc_api_url(book_id), timeout)

    async def _fetch_toc(self, url: str, timeout: float | None, headers: dict[str, str] | None = None) -> str | None:
        try:
            body = await self.client.get(url, timeout=timeout, headers=headers, retries=1)
            return toc_from_response(body)
        except KyoboError as e:
            self.logger.debug("No table of contents from %s: %s", url, e)
        except Exception as e:
            self.logger.debug("Unreadable table of contents from %s: %s", url, e)
        return None

    async def enrich_book(
        self,
        book: Book,
        timeout: float | None = None,
        toc_api_first: bool | None = None,
    ) -> BookDetailResult:
        """Enrich a listing record from its detail page."""
        return await self.get_book_detail(book.id, timeout=timeout, toc_api_first=toc_api_first, base=book)

    async def enrich_books(self, books: list[Book], timeout: float | None = None) -> list[Book]:
        """Enrich books concurrently, keeping order.

        A book whose detail page fails is returned unchanged.
        """
        semaphore = asyncio.Semaphore(self.settings.detail_concurrency)

        async def enrich(book: Book) -> Book:
            async with semaphore:
                try:
                    return (await self.enrich_book(book, timeout=timeout)).book
                except KyoboError as e:
                    self.logger.warning("Keeping listing data for %s: %s", book.id, e)
                    return book

        return list(await asyncio.gather(*(enrich(book) for book in books)))

    async def fetch_image_as_data_url(self, url: str, timeout: float | None = None) -> str | None:
        """Download an image as a ``data:`` URL, or None if it cannot be fetched."""
        if not url:
            return None
        try:
            return await self.client.get_data_url(url, timeout=timeout)
        except Exception as e:
            self.logger.warning("Could not embed image %s: %s", url, e)
            return None

    def cache_stats(self) -> dict:
        return {
            "search": self.search_cache.stats().to_dict(),
            "book": self.book_cache.stats().to_dict(),
        }

    def clear_cache(self) -> None:
        self.search_cache.clear()
        self.book_cache.clear()
        self.logger.info("Caches cleared")
