"""Tests for the search result parser."""

import pytest

from kyoboscout.errors import ParseError
from kyoboscout.parsers import SearchResultParser, parse_books


class TestMinimalListing:
    """A bare listing item with only a title link."""

    def test_parses_single_book(self, minimal_listing):
        """Should build a record from the title link alone."""
        books = parse_books(minimal_listing)
        assert len(books) == 1
        book = books[0]
        assert book.id == "1234567890"
        assert book.title == "소크라테스의 변명"
        assert book.authors == ["저자미상"]
        assert book.publisher == ""
        assert book.detail_page_url == "https://product.kyobobook.co.kr/detail/S1234567890"

    def test_cover_falls_back_to_product_id(self, minimal_listing):
        """Should derive a cover URL when the item has no image."""
        book = parse_books(minimal_listing)[0]
        assert book.cover_image_url == "https://contents.kyobobook.co.kr/sih/fit-in/200x0/pdt/1234567890.jpg"

    def test_strategy_recorded(self, minimal_listing):
        """Should report which discovery stage found the item."""
        result = SearchResultParser(minimal_listing).parse()
        assert result.metrics.strategy == "relaxed:.prod_list .prod_item"
        assert result.metrics.successful_items == 1


class TestSearchPage:
    """Tests against a realistic search result page."""

    def test_excludes_packages_and_hidden_items(self, search_page):
        """Should skip set/package items and hidden items."""
        books = parse_books(search_page)
        assert [book.title for book in books] == ["채식주의자", "소년이 온다"]
        assert all("세트" not in book.title for book in books)

    def test_fields(self, search_page):
        """Should extract every listing field."""
        book = parse_books(search_page)[0]
        assert book.id == "000001234567"
        assert book.authors == ["한강"]
        assert book.publisher == "창비"
        assert book.publish_date == "2022-03-28"
        assert book.isbn == "9788936434595"
        assert book.cover_image_url == "https://contents.kyobobook.co.kr/sih/fit-in/150x0/pdt/9788936434595.jpg"

    def test_cleans_title_and_publisher(self, search_page):
        """Should strip the title tag and the corporate marker."""
        book = parse_books(search_page)[1]
        assert book.title == "소년이 온다"
        assert book.publisher == "창비"
        assert book.cover_image_url == "https://contents.kyobobook.co.kr/sih/fit-in/200x0/pdt/9788936434120.jpg"
        assert book.isbn is None

    def test_max_results(self, search_page):
        """Should stop after max_results books."""
        assert len(parse_books(search_page, max_results=1)) == 1

    def test_metrics(self, search_page):
        """Should count candidate items and successes."""
        metrics = SearchResultParser(search_page).parse().metrics
        assert metrics.total_items == 2
        assert metrics.successful_items == 2
        assert metrics.failed_items == 0
        assert metrics.strategy == ".prod_list .prod_item"

    def test_idempotent(self, search_page):
        """Should produce identical records on repeated parses."""
        assert parse_books(search_page) == parse_books(search_page)

    def test_record_invariants(self, search_page):
        """Should only produce records that satisfy the field constraints."""
        for book in parse_books(search_page):
            assert book.title
            assert book.isbn is None or len(book.isbn) in (10, 13)
            assert book.rating is None or 0 <= book.rating <= 10
            assert book.pages is None or book.pages > 0

    def test_analyze_structure(self, search_page):
        """Should summarize the page layout."""
        info = SearchResultParser(search_page).analyze_structure()
        assert info["page_title"] == "채식주의자 검색결과 | 교보문고"
        assert info["detail_links"] >= 4


class TestEmptyPages:
    """Tests for pages without results."""

    def test_no_results_page(self, no_results_page):
        """Should return an empty list for an explicit no-results page."""
        assert parse_books(no_results_page) == []

    def test_unrecognized_page(self):
        """Should raise ParseError when nothing looks like a listing."""
        with pytest.raises(ParseError) as exc_info:
            parse_books("<html><body><p>점검 중입니다</p></body></html>")
        assert exc_info.value.source == "SearchResultParser"

    def test_package_only_page(self):
        """Should never return package items, even as a last resort."""
        html = """
        <ul class="prod_list">
          <li class="prod_item"><a href="/detail/S1111111">세계문학 전집 100권 묶음</a></li>
          <li class="prod_item"><a href="/detail/S2222222">삼국지 세트</a></li>
        </ul>
        """
        with pytest.raises(ParseError):
            parse_books(html)

    def test_items_without_id_are_skipped(self):
        """Should skip items whose links carry no book id."""
        html = """
        <ul class="prod_list">
          <li class="prod_item"><a href="/detail/event">이벤트 상세 보기 안내</a></li>
          <li class="prod_item"><a href="/detail/S3333333">데미안 헤르만 헤세 민음사</a></li>
        </ul>
        """
        result = SearchResultParser(html).parse()
        assert [book.id for book in result.books] == ["3333333"]
        assert result.metrics.skipped_items == 1


class TestItemIsolation:
    """Tests for per-item error handling."""

    def test_failing_item_is_counted_and_skipped(self, search_page):
        """Should record a failing item and keep parsing the rest of the batch."""

        class BrokenFirstItem(SearchResultParser):
            def parse_item(self, item):
                book = super().parse_item(item)
                if book is not None and book.title == "채식주의자":
                    raise ValueError("broken markup")
                return book

        result = BrokenFirstItem(search_page).parse()
        assert [book.title for book in result.books] == ["소년이 온다"]
        assert result.metrics.failed_items == 1
        assert result.metrics.successful_items == 1
        assert result.metrics.errors == ["Item 1: broken markup"]


class TestAriaListing:
    """Tests for listings marked up with ARIA roles."""

    def test_role_list_items(self):
        """Should find items of a role=list container."""
        html = """
        <html><body><main>
          <div role="list">
            <div role="listitem"><a href="/detail/S4444444">어린 왕자 생텍쥐페리 열린책들</a></div>
          </div>
        </main></body></html>
        """
        result = SearchResultParser(html).parse()
        assert [book.id for book in result.books] == ["4444444"]
        assert result.metrics.strategy == 'main [role="list"] > [role="listitem"]'
