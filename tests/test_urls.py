"""Tests for URL helpers."""

from kyoboscout.urls import (
    build_cover_image_url,
    build_detail_url,
    build_search_url,
    build_toc_api_url,
    canonical_book_id,
    extract_book_id,
    guess_image_mime,
    is_kyobo_url,
    is_valid_image_url,
    optimize_image_url,
    select_best_image_url,
    to_absolute_url,
)


class TestBookIds:
    """Tests for book id extraction and normalization."""

    def test_detail_path_with_prefix(self):
        """Should extract the digits after /detail/S."""
        assert extract_book_id("https://product.kyobobook.co.kr/detail/S000001234567") == "000001234567"

    def test_detail_path_without_prefix(self):
        """Should accept a detail path without the S prefix."""
        assert extract_book_id("/detail/1234567") == "1234567"

    def test_query_parameter(self):
        """Should accept an id query parameter."""
        assert extract_book_id("/product/view?id=7654321&tab=1") == "7654321"

    def test_no_id(self):
        """Should return None for unrelated URLs."""
        assert extract_book_id("https://www.kyobobook.co.kr/") is None
        assert extract_book_id(None) is None

    def test_canonical_id(self):
        """Should strip the S prefix and whitespace."""
        assert canonical_book_id(" S000001234567 ") == "000001234567"
        assert canonical_book_id("1234567") == "1234567"


class TestBuilders:
    """Tests for URL builders."""

    def test_detail_url(self):
        """Should always use a single S prefix."""
        assert build_detail_url("1234567890") == "https://product.kyobobook.co.kr/detail/S1234567890"
        assert build_detail_url("S1234567890") == "https://product.kyobobook.co.kr/detail/S1234567890"

    def test_search_url(self):
        """Should encode the query and result limit."""
        url = build_search_url(" 채식주의자 ", 20)
        assert url.startswith("https://search.kyobobook.co.kr/search?keyword=%EC%B1%84")
        assert "target=total" in url
        assert "gbCode=TOT" in url
        assert url.endswith("len=20")

    def test_toc_api_url(self):
        """Should build the product TOC endpoint."""
        assert build_toc_api_url("1234567890") == "https://product.kyobobook.co.kr/api/product/S1234567890/toc"

    def test_cover_from_barcode(self):
        """Should prefer a 13 digit barcode."""
        assert (
            build_cover_image_url("9788936434595", "small")
            == "https://contents.kyobobook.co.kr/sih/fit-in/150x0/pdt/9788936434595.jpg"
        )

    def test_cover_from_product_id(self):
        """Should fall back to the product id at medium size."""
        assert (
            build_cover_image_url("S1234567890")
            == "https://contents.kyobobook.co.kr/sih/fit-in/200x0/pdt/1234567890.jpg"
        )


class TestAbsoluteUrls:
    """Tests for to_absolute_url function."""

    def test_relative_path(self):
        """Should resolve against the site root."""
        assert to_absolute_url("/detail/S1") == "https://www.kyobobook.co.kr/detail/S1"

    def test_protocol_relative(self):
        """Should add https to protocol-relative URLs."""
        assert to_absolute_url("//contents.kyobobook.co.kr/a.jpg") == "https://contents.kyobobook.co.kr/a.jpg"

    def test_custom_base(self):
        """Should resolve against a given base."""
        assert to_absolute_url("toc", "https://product.kyobobook.co.kr/api") == "https://product.kyobobook.co.kr/api/toc"


class TestImageUrls:
    """Tests for image URL validation and rewriting."""

    def test_valid_cover(self):
        """Should accept a Kyobo cover URL."""
        assert is_valid_image_url("https://contents.kyobobook.co.kr/sih/fit-in/200x0/pdt/9788936434595.jpg")

    def test_rejects_placeholders(self):
        """Should reject placeholder images."""
        assert not is_valid_image_url("https://www.kyobobook.co.kr/images/no_image.png")
        assert not is_valid_image_url("https://example.com/img/default.jpg")

    def test_rejects_relative_and_non_images(self):
        """Should reject relative paths and non-image URLs."""
        assert not is_valid_image_url("/img/cover.jpg")
        assert not is_valid_image_url("https://example.com/page.html")

    def test_optimize(self):
        """Should rewrite the fit-in size of Kyobo image URLs."""
        url = "https://contents.kyobobook.co.kr/sih/fit-in/458x0/pdt/9788936434595.jpg"
        assert optimize_image_url(url, 300) == "https://contents.kyobobook.co.kr/sih/fit-in/300x0/pdt/9788936434595.jpg"

    def test_optimize_leaves_other_hosts(self):
        """Should leave non-Kyobo URLs alone."""
        assert optimize_image_url("https://example.com/fit-in/100x0/a.jpg") == "https://example.com/fit-in/100x0/a.jpg"

    def test_select_best(self):
        """Should prefer Kyobo-hosted images."""
        urls = [
            "https://example.com/cover.jpg",
            "https://contents.kyobobook.co.kr/pdt/9788936434595.jpg",
        ]
        assert select_best_image_url(urls) == urls[1]

    def test_guess_mime(self):
        """Should use the Content-Type first, then the extension."""
        assert guess_image_mime("https://a.com/x.jpg", "image/webp; q=1") == "image/webp"
        assert guess_image_mime("https://a.com/x.png") == "image/png"
        assert guess_image_mime("https://a.com/x") == "image/jpeg"


class TestIsKyoboUrl:
    """Tests for is_kyobo_url function."""

    def test_subdomains(self):
        """Should match the site and its subdomains only."""
        assert is_kyobo_url("https://product.kyobobook.co.kr/detail/S1")
        assert not is_kyobo_url("https://kyobobook.co.kr.evil.com/")
        assert not is_kyobo_url("https://example.com/")
