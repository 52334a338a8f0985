"""URL helpers for kyobobook.co.kr."""

import re
import urllib.parse

from kyoboscout.selectors import BOOK_ID_PATTERNS, INVALID_IMAGE_PATTERNS

BASE_URL = "https://www.kyobobook.co.kr"
SEARCH_URL = "https://search.kyobobook.co.kr/search"
PRODUCT_URL = "https://product.kyobobook.co.kr"
COVER_URL = "https://contents.kyobobook.co.kr/sih/fit-in/{size}/pdt/{code}.jpg"

KYOBO_DOMAINS = ("kyobobook.co.kr",)
KYOBO_IMAGE_DOMAINS = ("contents.kyobobook.co.kr", "image.kyobobook.co.kr")

COVER_SIZES = {
    "small": "150x0",
    "medium": "200x0",
    "large": "300x0",
}

IMAGE_EXTENSION = re.compile(r"\.(jpe?g|png|gif|webp)(\?|$)", re.IGNORECASE)
FIT_IN = re.compile(r"fit-in/\d+x\d+")

IMAGE_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


def extract_book_id(url: str | None) -> str | None:
    """Extract the numeric book id from a detail page URL.

    Handles "/detail/S000001234567", "/detail/1234567" and "?id=1234567".
    """
    if not url:
        return None
    decoded = urllib.parse.unquote(url)
    for pattern in BOOK_ID_PATTERNS:
        match = pattern.search(decoded)
        if match:
            return match.group(1)
    return None


def canonical_book_id(book_id: str | None) -> str:
    """Strip whitespace and a leading "S" product prefix from an id."""
    if not book_id:
        return ""
    book_id = book_id.strip()
    if re.fullmatch(r"[Ss]\d+", book_id):
        return book_id[1:]
    return book_id


def to_absolute_url(url: str | None, base_url: str = BASE_URL) -> str:
    """Resolve a possibly relative or protocol-relative URL."""
    if not url:
        return ""
    url = url.strip()
    if url.startswith(("http://", "https://")):
        return url
    if url.startswith("//"):
        return f"https:{url}"
    return urllib.parse.urljoin(base_url.rstrip("/") + "/", url)


def build_detail_url(book_id: str) -> str:
    """Build the product detail page URL for a book id."""
    book_id = canonical_book_id(book_id)
    if not book_id:
        return ""
    return f"{PRODUCT_URL}/detail/S{book_id}"


def build_search_url(query: str, max_results: int | None = None) -> str:
    """Build the search page URL for a query."""
    params = {"keyword": query.strip(), "target": "total", "gbCode": "TOT"}
    if max_results:
        params["len"] = str(max_results)
    return f"{SEARCH_URL}?{urllib.parse.urlencode(params)}"


def build_toc_api_url(book_id: str) -> str:
    """Build the table-of-contents API URL for a book id."""
    return f"{PRODUCT_URL}/api/product/S{canonical_book_id(book_id)}/toc"


def build_cover_image_url(code: str | None, size: str = "medium") -> str:
    """Build a deterministic cover image URL from a barcode (ISBN) or book id.

    A 12-13 digit barcode is preferred; anything else is used as a product id.
    """
    if not code:
        return ""
    code = canonical_book_id(code)
    digits = re.sub(r"[^0-9Xx]", "", code)
    target = digits if re.fullmatch(r"\d{12,13}", digits) else code
    return COVER_URL.format(size=COVER_SIZES.get(size, COVER_SIZES["medium"]), code=target)


def _hostname(url: str) -> str:
    if url.startswith("//"):
        url = f"https:{url}"
    try:
        return (urllib.parse.urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def _host_matches(host: str, domains) -> bool:
    return any(host == domain or host.endswith(f".{domain}") for domain in domains)


def is_kyobo_url(url: str | None) -> bool:
    """Check if a URL points at a kyobobook.co.kr host."""
    if not url:
        return False
    return _host_matches(_hostname(url), KYOBO_DOMAINS)


def is_kyobo_image_url(url: str | None) -> bool:
    """Check if a URL points at one of the site's image hosts."""
    if not url:
        return False
    return _host_matches(_hostname(url), KYOBO_IMAGE_DOMAINS)


def is_valid_image_url(url: str | None) -> bool:
    """Heuristically decide whether a URL is a real cover image.

    Requires an absolute (or protocol-relative) URL with an image extension
    or a Kyobo image host, and rejects placeholder-looking URLs.
    """
    if not url or len(url) < 10:
        return False
    if not url.startswith(("http", "//")):
        return False
    if not IMAGE_EXTENSION.search(url) and not is_kyobo_image_url(url):
        return False
    return not any(pattern.search(url) for pattern in INVALID_IMAGE_PATTERNS)


def optimize_image_url(url: str | None, width: int = 300, height: int = 0) -> str:
    """Ask the Kyobo image proxy for a specific size by rewriting ``fit-in/WxH``."""
    if not url:
        return ""
    url = to_absolute_url(url)
    if "contents.kyobobook.co.kr" in url and FIT_IN.search(url):
        return FIT_IN.sub(f"fit-in/{width}x{height}", url)
    return url


def select_best_image_url(urls) -> str:
    """Pick the first valid image URL, preferring Kyobo-hosted ones."""
    valid = [url for url in urls if is_valid_image_url(url)]
    for url in valid:
        if is_kyobo_image_url(url):
            return url
    return valid[0] if valid else ""


def guess_image_mime(url: str, content_type: str | None = None) -> str:
    """Guess an image MIME type from a Content-Type header or the URL extension."""
    if content_type:
        mime = content_type.split(";")[0].strip().lower()
        if mime.startswith("image/"):
            return mime
    match = IMAGE_EXTENSION.search(url or "")
    if match:
        return IMAGE_MIME_TYPES[match.group(1).lower()]
    return "image/jpeg"
