"""CSS selectors, patterns and keyword lists for kyobobook.co.kr pages.

Selector lists are ordered from most to least specific. The site's markup
changes often, so most concerns carry several generations of selectors.
"""

import re

# Search result page

SEARCH_RESULT_ITEMS = [
    # Current listing markup
    ".prod_list .prod_item",
    ".search_list .prod_item",
    ".result_list .prod_item",
    ".list_search_result .prod_item",
    # ARIA list markup
    'main [role="list"] > [role="listitem"]',
    '[role="list"] > [role="listitem"]',
    # Generic product items
    ".prod_item",
    ".product_item",
    ".book_item",
    ".search_item",
    ".result_item",
    # Container scoped items
    "#shopData_list .prod_list .prod_item",
    ".contents_wrap .prod_item",
    ".search_result_wrap .prod_item",
    ".list_search_result .item",
    ".search_result .item",
    ".contents_wrap .item",
    ".list_type_1 .item",
    ".prod_list_type .item",
    # Class substring fallbacks
    'div[class*="prod_item"]',
    'div[class*="book_item"]',
    'div[class*="product_item"]',
    'div[class*="item"]',
    "li.item",
    "li.prod_item",
    "li.product_item",
    "li.book_item",
    # Table layouts
    "tr.prod_item",
    "tbody tr",
    ".search_table tr",
    ".table_list tr",
    # Test ids
    '[data-testid*="product"]',
    '[data-testid*="book"]',
    '[class*="search_result"]',
]

BOOK_DETAIL_LINKS = [
    'a[href*="/detail/S"]',
    'a[href*="product.kyobobook.co.kr/detail"]',
    'a[href*="kyobobook.co.kr/detail"]',
    'a[href*="/detail/"]',
    'a[href*="product"]',
]

TITLE = [
    "#contents h1 span.prod_title",
    ".prod_title",
    ".prod_name",
    ".book_title",
    "h1.title",
    "h2.title",
    ".title",
]

AUTHOR = [
    "#contents .author",
    ".author",
    ".prod_author",
    ".book_author",
    ".author_info",
    ".writer",
]

PUBLISHER = [
    ".prod_info_text.publish_date a",
    ".prod_publisher",
    ".publisher",
    ".book_publisher",
    ".company_info",
    "a.btn_publish_link",
    ".publish_info",
]

COVER_IMAGE = [
    'img[src*="contents.kyobobook.co.kr"]',
    'img[src*="image.kyobobook.co.kr"]',
    'img[src*="pdt"]',
    'img[data-kbbfn="s3-image"]',
    ".portrait_img_box img",
    'img[alt*="표지"]',
    'img[alt*="커버"]',
    'img[alt*="cover"]',
    ".prod_img img",
    ".book_img img",
    ".product_img img",
    ".cover_img img",
]

LAZY_COVER = 'img[data-kbbfn="s3-image"], [data-kbbfn-bid], [data-kbbfn-pid]'

NO_RESULTS = [".no_result", ".no_data", ".result_none", ".search_no_result"]
NO_RESULTS_TEXT = ["검색결과가 없습니다", "검색 결과가 없습니다"]

PRODUCT_CONTAINER_KEYWORDS = [
    "prod",
    "product",
    "book",
    "item",
    "result",
    "search",
    "list",
    "card",
    "box",
    "wrap",
    "container",
]

# Detail page

DETAIL_ISBN = [
    '[data-testid="isbn"]',
    ".isbn",
    ".prod_detail_isbn",
    ".book_isbn",
    ".prod_detail_area .auto_overflow_contents",
]

DETAIL_PAGES = [
    '[data-testid="page"]',
    ".page",
    ".prod_detail_page",
    ".book_page",
]

DETAIL_CONTAINERS = ".prod_detail_area, .book_detail, .prod_info_detail"

DETAIL_DESCRIPTION = [
    ".prod_detail_desc",
    ".book_description",
    ".prod_intro",
    ".book_intro",
    ".description",
    ".intro",
    "#contents .auto_overflow_contents",
    "#infoset_introduce .box_detail_content",
    ".box_detail_article .txt_wrap",
    '.prod_detail_area [data-kbb-action="intro"]',
]

DETAIL_PUBLISHER = [
    ".prod_publisher a",
    ".book_publisher a",
    ".publisher a",
    ".prod_info_text.publish_date a",
    "#infoset_publish .box_detail_content a",
    "a.btn_publish_link",
]

DETAIL_PUBLISH_DATE = [
    ".prod_info_text.publish_date",
    ".publish_date",
    ".prod_date",
    ".book_date",
    '[data-testid="publish-date"]',
]

DETAIL_TITLE = TITLE

DETAIL_AUTHOR = [
    ".prod_author_box .author a",
    ".prod_author_box .author",
] + AUTHOR

CATEGORIES = [
    ".prod_category",
    ".book_category",
    ".breadcrumb a",
    ".category_path a",
    ".prod_path a",
    ".location_list a",
]

RATING = [
    ".rating",
    ".prod_rating",
    ".book_rating",
    ".score",
    ".prod_grade .grade_num",
    ".rating_num",
]

PORTRAIT_IMAGE = ".portrait_img_box img"

META_IMAGES = ["og:image", "twitter:image"]

TOC_HEADINGS = "h1, h2, h3, h4, h5, h6, .title_heading, .tit_detail, .title_wrap .title"
TOC_ITEM = ".book_contents_item"
TOC_BOX = ".box_detail_content, .auto_overflow_contents, .txt_wrap"

TOC_CONTENT = [
    ".toc_content",
    ".contents_text",
    ".book_toc",
    ".table_contents",
    ".contents_area",
    "#toc_content",
    "#infoset_toc .box_detail_content",
    '.prod_detail_area [data-kbb-action="toc"]',
]

TOC_GENERIC = [
    ".toc_list",
    ".toc",
    '[id*="toc"]',
    '[class*="toc"]',
    '[class*="contents_list"]',
]

TOC_BLOCK_TAGS = ["p", "div", "ul", "ol", "li", "pre", "dl", "table"]

# Headings that start a section other than the table of contents
TOC_STOP_KEYWORDS = ["저자", "출판", "책소개", "리뷰", "추천", "소개"]

# Patterns

BOOK_ID_PATTERNS = [
    re.compile(r"/detail/S(\d{6,})"),
    re.compile(r"/detail/(\d{6,})"),
    re.compile(r"[?&]id=(\d{6,})"),
]

ISBN_PATTERN = re.compile(r"ISBN[:\s]*([0-9\-X]{10,17})", re.IGNORECASE)
RATING_PATTERN = re.compile(r"(\d+\.?\d*)\s*점?")
FULL_DATE_PATTERN = re.compile(r"(\d{4})\s*[년/\-.]\s*(\d{1,2})\s*[월/\-.]\s*(\d{1,2})\s*일?")
PUBLISHER_LABEL_PATTERN = re.compile(r"출판사\s*[:\-]?\s*([^\n|·,]{2,40})")
TOC_BODY_PATTERN = re.compile(r"목차\s*\n([\s\S]{50,5000}?)(?:\n\n|저자|출판|ISBN|리뷰|소개)")

INVALID_IMAGE_PATTERNS = [
    re.compile(r"no[_-]?image", re.IGNORECASE),
    re.compile(r"placeholder", re.IGNORECASE),
    re.compile(r"default", re.IGNORECASE),
    re.compile(r"blank", re.IGNORECASE),
    re.compile(r"1x1"),
    re.compile(r"loading", re.IGNORECASE),
    re.compile(r"error", re.IGNORECASE),
]

# Keywords

PACKAGE_KEYWORDS = ["패키지", "세트", "전집", "시리즈", "묶음"]
EXCLUDED_CATEGORIES = {"홈", "전체", "도서"}
INVALID_TITLES = {
    "종이책",
    "전자책",
    "ebook",
    "e북",
    "세트",
    "전집",
    "패키지",
    "원서/번역서",
    "원서",
    "번역서",
}

# Limits

MAX_TITLE = 200
MAX_AUTHOR_LENGTH = 50
MAX_DESCRIPTION = 5000
MAX_TOC = 10000
MAX_AUTHORS = 5
MAX_CATEGORIES = 10
MAX_SEARCH_RESULTS = 50
MAX_PAGES = 5000
MIN_ITEM_TEXT = 10
