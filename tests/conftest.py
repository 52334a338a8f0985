"""Pytest configuration and fixtures."""

import pytest

from kyoboscout.client import HttpResponse, KyoboClient

SEARCH_PAGE = """
<html>
<head><title>채식주의자 검색결과 | 교보문고</title></head>
<body>
<div id="shopData_list">
  <ul class="prod_list">
    <li class="prod_item">
      <div class="prod_area">
        <img data-kbbfn="s3-image" data-kbbfn-bid="9788936434595" data-kbbfn-pid="S000001234567" data-kbbfn-size="150x0">
        <a class="prod_info" href="https://product.kyobobook.co.kr/detail/S000001234567">
          <span class="prod_name">채식주의자</span>
        </a>
        <div class="prod_author_info"><span class="author"><a href="#">한강</a> 저</span></div>
        <span class="prod_publisher">창비</span>
        <span class="date">2022년 03월 28일</span>
      </div>
    </li>
    <li class="prod_item">
      <div class="prod_area">
        <a class="prod_info" href="https://product.kyobobook.co.kr/detail/S000009999999">
          <span class="prod_name">해리 포터 세트 (전7권)</span>
        </a>
        <div class="prod_author_info"><span class="author"><a href="#">J.K. 롤링</a> 저</span></div>
      </div>
    </li>
    <li class="prod_item" style="display: none">
      <div class="prod_area">
        <a class="prod_info" href="https://product.kyobobook.co.kr/detail/S000008888888">
          <span class="prod_name">숨겨진 광고 상품입니다</span>
        </a>
      </div>
    </li>
    <li class="prod_item">
      <div class="prod_area">
        <a class="prod_info" href="https://product.kyobobook.co.kr/detail/S000000610574">
          <span class="prod_name">[국내도서] 소년이 온다</span>
        </a>
        <div class="prod_author_info"><span class="author"><a href="#">한강</a> 저</span></div>
        <span class="prod_publisher">(주)창비</span>
        <img src="https://contents.kyobobook.co.kr/sih/fit-in/200x0/pdt/9788936434120.jpg" alt="표지">
      </div>
    </li>
  </ul>
</div>
</body>
</html>
"""

MINIMAL_LISTING = """
<div class="prod_list">
  <div class="prod_item"><a href="/detail/S1234567890">소크라테스의 변명</a></div>
</div>
"""

NO_RESULTS_PAGE = """
<html><body><div class="search_wrap"><p>검색결과가 없습니다.</p></div></body></html>
"""

DETAIL_PAGE = """
<html>
<head>
<title>소크라테스의 변명 | 교보문고</title>
<meta property="og:title" content="소크라테스의 변명 - 교보문고">
</head>
<body>
<div id="contents">
  <div class="breadcrumb"><a href="/">홈</a><a href="/c/1">국내도서</a><a href="/c/2">인문</a><a href="/c/3">철학</a></div>
  <div class="prod_title_area"><h1><span class="prod_title">소크라테스의 변명</span></h1></div>
  <div class="prod_author_box">
    <div class="author"><a href="/person/1">플라톤</a> 저 · <a href="/person/2">강철웅</a> 역</div>
  </div>
  <div class="prod_info_text publish_date"><a class="btn_publish_link" href="/publisher/1">아카넷</a> · 2020년 05월 10일</div>
  <div class="portrait_img_box">
    <img src="https://contents.kyobobook.co.kr/sih/fit-in/458x0/pdt/9791112345673.jpg" alt="소크라테스의 변명 표지">
  </div>
  <div class="prod_review"><span class="rating">4.5점</span></div>
  <ul class="basic_info">
    <li><span class="isbn">ISBN: 979-11-1234-567-3</span></li>
    <li><span class="page">232쪽</span></li>
  </ul>
  <div class="prod_detail_desc">
    <p>아테네 법정에서 소크라테스가 행한 변론을 기록한 플라톤의 초기 대화편이다.</p>
    <p>철학이 무엇인지 묻는 모든 이를 위한 출발점.</p>
  </div>
  <div class="product_detail_area book_contents">
    <div class="title_wrap"><h2 class="title_heading">목차</h2></div>
    <div class="auto_overflow_wrap">
      <div class="auto_overflow_contents">
        <ul class="book_contents_list">
          <li class="book_contents_item">1장 서론<br>1.1 배경<br>1.2 목적</li>
          <li class="book_contents_item">2장 변론<br>2.1 고발</li>
        </ul>
      </div>
    </div>
  </div>
</div>
</body>
</html>
"""

# A detail page without a table of contents of its own
DETAIL_PAGE_WITHOUT_TOC = """
<html>
<body>
<div id="contents">
  <h1><span class="prod_title">국가</span></h1>
  <span class="isbn">ISBN 9788932473901</span>
  <div class="prod_detail_desc"><p>정의란 무엇인가를 묻는 플라톤의 대표적인 대화편입니다.</p></div>
</div>
</body>
</html>
"""

JSON_LD_PAGE = """
<html>
<head>
<script type="application/ld+json">
{
  "@context": "https://schema.org",
  "@type": "Book",
  "name": "흰",
  "isbn": "978-89-546-4309-6",
  "author": [{"@type": "Person", "name": "한강"}],
  "publisher": {"@type": "Organization", "name": "문학동네"},
  "image": "https://contents.kyobobook.co.kr/sih/fit-in/458x0/pdt/9788954643096.jpg",
  "description": "<p>흰 것에 대한 65편의 짧은 글로 이루어진 소설.</p>"
}
</script>
</head>
<body>
  <span class="isbn">ISBN 9780000000002</span>
</body>
</html>
"""


class FakeTransport:
    """Transport that replays canned responses per URL and records requests.

    Each URL maps to a list of outcomes consumed in order; the last outcome
    repeats. An outcome is an HttpResponse, an exception instance, or a
    (status, body) tuple. Unknown URLs answer 404.
    """

    def __init__(self, routes=None):
        self.routes = {url: list(outcomes) for url, outcomes in (routes or {}).items()}
        self.requests = []

    def add(self, url, *outcomes):
        self.routes[url] = list(outcomes)

    def calls(self, url):
        return [request for request in self.requests if request["url"] == url]

    async def fetch(self, url, *, headers, timeout):
        self.requests.append({"url": url, "headers": dict(headers), "timeout": timeout})
        outcomes = self.routes.get(url)
        if not outcomes:
            return HttpResponse(status=404, body=b"not found", url=url)
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, tuple):
            status, body = outcome
            if isinstance(body, str):
                body = body.encode("utf-8")
            return HttpResponse(status=status, body=body, headers={"Content-Type": "text/html; charset=utf-8"}, url=url)
        return outcome


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordedSleep:
    """Async sleep replacement that records the requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return RecordedSleep()


@pytest.fixture
def client(transport, sleeps):
    """Client with no request spacing and recorded backoff sleeps."""
    return KyoboClient(transport, timeout=5, retries=3, min_request_interval=0, sleep=sleeps)


@pytest.fixture
def search_page():
    return SEARCH_PAGE


@pytest.fixture
def minimal_listing():
    return MINIMAL_LISTING


@pytest.fixture
def no_results_page():
    return NO_RESULTS_PAGE


@pytest.fixture
def detail_page():
    return DETAIL_PAGE


@pytest.fixture
def detail_page_without_toc():
    return DETAIL_PAGE_WITHOUT_TOC


@pytest.fixture
def json_ld_page():
    return JSON_LD_PAGE
