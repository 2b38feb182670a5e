import httpx
import pytest

from helpmate.services.scraper_service import ScraperError, ScraperService, extract_text
from helpmate.services.session_store import ExpiringStore

PAGE = """
<html>
  <head><title> Mug Shop | FAQ </title><style>body { color: red; }</style></head>
  <body>
    <nav>Home | Shop | Cart</nav>
    <h1>Shipping</h1>
    <p>We ship   worldwide.</p>
    <script>trackVisitor();</script>
  </body>
</html>
"""


def make_service(handler):
    return ScraperService(
        cache=ExpiringStore(ttl_seconds=3600),
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


def test_extract_text_strips_scripts_and_chrome():
    page = extract_text(PAGE)
    assert page.title == "Mug Shop | FAQ"
    assert page.text == "Shipping We ship worldwide."


@pytest.mark.asyncio
async def test_fetch_page_caches_result():
    calls = []

    def handler(request):
        calls.append(str(request.url))
        return httpx.Response(200, text=PAGE, headers={"content-type": "text/html"})

    service = make_service(handler)
    first = await service.fetch_page("https://shop.com/faq")
    second = await service.fetch_page("https://shop.com/faq")

    assert first.text == "Shipping We ship worldwide."
    assert second is first
    assert calls == ["https://shop.com/faq"]


@pytest.mark.asyncio
async def test_fetch_page_rejects_errors_and_binary_content():
    def handler(request):
        if request.url.path == "/missing":
            return httpx.Response(404)
        return httpx.Response(200, content=b"%PDF", headers={"content-type": "application/pdf"})

    service = make_service(handler)
    with pytest.raises(ScraperError):
        await service.fetch_page("https://shop.com/missing")
    with pytest.raises(ScraperError):
        await service.fetch_page("https://shop.com/manual.pdf")


@pytest.mark.asyncio
async def test_fetch_pages_skips_failures():
    def handler(request):
        if request.url.path == "/down":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, text=PAGE, headers={"content-type": "text/html; charset=utf-8"})

    service = make_service(handler)
    pages = await service.fetch_pages(["https://shop.com/faq", "https://shop.com/down"])

    assert list(pages) == ["https://shop.com/faq"]
