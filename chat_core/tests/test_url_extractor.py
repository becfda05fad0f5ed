import httpx
import pytest

from chat_core.domain.exceptions import UrlFetchError
from chat_core.extractors.url import fetch_site_content, html_to_text, is_url


@pytest.mark.parametrize(
    "text,expected",
    [
        ("https://example.com", True),
        ("  http://example.com/a?b=1  ", True),
        ("example.com", False),
        ("see https://example.com", False),
        ("https://exa mple.com", False),
        ("", False),
    ],
)
def test_is_url(text, expected):
    assert is_url(text) is expected


def test_html_to_text_strips_markup():
    raw = "<html><head><style>p{}</style><script>x()</script></head><body><p>A &amp; B</p><!-- c --></body></html>"
    assert html_to_text(raw) == "A & B"


def _fake_client(response):
    class Client:
        def __init__(self, *a, **kw):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def get(self, url):
            if isinstance(response, Exception):
                raise response
            return response

    return Client


@pytest.mark.asyncio
async def test_fetch_html(monkeypatch):
    body = "<html><head><title>My Page</title></head><body><h1>Hello</h1> world</body></html>"
    resp = httpx.Response(200, headers={"content-type": "text/html; charset=utf-8"}, content=body.encode())
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(resp))
    detail = await fetch_site_content("https://example.com")
    assert detail.url == "https://example.com"
    assert detail.type == "text/html"
    assert detail.size == len(body.encode())
    assert detail.content == "My Page Hello world"


@pytest.mark.asyncio
async def test_fetch_plain_text(monkeypatch):
    resp = httpx.Response(200, headers={"content-type": "text/plain"}, content=b"just text")
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(resp))
    detail = await fetch_site_content("https://example.com/a.txt")
    assert detail.type == "text/plain"
    assert detail.content == "just text"


@pytest.mark.asyncio
async def test_fetch_http_error(monkeypatch):
    resp = httpx.Response(404, content=b"missing")
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(resp))
    with pytest.raises(UrlFetchError) as exc:
        await fetch_site_content("https://example.com/missing")
    assert exc.value.http_status == 404


@pytest.mark.asyncio
async def test_fetch_network_error(monkeypatch):
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(httpx.ConnectError("refused")))
    with pytest.raises(UrlFetchError):
        await fetch_site_content("https://example.com")
