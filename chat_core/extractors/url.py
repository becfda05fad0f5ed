"""链接识别与网页内容抓取。"""

import html
import re

import httpx

from chat_core.config.settings import settings
from chat_core.domain.exceptions import UrlFetchError
from chat_core.domain.session import URLDetailContent
from chat_core.extractors.files import extract_pdf_text
from chat_core.infrastructure.logging.logger import logger


_URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)
_TITLE_RE = re.compile(r"(?is)<title[^>]*>(.*?)</title>")

_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; chat-core/0.1)",
    "Accept": "text/html,application/xhtml+xml,application/pdf,text/plain;q=0.9,*/*;q=0.8",
}


def is_url(text: str) -> bool:
    """整段输入（去掉首尾空白）是单个 http(s) 链接时返回 True。"""
    return bool(_URL_RE.match((text or "").strip()))


def html_to_text(raw_html: str) -> str:
    text = re.sub(r"(?is)<script[^>]*>.*?</script>", " ", raw_html)
    text = re.sub(r"(?is)<style[^>]*>.*?</style>", " ", text)
    text = re.sub(r"(?is)<!--.*?-->", " ", text)
    text = re.sub(r"(?is)<[^>]+>", " ", text)
    text = html.unescape(text)
    return re.sub(r"\s+", " ", text).strip()


def _extract_html(raw_html: str) -> str:
    body = html_to_text(raw_html)
    m = _TITLE_RE.search(raw_html)
    title = html.unescape(re.sub(r"\s+", " ", m.group(1))).strip() if m else ""
    if title and not body.startswith(title):
        return f"{title}\n\n{body}"
    return body


async def fetch_site_content(url: str) -> URLDetailContent:
    """抓取链接内容。

    根据响应的 Content-Type 选择解析方式：
    - application/pdf: 抽取 PDF 文本；
    - text/plain: 原样解码；
    - 其余按 text/html 处理，保留标题并去掉脚本、样式与标签。

    Raises:
        UrlFetchError: 网络错误、非 2xx 响应或超过大小上限。
    """
    target = url.strip()
    try:
        async with httpx.AsyncClient(
            timeout=settings.url_fetch_timeout,
            follow_redirects=True,
            headers=_HEADERS,
        ) as client:
            resp = await client.get(target)
    except httpx.RequestError as e:
        raise UrlFetchError(code="URL_FETCH_ERROR", message=f"Failed to fetch {target}: {e}", url=target)

    if resp.status_code >= 400:
        raise UrlFetchError(
            code="URL_FETCH_ERROR",
            message=f"Failed to fetch {target}: HTTP {resp.status_code}",
            http_status=resp.status_code,
            url=target,
        )

    data = resp.content
    if len(data) > settings.url_max_bytes:
        raise UrlFetchError(
            code="URL_TOO_LARGE",
            message=f"Content of {target} exceeds {settings.url_max_bytes} bytes",
            url=target,
        )

    content_type = resp.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type == "application/pdf":
        detail = URLDetailContent(url=target, size=len(data), type="application/pdf")
        detail.content = await extract_pdf_text(data, source=target)
    elif content_type == "text/plain":
        detail = URLDetailContent(url=target, size=len(data), type="text/plain", content=resp.text)
    else:
        detail = URLDetailContent(url=target, size=len(data), type="text/html", content=_extract_html(resp.text))

    logger.info(
        "Fetched site content",
        extra={"extra": {"url": target, "size": detail.size, "type": detail.type}},
    )
    return detail
