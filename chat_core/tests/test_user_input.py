import io

import pytest
from pypdf import PdfWriter

from chat_core.domain.exceptions import FileParseError, UnsupportedFileTypeError
from chat_core.domain.session import URLDetail, URLDetailContent
from chat_core.extractors.files import FileWrap
from chat_core.session.user_input import create_user_message


async def _no_fetch(url):
    raise AssertionError("fetcher should not be called")


def _blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=72, height=72)
    buf = io.BytesIO()
    writer.write(buf)
    return buf.getvalue()


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["hello", "  spaced  ", "see https://example.com for details", ""])
async def test_plain_text_is_kept_verbatim(text):
    msg = await create_user_message(text, fetcher=_no_fetch)
    assert msg.role == "user"
    assert msg.content == text
    assert msg.url_detail is None


@pytest.mark.asyncio
async def test_url_input_moves_body_into_content():
    calls = []

    async def fetcher(url):
        calls.append(url)
        return URLDetailContent(url=url, size=120, type="text/html", content="ARTICLE BODY")

    msg = await create_user_message("https://example.com/article", fetcher=fetcher)
    assert calls == ["https://example.com/article"]
    assert msg.content == "ARTICLE BODY"
    assert type(msg.url_detail) is URLDetail
    assert msg.url_detail == URLDetail(url="https://example.com/article", size=120, type="text/html")
    assert not hasattr(msg.url_detail, "content")


@pytest.mark.asyncio
async def test_fetch_failure_propagates():
    async def fetcher(url):
        raise RuntimeError("network down")

    with pytest.raises(RuntimeError):
        await create_user_message("https://example.com", fetcher=fetcher)


@pytest.mark.asyncio
async def test_text_file_upload():
    upload = FileWrap(name="notes.TXT", data="line one\nline two".encode("utf-8"))
    msg = await create_user_message("ignored", upload, fetcher=_no_fetch)
    assert msg.content == "line one\nline two"
    assert msg.url_detail == URLDetail(url="notes.TXT", size=upload.size, type="text/plain")


@pytest.mark.asyncio
async def test_unsupported_file_type():
    upload = FileWrap(name="slides.pptx", data=b"\x00\x01")
    with pytest.raises(UnsupportedFileTypeError) as exc:
        await create_user_message("ignored", upload, fetcher=_no_fetch)
    assert exc.value.message == "Not supported file type"
    assert exc.value.code == "UNSUPPORTED_FILE_TYPE"


@pytest.mark.asyncio
async def test_pdf_without_text_fails():
    upload = FileWrap(name="scan.pdf", data=_blank_pdf())
    with pytest.raises(FileParseError):
        await create_user_message("ignored", upload, fetcher=_no_fetch)


@pytest.mark.asyncio
async def test_corrupt_pdf_fails():
    upload = FileWrap(name="broken.pdf", data=b"not a pdf at all")
    with pytest.raises(FileParseError):
        await create_user_message("ignored", upload, fetcher=_no_fetch)
