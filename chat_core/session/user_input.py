"""把用户的原始输入（文本、链接或上传文件）转换为一条用户消息。"""

from typing import Awaitable, Callable, Optional

from chat_core.domain.session import Message, URLDetailContent
from chat_core.extractors.files import FileWrap, get_detail_content_from_file
from chat_core.extractors.url import fetch_site_content, is_url
from chat_core.infrastructure.logging.logger import logger
from chat_core.session.messages import create_message

UrlFetcher = Callable[[str], Awaitable[URLDetailContent]]


def _message_from_detail(detail: URLDetailContent) -> Message:
    # 正文已经放进消息内容，元数据中不再保留
    url_detail, content = detail.split()
    return create_message(role="user", content=content, url_detail=url_detail)


async def create_text_input_message(
    content: str,
    fetcher: UrlFetcher = fetch_site_content,
) -> Message:
    if is_url(content):
        detail = await fetcher(content.strip())
        logger.info(
            "[User Input] did get url detail",
            extra={"extra": {"url": detail.url, "size": detail.size, "type": detail.type}},
        )
        return _message_from_detail(detail)
    return create_message(role="user", content=content)


async def create_file_input_message(file: FileWrap) -> Message:
    detail = await get_detail_content_from_file(file)
    logger.info(
        "[User Input] did get file upload detail",
        extra={"extra": {"filename": detail.url, "size": detail.size, "type": detail.type}},
    )
    return _message_from_detail(detail)


async def create_user_message(
    content: str,
    uploaded_file: Optional[FileWrap] = None,
    *,
    fetcher: UrlFetcher = fetch_site_content,
) -> Message:
    """上传了文件时按文件抽取，否则按链接/纯文本处理。抽取异常直接向上抛出。"""
    if uploaded_file is not None:
        return await create_file_input_message(uploaded_file)
    return await create_text_input_message(content, fetcher=fetcher)
