"""对外 API 服务模块。

提供使用默认后端与进程级句柄池的简化函数接口，供上层应用调用。
"""

from pathlib import Path
from typing import Callable, List, Optional, Union

from chat_core.domain.session import Message, Session
from chat_core.extractors.files import FileWrap
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers import create_provider
from chat_core.providers.base import ChatBackend
from chat_core.session.controller_pool import controller_pool
from chat_core.session.exchange import ExchangeCallbacks, retry_exchange, run_exchange


_api: Optional[ChatBackend] = None


def get_default_api() -> ChatBackend:
    """获取默认的模型后端实例（单例）。"""
    global _api
    if _api is None:
        _api = create_provider()
        logger.info("Created default provider", extra={"extra": {"provider": _api.name}})
    return _api


async def send_message(
    session: Session,
    content: str,
    on_update_messages: Callable[[List[Message]], None],
    upload: Optional[Union[str, Path, FileWrap]] = None,
) -> Optional[Message]:
    """发送一条消息并等待回复结束。

    Args:
        session: 会话
        content: 用户输入
        on_update_messages: 会话消息变化时的回调
        upload: 上传文件的路径或 FileWrap（可选）

    Returns:
        最终的助手消息（失败时为带错误信息的助手消息）
    """
    uploaded_file = upload
    if upload is not None and not isinstance(upload, FileWrap):
        uploaded_file = FileWrap.from_path(upload)
    return await run_exchange(
        session,
        content,
        ExchangeCallbacks(on_update_messages=on_update_messages),
        uploaded_file,
        api=get_default_api(),
        pool=controller_pool,
    )


async def resend_message(
    session: Session,
    bot_message_id: str,
    on_update_messages: Callable[[List[Message]], None],
) -> Optional[Message]:
    return await retry_exchange(
        session,
        bot_message_id,
        ExchangeCallbacks(on_update_messages=on_update_messages),
        api=get_default_api(),
        pool=controller_pool,
    )


def stop_message(session_id: str, message_id: str) -> bool:
    return controller_pool.stop(session_id, message_id)


def stop_all_messages() -> None:
    controller_pool.stop_all()


def has_pending_messages() -> bool:
    return controller_pool.has_pending()
