"""Chat Core 顶层包。

该包协调用户与大模型之间的单次对话：把文本、链接或上传文件转换为
消息，组装上下文，消费模型的流式回复并写回会话，同时支持对进行中的
对话进行停止与重试。
"""

from chat_core.domain.bot import Bot, ModelConfig, create_empty_bot
from chat_core.domain.models import ChatMessage
from chat_core.domain.session import Message, Session, URLDetail
from chat_core.session import (
    ExchangeCallbacks,
    controller_pool,
    create_empty_session,
    create_message,
    retry_exchange,
    run_exchange,
    stop_exchange,
)

__all__ = [
    "Bot",
    "ModelConfig",
    "create_empty_bot",
    "ChatMessage",
    "Message",
    "Session",
    "URLDetail",
    "ExchangeCallbacks",
    "controller_pool",
    "create_empty_session",
    "create_message",
    "retry_exchange",
    "run_exchange",
    "stop_exchange",
]
