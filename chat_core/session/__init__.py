"""会话层：消息构造、输入抽取、上下文组装、取消句柄池与对话编排。"""

from chat_core.session.controller_pool import ChatControllerPool, controller_pool
from chat_core.session.exchange import (
    ExchangeCallbacks,
    ExchangeState,
    retry_exchange,
    run_exchange,
    stop_exchange,
)
from chat_core.session.messages import create_empty_session, create_error_exchange, create_message

__all__ = [
    "ChatControllerPool",
    "controller_pool",
    "ExchangeCallbacks",
    "ExchangeState",
    "retry_exchange",
    "run_exchange",
    "stop_exchange",
    "create_empty_session",
    "create_error_exchange",
    "create_message",
]
