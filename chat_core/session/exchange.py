"""对话编排核心模块。

一次 exchange 指“用户输入 → 助手回复”的完整过程：

1. 构造用户消息（可能需要抓取链接或解析文件）；失败时直接在会话中追加
   一对错误消息并返回，不调用模型。
2. 追加用户消息与流式占位回复，组装上下文后调用模型后端。
3. 消费后端的事件流：登记取消句柄、刷新占位回复、完成时用后端返回的
   消息替换占位的两条消息、失败时把错误写入占位回复。

会话的消息列表只由本模块修改，每次修改后都会用一个新的列表对象通知
调用方，便于 UI 层检测变化。
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol
from uuid import uuid4

from chat_core.domain.models import ChatMessage, ChatRequest
from chat_core.domain.session import ExchangeInput, Message, Session
from chat_core.extractors.files import FileWrap
from chat_core.extractors.url import fetch_site_content, is_url
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import (
    ChatBackend,
    ChatController,
    ControllerReady,
    StreamFailed,
    StreamFinished,
    StreamUpdate,
)
from chat_core.session.context import build_outgoing_history, transform_user_message_for_sending
from chat_core.session.controller_pool import ChatControllerPool, MessageKey, controller_pool
from chat_core.session.messages import create_error_exchange, create_message, message_from
from chat_core.session.user_input import UrlFetcher, create_user_message
from chat_core.utils.format import pretty_object


class ExchangeState(str, Enum):
    IDLE = "idle"
    COMPOSING = "composing"
    AWAITING_USER = "awaiting_user"
    SENDING = "sending"
    STREAMING = "streaming"
    FINISHED = "finished"
    FAILED = "failed"


TERMINAL_STATES = frozenset({ExchangeState.FINISHED, ExchangeState.FAILED})


class UpdateCallbacks(Protocol):
    def on_update_messages(self, messages: List[Message]) -> None:
        ...


@dataclass
class ExchangeCallbacks:
    on_update_messages: Callable[[List[Message]], None]


def is_abort_error(error: BaseException) -> bool:
    return "aborted" in _error_text(error)


def _error_text(error: BaseException) -> str:
    return getattr(error, "message", None) or str(error) or type(error).__name__


class ChatExchange:
    """单次对话的状态机，一个实例只运行一次。"""

    def __init__(
        self,
        session: Session,
        callbacks: UpdateCallbacks,
        api: ChatBackend,
        pool: ChatControllerPool,
        fetcher: UrlFetcher = fetch_site_content,
    ):
        self._session = session
        self._callbacks = callbacks
        self._api = api
        self._pool = pool
        self._fetcher = fetcher
        self.state = ExchangeState.IDLE
        self.user_message: Optional[Message] = None
        self.saved_user_message: Optional[Message] = None
        self.bot_message: Optional[Message] = None
        self._message_key: Optional[MessageKey] = None
        self._result: Optional[Message] = None
        self.exchange_id = f"ex-{uuid4().hex}"
        self._log_ctx: Dict[str, Any] = {
            "session_id": session.id,
            "exchange_id": self.exchange_id,
        }

    async def run(self, content: str, uploaded_file: Optional[FileWrap] = None) -> Optional[Message]:
        self.state = ExchangeState.COMPOSING
        # 保留原始输入（含上传的文件），重试时据此重新构造用户消息
        self._session.exchange_inputs[self.exchange_id] = ExchangeInput(content, uploaded_file)
        try:
            if uploaded_file is not None or is_url(content):
                self.state = ExchangeState.AWAITING_USER
            user_message = await create_user_message(content, uploaded_file, fetcher=self._fetcher)
        except Exception as error:
            # 构造用户消息失败：把错误作为助手消息展示，不调用模型
            user_message, bot_message = create_error_exchange(content, error)
            user_message.exchange_id = bot_message.exchange_id = self.exchange_id
            self._publish(self._session.messages + [user_message, bot_message])
            self.state = ExchangeState.FAILED
            self._log(
                logging.WARNING,
                "Failed to create user message",
                error=_error_text(error),
                error_type=type(error).__name__,
            )
            return bot_message

        self.state = ExchangeState.SENDING
        session = self._session
        user_message.exchange_id = self.exchange_id
        bot_message = create_message(
            role="assistant",
            streaming=True,
            parent_id=user_message.id,
            exchange_id=self.exchange_id,
        )
        history = build_outgoing_history(session)
        message_index = len(session.messages) + 1

        # 会话里保存用户实际输入的内容，而不是抽取出来的正文
        saved_user_message = replace(user_message, content=content)
        self.user_message = user_message
        self.saved_user_message = saved_user_message
        self.bot_message = bot_message
        self._message_key = bot_message.id or message_index
        self._publish(session.messages + [saved_user_message, bot_message])

        request = ChatRequest(
            message=transform_user_message_for_sending(user_message).content,
            chat_history=history,
            config=session.bot.model_config.merged(stream=True),
        )
        self._log(
            logging.INFO,
            "Calling provider (stream)",
            provider=getattr(self._api, "name", type(self._api).__name__),
            model=request.config.model,
            message_count=len(history) + 1,
            user_message_id=user_message.id,
            bot_message_id=bot_message.id,
        )

        self.state = ExchangeState.STREAMING
        try:
            async for event in self._api.chat(request):
                self._dispatch(event)
        except Exception as error:
            if self.state not in TERMINAL_STATES:
                self.on_error(error)
            else:
                self._log(logging.WARNING, "Backend raised after exchange finished", error=_error_text(error))
        finally:
            if self.state not in TERMINAL_STATES:
                # 事件流没有给出结束事件（或任务被取消）
                bot_message.streaming = False
                self._remove_controller()
                self._notify()
                self._log(logging.WARNING, "Stream ended without a terminal event")
        return self._result

    # ---- 事件处理 ----

    def _dispatch(self, event) -> None:
        if self.state in TERMINAL_STATES:
            self._log(logging.WARNING, "Ignored event after exchange finished", event=type(event).__name__)
            return
        if isinstance(event, ControllerReady):
            self.on_controller(event.controller)
        elif isinstance(event, StreamUpdate):
            self.on_update(event.content)
        elif isinstance(event, StreamFinished):
            self.on_finish(event.messages)
        elif isinstance(event, StreamFailed):
            self.on_error(event.error)
        else:
            self._log(logging.WARNING, "Ignored unknown stream event", event=type(event).__name__)

    def on_controller(self, controller: ChatController) -> None:
        # 登记句柄，供停止/重试使用
        self._pool.add_controller(self._session.id, self._message_key, controller)

    def on_update(self, content: str) -> None:
        self.bot_message.streaming = True
        if content:
            self.bot_message.content = content
        self._notify()

    def on_finish(self, messages: List[ChatMessage]) -> None:
        new_messages = [message_from(m) for m in messages]
        for message in new_messages:
            message.exchange_id = self.exchange_id
        # 用后端返回的消息（用户消息、回复，可能还有记忆消息）替换刚追加的两条
        self._publish(self._session.messages[:-2] + new_messages)
        self._remove_controller()
        self._result = new_messages[-1] if new_messages else None
        self.state = ExchangeState.FINISHED
        self._log(logging.INFO, "Exchange finished", returned_messages=len(new_messages))

    def on_error(self, error: BaseException) -> None:
        aborted = is_abort_error(error)
        bot_message = self.bot_message
        bot_message.content += "\n\n" + pretty_object({"error": True, "message": _error_text(error)})
        bot_message.streaming = False
        self.user_message.is_error = not aborted
        self.saved_user_message.is_error = not aborted
        bot_message.is_error = not aborted
        self._notify()
        self._remove_controller()
        self._result = bot_message
        self.state = ExchangeState.FAILED
        if aborted:
            self._log(logging.INFO, "Exchange aborted")
        else:
            self._log(
                logging.ERROR,
                "[Chat] failed",
                error=_error_text(error),
                error_type=type(error).__name__,
            )

    # ---- 辅助方法 ----

    def _publish(self, messages: List[Message]) -> None:
        self._session.messages = messages
        self._notify()

    def _notify(self) -> None:
        self._callbacks.on_update_messages(list(self._session.messages))

    def _remove_controller(self) -> None:
        if self._message_key is not None:
            self._pool.remove(self._session.id, self._message_key)

    def _log(self, level: int, message: str, **fields: Any) -> None:
        payload = dict(self._log_ctx)
        payload["state"] = self.state.value
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})


async def run_exchange(
    session: Session,
    content: str,
    callbacks: UpdateCallbacks,
    uploaded_file: Optional[FileWrap] = None,
    *,
    api: Optional[ChatBackend] = None,
    pool: Optional[ChatControllerPool] = None,
    fetcher: Optional[UrlFetcher] = None,
) -> Optional[Message]:
    """运行一次对话。

    Args:
        session: 会话，调用期间其 messages 会被重新赋值。
        content: 用户输入的原始文本（可以是链接）。
        callbacks: 提供 on_update_messages(messages) 的对象。
        uploaded_file: 用户上传的文件（可选）。
        api: 模型后端，默认按配置创建。
        pool: 取消句柄池，默认使用进程级的 controller_pool。
        fetcher: 链接抓取函数，默认 fetch_site_content。

    Returns:
        最终的助手消息、带错误信息的助手消息，或无法确定时返回 None。
        越过输入抽取阶段后不会抛出异常。
    """
    if api is None:
        from chat_core.providers import create_provider

        api = create_provider()
    exchange = ChatExchange(
        session,
        callbacks,
        api=api,
        pool=pool if pool is not None else controller_pool,
        fetcher=fetcher or fetch_site_content,
    )
    return await exchange.run(content, uploaded_file)


def stop_exchange(
    session_id: str,
    message_id: MessageKey,
    *,
    pool: Optional[ChatControllerPool] = None,
) -> bool:
    """中止进行中的对话；没有登记的句柄时返回 False。"""
    return (pool if pool is not None else controller_pool).stop(session_id, message_id)


def _find_user_message(messages: List[Message], bot_index: int) -> Optional[Message]:
    bot_message = messages[bot_index]
    earlier = messages[:bot_index]
    if bot_message.parent_id:
        for message in reversed(earlier):
            if message.id == bot_message.parent_id:
                return message
    for message in reversed(earlier):
        if message.role == "user":
            return message
    return None


async def retry_exchange(
    session: Session,
    bot_message_id: str,
    callbacks: UpdateCallbacks,
    *,
    api: Optional[ChatBackend] = None,
    pool: Optional[ChatControllerPool] = None,
    fetcher: Optional[UrlFetcher] = None,
) -> Optional[Message]:
    """重新发送某条回复对应的用户输入。

    先中止该回复仍在进行的调用，然后以新的 id 开启一次新的对话，
    旧的消息保留在会话中。优先使用该次对话记录的原始输入（包括上传的
    文件），没有记录时退回到会话中对应用户消息的内容。
    """
    pool = pool if pool is not None else controller_pool
    pool.stop(session.id, bot_message_id)

    bot_index = next((i for i, m in enumerate(session.messages) if m.id == bot_message_id), None)
    if bot_index is None:
        original = None
    else:
        original = session.exchange_inputs.get(session.messages[bot_index].exchange_id)
        if original is None:
            user_message = _find_user_message(session.messages, bot_index)
            if user_message is not None:
                original = ExchangeInput(user_message.content)
    if original is None:
        logger.warning(
            "Nothing to retry",
            extra={"extra": {"session_id": session.id, "message_id": bot_message_id}},
        )
        return None
    return await run_exchange(
        session,
        original.content,
        callbacks,
        original.uploaded_file,
        api=api,
        pool=pool,
        fetcher=fetcher,
    )
