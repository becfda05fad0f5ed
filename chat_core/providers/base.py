"""Provider 抽象接口。

对话编排层不直接依赖具体厂商的 HTTP SDK，而是依赖此协议：

- 每个厂商实现一个 ChatBackend。
- chat(req) 返回一个异步事件流，事件依次为：
  ControllerReady（至多一次，最先产出）→ 若干 StreamUpdate →
  StreamFinished / StreamFailed 二选一（恰好一次）。
- 用户中止通过 ChatController 协作完成：Provider 在每个增量之间检查
  controller.aborted，并以 StreamFailed(AbortedError) 结束。
"""

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Protocol, Union

from chat_core.domain.models import ChatMessage, ChatRequest


class ChatController:
    """一次进行中的模型调用的取消句柄。

    abort() 可以在任意线程调用：在事件循环线程之外调用时，通过
    call_soon_threadsafe 唤醒等待者。
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._aborted = False
        self.reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._aborted

    def abort(self, reason: Optional[str] = None) -> None:
        if self._aborted:
            return
        self._aborted = True
        self.reason = reason
        loop = self._loop
        if loop is None or loop.is_closed():
            # 还没有等待者
            self._event.set()
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._event.set()
        else:
            loop.call_soon_threadsafe(self._event.set)

    async def wait(self) -> None:
        """等待 abort() 被调用。"""
        self._loop = asyncio.get_running_loop()
        if self._aborted:
            return
        await self._event.wait()


@dataclass
class ControllerReady:
    controller: ChatController


@dataclass
class StreamUpdate:
    """content 为到目前为止累积的完整回复文本。"""

    content: str


@dataclass
class StreamFinished:
    """messages 是本轮产生的全部消息（用户消息、回复，可能还有记忆消息）。"""

    messages: List[ChatMessage]


@dataclass
class StreamFailed:
    error: Exception


ChatEvent = Union[ControllerReady, StreamUpdate, StreamFinished, StreamFailed]


class ChatBackend(Protocol):
    """LLM 后端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志。
    - chat(req): 执行一次对话调用，逐步产出 ChatEvent。
    """

    name: str

    def chat(self, req: ChatRequest) -> AsyncIterator[ChatEvent]:
        ...
