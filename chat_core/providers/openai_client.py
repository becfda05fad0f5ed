"""OpenAI 兼容接口的 Provider 适配器。

OpenAI、GLM / BigModel 等厂商均提供 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>

本实现只依赖公共字段：model/messages/temperature/max_tokens/top_p/stream，
并把 HTTP 响应转换为 ChatEvent 事件流：
1. 最先产出 ControllerReady，调用方可以立即登记取消句柄。
2. 流式模式下每收到一段增量产出一次 StreamUpdate（累积文本）。
3. 以 StreamFinished 或 StreamFailed 结束，异常不会抛给调用方。

等待下一段增量时同时等待取消句柄，被中止后立即结束，不必等服务端再发送数据。
"""

import asyncio
import contextlib
import json
from typing import Any, AsyncIterator, Awaitable, Dict, Optional, TypeVar

import httpx

from chat_core.config.settings import settings as default_settings
from chat_core.domain.bot import ModelConfig
from chat_core.domain.exceptions import (
    AbortedError,
    ApiError,
    BusinessError,
    NetworkError,
    RateLimitError,
    ValidationError,
)
from chat_core.domain.models import ChatMessage, ChatRequest
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers.base import (
    ChatController,
    ChatEvent,
    ControllerReady,
    StreamFailed,
    StreamFinished,
    StreamUpdate,
)
from chat_core.providers.registry import ModelSpec, ProviderConfig

T = TypeVar("T")


async def _next_line(lines: AsyncIterator[str]) -> Optional[str]:
    """读取下一行，流结束时返回 None。"""
    try:
        return await lines.__anext__()
    except StopAsyncIteration:
        return None


async def _until_aborted(controller: ChatController, awaitable: Awaitable[T]) -> T:
    """等待 awaitable；期间若 controller 被中止，则取消它并抛出 AbortedError。"""
    if controller.aborted:
        raise AbortedError()
    work = asyncio.ensure_future(awaitable)
    abort = asyncio.ensure_future(controller.wait())
    try:
        await asyncio.wait({work, abort}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        abort.cancel()
        if not work.done():
            work.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await work
    if controller.aborted:
        if work.done() and not work.cancelled():
            work.exception()
        raise AbortedError()
    return work.result()


class OpenAICompatibleClient:
    """chat/completions 协议的客户端实现。"""

    def __init__(self, provider: ProviderConfig, cfg=default_settings):
        self._provider = provider
        self._settings = cfg
        self.name = provider.name

    async def chat(self, req: ChatRequest) -> AsyncIterator[ChatEvent]:
        controller = ChatController()
        yield ControllerReady(controller)

        api_key = getattr(self._settings, self._provider.api_key_field, None)
        if not api_key:
            yield StreamFailed(
                ValidationError(
                    code="MISSING_API_KEY",
                    message=f"{self._provider.api_key_field.upper()} not set",
                )
            )
            return

        config = req.config or ModelConfig()
        model_spec = self._provider.resolve_model(config.model)
        payload = self._build_payload(req, model_spec, config)
        base = getattr(self._settings, self._provider.base_url_field, None) or self._provider.base_url
        url = f"{base}/chat/completions"
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

        text = ""
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                if config.stream:
                    async with client.stream("POST", url, json=payload, headers=headers) as resp:
                        await self._raise_for_status(resp)
                        lines = resp.aiter_lines()
                        while True:
                            line = await _until_aborted(controller, _next_line(lines))
                            if line is None:
                                break
                            delta = self._parse_stream_line(line)
                            if delta:
                                text += delta
                                yield StreamUpdate(text)
                else:
                    resp = await _until_aborted(controller, client.post(url, json=payload, headers=headers))
                    await self._raise_for_status(resp)
                    text = self._parse_response(resp.json())
                    yield StreamUpdate(text)
            if controller.aborted:
                raise AbortedError()
        except httpx.RequestError as e:
            yield StreamFailed(NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__))
            return
        except BusinessError as e:
            yield StreamFailed(e)
            return

        yield StreamFinished(
            [
                ChatMessage(role="user", content=req.message),
                ChatMessage(role="assistant", content=text),
            ]
        )

    # ---- 辅助方法 ----

    def _build_payload(self, req: ChatRequest, model_spec: ModelSpec, config: ModelConfig) -> dict:
        msgs = [self._message_to_payload(m) for m in req.chat_history]
        msgs.append({"role": "user", "content": req.message})
        return {
            "model": model_spec.provider_model,
            "messages": msgs,
            "temperature": config.temperature if config.temperature is not None else model_spec.default_temperature,
            "max_tokens": config.max_tokens or model_spec.max_tokens,
            "top_p": config.top_p,
            "stream": config.stream,
        }

    @staticmethod
    def _message_to_payload(message: ChatMessage) -> Dict[str, Any]:
        return {"role": message.role, "content": message.content}

    async def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return
        await resp.aread()
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message=f"{self.name} rate limit")
        raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)

    @staticmethod
    def _parse_response(data: dict) -> str:
        choices = data.get("choices") or []
        if not choices:
            return ""
        msg = choices[0].get("message") or {}
        return msg.get("content") or ""

    @staticmethod
    def _parse_stream_line(line: str) -> Optional[str]:
        if not line:
            return None
        data_str = line[5:].strip() if line.startswith("data:") else line.strip()
        if not data_str or data_str == "[DONE]":
            return None
        try:
            chunk = json.loads(data_str)
        except json.JSONDecodeError:
            logger.debug("Skipped malformed stream line", extra={"extra": {"line": data_str[:200]}})
            return None
        choices = chunk.get("choices") or []
        if not choices:
            return None
        delta = choices[0].get("delta") or {}
        return delta.get("content") or None
