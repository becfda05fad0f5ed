"""发给模型后端的统一数据结构。

- ChatMessage: 一条请求消息（system/user/assistant/URL）。
- ChatRequest: 一次对话调用的完整请求（新一轮内容 + 历史 + 模型参数）。

Provider 适配层只依赖这些模型，负责把它们转换成各家 API 的 JSON。
"""

from dataclasses import dataclass, field
from typing import List, Literal, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from chat_core.domain.bot import ModelConfig


# "URL" 表示内容来自链接抽取的助手消息，发送前会被改写为 assistant
Role = Literal["system", "user", "assistant", "URL"]


@dataclass
class ChatMessage:
    """一条对话消息，只包含发给 Provider 的字段。"""

    role: Role
    content: str = ""


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    - message: 本轮用户消息的内容（链接/文件内容已被替换为摘要指令）。
    - chat_history: 上下文提示词 + 窗口内的历史消息。
    - config: 合并后的模型参数。
    """

    message: str
    chat_history: List[ChatMessage] = field(default_factory=list)
    config: Optional["ModelConfig"] = None
