from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, List, Literal, Optional, Tuple

from .bot import Bot
from .models import ChatMessage

if TYPE_CHECKING:
    from chat_core.extractors.files import FileWrap


URLType = Literal["text/html", "application/pdf", "text/plain"]


@dataclass
class URLDetail:
    """链接或上传文件的元数据，不含正文。url 对于文件是文件名。"""

    url: str
    size: int
    type: URLType


@dataclass
class URLDetailContent(URLDetail):
    """抽取器的返回结果：元数据 + 正文。"""

    content: Optional[str] = None

    def split(self) -> Tuple[URLDetail, str]:
        """把正文从元数据中剥离，返回 (URLDetail, content)。"""
        detail = URLDetail(url=self.url, size=self.size, type=self.type)
        return detail, self.content or ""


@dataclass
class Message(ChatMessage):
    """会话中的一条消息。

    streaming / is_error 是一次对话过程中的临时状态；
    parent_id 把助手消息关联到它回答的用户消息；
    exchange_id 标记消息属于哪一次对话，后端返回的消息替换占位消息后仍然保留。
    """

    id: str = ""
    date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    streaming: bool = False
    is_error: bool = False
    url_detail: Optional[URLDetail] = None
    parent_id: Optional[str] = None
    exchange_id: Optional[str] = None


MESSAGE_FIELDS = frozenset(f.name for f in fields(Message))


@dataclass
class ExchangeInput:
    """一次对话的原始输入，重试时据此重新构造用户消息。"""

    content: str
    uploaded_file: Optional["FileWrap"] = None


@dataclass
class Session:
    id: str
    messages: List[Message] = field(default_factory=list)
    # 该下标之前的消息仅用于展示，不进入发给模型的上下文
    clear_context_index: Optional[int] = None
    bot: Bot = field(default_factory=Bot)
    # exchange_id -> 原始输入
    exchange_inputs: Dict[str, ExchangeInput] = field(default_factory=dict)
