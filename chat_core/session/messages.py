"""消息与会话的构造函数。"""

from typing import Optional, Tuple
from uuid import uuid4

from chat_core.domain.bot import Bot, create_empty_bot
from chat_core.domain.models import ChatMessage
from chat_core.domain.session import MESSAGE_FIELDS, Message, Session
from chat_core.utils.format import pretty_object


def new_message_id() -> str:
    return f"m-{uuid4().hex}"


def create_message(**overrides) -> Message:
    """生成一条新消息：默认 id、当前时间、role=user、空内容，再覆盖 overrides。"""
    values = {
        "id": new_message_id(),
        "role": "user",
        "content": "",
    }
    values.update(overrides)
    return Message(**values)


def message_from(chat_message: ChatMessage) -> Message:
    """把后端返回的 ChatMessage 包装为会话消息，已有的字段（如 id）保留。"""
    overrides = {name: getattr(chat_message, name) for name in MESSAGE_FIELDS if hasattr(chat_message, name)}
    if not overrides.get("id"):
        overrides.pop("id", None)
    return create_message(**overrides)


def create_error_exchange(user_content: str, error: BaseException) -> Tuple[Message, Message]:
    """构造用户输入失败时展示的一对消息。

    回复的 id 独立生成，通过 parent_id 指向用户消息。
    """
    user_message = create_message(role="user", content=user_content)
    message = getattr(error, "message", None) or str(error) or "Invalid user message"
    bot_message = create_message(
        role="assistant",
        content=pretty_object({"error": True, "message": message}),
        parent_id=user_message.id,
    )
    return user_message, bot_message


def create_empty_session(bot: Optional[Bot] = None) -> Session:
    return Session(
        id=f"s-{uuid4().hex}",
        messages=[],
        bot=bot if bot is not None else create_empty_bot(),
    )
