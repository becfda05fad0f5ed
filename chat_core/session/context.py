"""组装发给模型的上下文消息。"""

from typing import List

from chat_core.domain.models import ChatMessage
from chat_core.domain.session import Message, Session

SUMMARY_PROMPT = "Summarize the following text briefly in 200 words or less:\n\n"


def transform_assistant_message_for_sending(message: ChatMessage) -> ChatMessage:
    # role 为 URL 的消息内容在之前的对话中已经抓取过，按普通助手回复发送
    if message.role != "URL":
        return message
    return ChatMessage(role="assistant", content=message.content)


def transform_user_message_for_sending(message: Message) -> ChatMessage:
    """链接/文件消息不直接转发正文，而是请模型先做摘要。"""
    if not message.url_detail:
        return message
    return ChatMessage(role=message.role, content=f"{SUMMARY_PROMPT}{message.content}")


def recent_messages(session: Session) -> List[Message]:
    if not session.clear_context_index:
        return session.messages
    return session.messages[session.clear_context_index:]


def build_outgoing_history(session: Session) -> List[ChatMessage]:
    """上下文提示词（按原顺序）+ clear_context_index 之后的历史消息。"""
    context_prompts = list(session.bot.context)
    return context_prompts + [transform_assistant_message_for_sending(m) for m in recent_messages(session)]
