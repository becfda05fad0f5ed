"""Minimal console demonstration of a streamed exchange."""

import asyncio
import sys

from chat_core import Bot, ChatMessage, create_empty_session
from chat_core.api.service import send_message


def print_last(messages):
    if messages and messages[-1].role == "assistant":
        print("\rAssistant:", messages[-1].content[-80:], end="", flush=True)


async def main(text: str) -> None:
    bot = Bot(name="Helper", context=[ChatMessage(role="system", content="You are helpful.")])
    session = create_empty_session(bot)
    reply = await send_message(session, text, print_last)
    print()
    print("Final:", reply.content if reply else None)


if __name__ == "__main__":
    asyncio.run(main(" ".join(sys.argv[1:]) or "请用一句话介绍你自己"))
