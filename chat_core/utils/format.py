import json
from typing import Any


def pretty_object(obj: Any) -> str:
    """把对象渲染为 Markdown 中的 JSON 代码块；字符串原样放进代码块。"""
    if isinstance(obj, str):
        text = obj
    else:
        text = json.dumps(obj, indent=2, ensure_ascii=False, default=str)
    if text.startswith("```") and text.endswith("```"):
        return text
    return f"```json\n{text}\n```"
