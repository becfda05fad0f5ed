"""机器人配置：人设上下文提示词 + 模型参数。"""

from dataclasses import dataclass, field, replace
from typing import List, Optional
from uuid import uuid4

from chat_core.config.settings import settings

from .models import ChatMessage


def _default_model() -> str:
    return settings.default_model


@dataclass
class ModelConfig:
    """一个机器人使用的模型参数。

    model 为逻辑模型名，由 providers.registry 映射为厂商模型 ID，
    未指定时取配置中的 default_model。
    """

    model: str = field(default_factory=_default_model)
    temperature: float = 0.7
    top_p: float = 1.0
    max_tokens: Optional[int] = None
    stream: bool = False

    def merged(self, **overrides) -> "ModelConfig":
        return replace(self, **overrides)


@dataclass
class Bot:
    id: str = field(default_factory=lambda: f"b-{uuid4().hex}")
    name: str = "New Bot"
    context: List[ChatMessage] = field(default_factory=list)
    model_config: ModelConfig = field(default_factory=ModelConfig)


def create_empty_bot() -> Bot:
    return Bot()
