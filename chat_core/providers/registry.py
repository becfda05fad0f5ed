"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 逻辑名（logical_name）：机器人配置里使用的统一名称，例如 "chat"。
- provider_model：厂商实际提供的模型 ID，例如 "gpt-4o-mini"。

机器人只关心逻辑名，具体用哪个底层模型由这里集中配置。"""

from dataclasses import dataclass
from typing import Dict, Mapping


@dataclass
class ModelSpec:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。

    api_key_field / base_url_field 指向 Settings 上对应的属性名。
    """

    name: str
    base_url: str
    api_key_field: str
    base_url_field: str
    models: Dict[str, ModelSpec]

    def resolve_model(self, logical_name: str) -> ModelSpec:
        """未登记的逻辑名按厂商模型 ID 原样透传。"""
        spec = self.models.get(logical_name)
        if spec is not None:
            return spec
        default = next(iter(self.models.values()))
        return ModelSpec(
            logical_name=logical_name,
            provider_model=logical_name,
            max_tokens=default.max_tokens,
            default_temperature=default.default_temperature,
        )


OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    api_key_field="openai_api_key",
    base_url_field="openai_base_url",
    models={
        "chat": ModelSpec(
            logical_name="chat",
            provider_model="gpt-4o-mini",
            max_tokens=4096,
            default_temperature=0.7,
        )
    },
)

# GLM / BigModel 的 chat/completions 与 OpenAI 兼容
GLM_CONFIG = ProviderConfig(
    name="glm",
    base_url="https://open.bigmodel.cn/api/paas/v4",
    api_key_field="glm_api_key",
    base_url_field="glm_base_url",
    models={
        "chat": ModelSpec(
            logical_name="chat",
            provider_model="glm-4.6",
            max_tokens=8192,
            default_temperature=0.7,
        )
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "openai": OPENAI_CONFIG,
    "glm": GLM_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
