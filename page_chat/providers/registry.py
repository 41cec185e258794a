"""Provider 接入地址与默认模型。

每个已实现的 Provider 在这里集中声明 base_url 和默认模型，
便于后续升级模型或切换接入地址。用户在配置里填写的 model 会覆盖默认模型，
temperature / max_tokens 的默认值来自 Settings。
Provider.ANTHROPIC 可以在设置里选择，但适配器尚未实现，因此没有对应配置。
"""

from dataclasses import dataclass

from page_chat.domain.models import Provider


@dataclass(frozen=True)
class ProviderConfig:
    provider: Provider
    base_url: str
    default_model: str


DEEPSEEK_CONFIG = ProviderConfig(
    provider=Provider.DEEPSEEK,
    base_url="https://api.deepseek.com/v1",
    default_model="deepseek-chat",
)

OPENAI_CONFIG = ProviderConfig(
    provider=Provider.OPENAI,
    base_url="https://api.openai.com/v1",
    default_model="gpt-3.5-turbo",
)
