"""统一的数据模型。

本模块定义了各子系统之间共享的标准数据结构：

- Provider / ApiSetting / SettingRef: 用户保存的 API 凭证与配置。
- ChatMessage / ChatContext / ChatOptions / ChatRequest / ChatResponse:
  对话请求与响应。
- TabHandle / PageContent / ExtractResult: 页面内容提取的输入与结果。

所有 Provider 适配器都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from page_chat.domain.exceptions import UnsupportedProviderError


# 消息角色类型（与 OpenAI / Deepseek 等厂商的 role 字段对应）
Role = Literal["system", "user", "assistant"]

ROLES = ("system", "user", "assistant")


class Provider(str, Enum):
    """已知的 LLM 后端（封闭枚举）。"""

    DEEPSEEK = "deepseek"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"

    @property
    def label(self) -> str:
        return PROVIDER_LABELS[self]

    @classmethod
    def parse(cls, value: Any) -> "Provider":
        """把字符串解析为 Provider，名称不区分大小写。"""

        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedProviderError(
                code="UNSUPPORTED_PROVIDER",
                message=f"Unsupported API provider: {value}",
                provider=str(value),
            )


PROVIDER_LABELS: Dict[Provider, str] = {
    Provider.DEEPSEEK: "Deepseek",
    Provider.OPENAI: "ChatGPT",
    Provider.ANTHROPIC: "Claude",
}


@dataclass
class ApiSetting:
    """一条命名的 API 配置（凭证 + 模型等可选项）。

    序列化时使用 camelCase 字段名（apiKey），与旧版本写入的数据兼容。
    """

    name: str
    provider: Provider
    api_key: str
    model: Optional[str] = None
    organization: Optional[str] = None
    project: Optional[str] = None

    @property
    def ref(self) -> "SettingRef":
        return SettingRef(name=self.name, provider=self.provider)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "provider": self.provider.value,
            "apiKey": self.api_key,
        }
        if self.model:
            data["model"] = self.model
        if self.organization:
            data["organization"] = self.organization
        if self.project:
            data["project"] = self.project
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApiSetting":
        return cls(
            name=str(data["name"]),
            provider=Provider.parse(data["provider"]),
            api_key=str(data.get("apiKey") or ""),
            model=data.get("model") or None,
            organization=data.get("organization") or None,
            project=data.get("project") or None,
        )


@dataclass(frozen=True)
class SettingRef:
    """对某条 ApiSetting 的弱引用（名称 + Provider），读取时再解析。"""

    name: str
    provider: Provider

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "provider": self.provider.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SettingRef":
        return cls(name=str(data["name"]), provider=Provider.parse(data["provider"]))


@dataclass(frozen=True)
class ChatMessage:
    """一条对话消息，创建后不可变。"""

    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        role = data["role"]
        if role not in ROLES:
            raise ValueError(f"Unknown message role: {role!r}")
        return cls(role=role, content=str(data["content"]))


@dataclass
class ChatContext:
    """随请求附带的页面上下文。"""

    page_title: Optional[str] = None
    page_content: Optional[str] = None

    @property
    def has_page(self) -> bool:
        return bool(self.page_title or self.page_content)


@dataclass
class ChatOptions:
    """单次调用的可选参数；为 None 时使用 Provider 默认值。"""

    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass
class ApiConfig:
    """构造 Provider 客户端所需的配置。"""

    api_key: str
    model: Optional[str] = None
    organization: Optional[str] = None
    project: Optional[str] = None
    base_url: Optional[str] = None

    @classmethod
    def from_setting(cls, setting: ApiSetting) -> "ApiConfig":
        return cls(
            api_key=setting.api_key,
            model=setting.model,
            organization=setting.organization,
            project=setting.project,
        )


@dataclass
class ChatRequest:
    """发给底层 LLM Provider 的完整请求（消息已按顺序组装好）。"""

    provider: Provider
    model: str
    messages: List[ChatMessage]
    temperature: float = 0.7
    max_tokens: int = 1000


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatResponse:
    """一次对话调用归一化后的结果。

    - message: 助手回答（role 固定为 assistant）。
    - usage: 可选的 token 使用统计。
    - raw: 原始响应 JSON，仅用于调试。
    """

    message: ChatMessage
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = field(default=None, repr=False)


@dataclass(frozen=True)
class TabHandle:
    """浏览器标签页句柄。id/url 可能缺失（例如特权页面）。"""

    id: Optional[int]
    url: Optional[str]
    title: str = ""


@dataclass
class PageContent:
    title: str
    content: str
    url: str


@dataclass
class ExtractResult:
    """提取结果：成功时带 content，失败时带 error。"""

    success: bool
    content: Optional[PageContent] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, content: PageContent) -> "ExtractResult":
        return cls(success=True, content=content)

    @classmethod
    def fail(cls, error: str) -> "ExtractResult":
        return cls(success=False, error=error)
