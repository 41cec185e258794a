"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在会话层或 UI 层做统一捕获与提示（toast）。
底层 I/O 异常（OSError、JSONDecodeError、httpx、Playwright 等）
必须在组件边界处转换为这里定义的类型。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、key 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class StorageError(BusinessError):
    """存储读写或反序列化失败，调用方通常降级为空状态并记录日志。"""


class MigrationError(BusinessError):
    """旧版单 API Key 迁移失败，只记录日志，不阻塞正常流程。"""


class ExtractionFailure(BusinessError):
    """页面内容提取失败（脚本执行失败或页面没有可用文本）。"""


class NotInitializedError(BusinessError):
    """Provider 尚未 init_api 就被调用。"""


class UnsupportedProviderError(BusinessError):
    """未知或尚未实现的 Provider。"""


class SettingNotFoundError(BusinessError):
    """按名称找不到对应的 API 配置。"""


class DuplicateNameError(BusinessError):
    """API 配置名称与已有的其他配置冲突。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class EmptyResponseError(BusinessError):
    """Provider 返回成功但没有任何回答内容。"""


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误，重试/退避由底层 HTTP 客户端或用户决定。"""
