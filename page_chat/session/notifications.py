"""短暂提示（toast）通知。"""

from dataclasses import dataclass
from typing import Callable, Literal

from page_chat.domain.exceptions import BusinessError


Level = Literal["success", "error", "info"]

GENERIC_ERROR = "An unexpected error occurred"


@dataclass(frozen=True)
class Notification:
    message: str
    level: Level = "info"


Notifier = Callable[[Notification], None]


def describe_error(error: object) -> str:
    """把异常转换为给用户看的文本。"""

    if isinstance(error, str):
        return error or GENERIC_ERROR
    if isinstance(error, BusinessError):
        return error.message or GENERIC_ERROR
    if isinstance(error, Exception):
        return str(error) or GENERIC_ERROR
    return GENERIC_ERROR


def ignore(notification: Notification) -> None:
    return None
