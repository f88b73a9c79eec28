"""Localized response messages and the response envelope builder.

Every endpoint answers with the same envelope::

    {"resp_code": "000", "resp_desc": "Success", "data": ...}

`resp_desc` is resolved from a small in-process catalog keyed by response
code. The locale is chosen per request from `Accept-Language` and kept in
a context variable so services and handlers do not need to pass it
around.
"""

from contextvars import ContextVar
from typing import Any, Optional, Sequence

from .constants import RespCode

DEFAULT_LOCALE = "en"
UNDEFINED_MESSAGE = "undefined"

MESSAGES = {
    "en": {
        RespCode.SUCCESS: "Success",
        RespCode.FIELD_NOT_NULL: "Required field is missing {0}",
        RespCode.FIELD_NOT_VALID: "Field is not valid {0}",
        RespCode.FIELD_NOT_FOUND: "Field not found {0}",
        RespCode.FIELD_EXISTED: "Field already exists {0}",
        RespCode.NOT_FOUND: "Resource not found {0}",
        RespCode.UNAUTHORIZED: "Unauthorized",
        RespCode.FORBIDDEN: "Access denied",
        RespCode.SYSTEM_ERROR: "System error",
        RespCode.UNDEFINED: "Undefined error",
    },
    "vi": {
        RespCode.SUCCESS: "Thành công",
        RespCode.FIELD_NOT_NULL: "Thiếu trường bắt buộc {0}",
        RespCode.FIELD_NOT_VALID: "Trường không hợp lệ {0}",
        RespCode.FIELD_NOT_FOUND: "Không tìm thấy trường {0}",
        RespCode.FIELD_EXISTED: "Trường đã tồn tại {0}",
        RespCode.NOT_FOUND: "Không tìm thấy dữ liệu {0}",
        RespCode.UNAUTHORIZED: "Chưa xác thực",
        RespCode.FORBIDDEN: "Không có quyền truy cập",
        RespCode.SYSTEM_ERROR: "Lỗi hệ thống",
        RespCode.UNDEFINED: "Lỗi không xác định",
    },
}

_current_locale: ContextVar[str] = ContextVar("coffee_shop_locale", default=DEFAULT_LOCALE)


def parse_accept_language(header: Optional[str]) -> str:
    """Pick the first supported language tag from an Accept-Language header."""
    if not header:
        return DEFAULT_LOCALE
    for part in header.split(","):
        tag = part.split(";")[0].strip().lower()
        primary = tag.split("-")[0]
        if primary in MESSAGES:
            return primary
    return DEFAULT_LOCALE


def set_locale(locale: str):
    """Set the locale for the current context and return the reset token."""
    return _current_locale.set(locale if locale in MESSAGES else DEFAULT_LOCALE)


def reset_locale(token) -> None:
    _current_locale.reset(token)


def get_locale() -> str:
    return _current_locale.get()


def get_message(code: str, args: Optional[Sequence] = None, locale: Optional[str] = None) -> str:
    """Resolve `code` in the catalog, substituting positional `args`.

    Unknown codes resolve to `"undefined"`. Placeholders with no matching
    argument are dropped.
    """
    catalog = MESSAGES.get(locale or get_locale(), MESSAGES[DEFAULT_LOCALE])
    template = catalog.get(code)
    if template is None:
        return UNDEFINED_MESSAGE
    values = [str(a) for a in (args or [])]
    placeholders = template.count("{")
    values += [""] * max(0, placeholders - len(values))
    return template.format(*values).strip()


class MessageBuilder:
    """Build response envelopes for success and failure payloads."""

    @staticmethod
    def success(data: Any = None) -> dict:
        return {
            "resp_code": RespCode.SUCCESS,
            "resp_desc": get_message(RespCode.SUCCESS),
            "data": data,
        }

    @staticmethod
    def failure(code: str, args: Optional[Sequence] = None, data: Any = None) -> dict:
        return {
            "resp_code": code,
            "resp_desc": get_message(code, args),
            "data": data,
        }


message_builder = MessageBuilder()
