"""Domain exception raised by services and rendered by the API layer."""

from typing import Optional, Sequence

from .constants import http_status_for


class CoffeeShopException(Exception):
    """Failure carrying a response code and a human readable message.

    `args` are positional values substituted into the localized message
    template (`{0}`, `{1}`, ...). `status_code` overrides the HTTP status
    derived from `code`.
    """

    def __init__(self, code: str, message: str, args: Optional[Sequence] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.message_args = list(args or [])
        self.status_code = status_code or http_status_for(code)

    def __str__(self):
        return f"{self.code}: {self.message}"
