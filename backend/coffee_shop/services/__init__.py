"""Business logic services used by HTTP controllers.

Services are small classes that take a `Session`, coordinate the
repositories and raise `CoffeeShopException` with a response code when a
rule is violated. They return plain dicts/lists ready to be wrapped in the
response envelope.
"""

from passlib.context import CryptContext

from ..constants import RespCode
from ..exceptions import CoffeeShopException
from ..models import as_utc

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require_text(value, field: str, message: str) -> str:
    """Return `value` stripped or raise FIELD_NOT_NULL naming `field`."""
    if is_blank(value):
        raise CoffeeShopException(RespCode.FIELD_NOT_NULL, message, [field])
    return value.strip()


def isoformat(value):
    return as_utc(value).isoformat() if value is not None else None
