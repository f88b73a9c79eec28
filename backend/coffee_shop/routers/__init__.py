"""HTTP controllers, one `APIRouter` per area of the shop.

Controllers are intentionally thin: they accept requests, delegate to
services, and wrap the result in the response envelope.
"""

from fastapi import UploadFile

from ..config import settings
from ..constants import RespCode
from ..exceptions import CoffeeShopException
from ..messages import message_builder


def ok(data=None) -> dict:
    return message_builder.success(data)


def read_upload(file: UploadFile) -> tuple:
    """Return `(payload, filename)` after filename and size checks."""
    filename = file.filename or ""
    if not filename or len(filename) > 200 or "/" in filename or "\\" in filename:
        raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "invalid filename", ["file"])
    payload = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(payload) > settings.MAX_UPLOAD_BYTES:
        raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "file too large", ["file"])
    if not payload:
        raise CoffeeShopException(RespCode.FIELD_NOT_NULL, "file is empty", ["file"])
    return payload, filename
