"""Response codes shared by services, handlers and clients."""


class RespCode:
    SUCCESS = "000"
    FIELD_NOT_NULL = "001"
    FIELD_NOT_VALID = "002"
    FIELD_NOT_FOUND = "003"
    FIELD_EXISTED = "004"
    NOT_FOUND = "005"
    UNAUTHORIZED = "401"
    FORBIDDEN = "403"
    SYSTEM_ERROR = "500"
    UNDEFINED = "999"


HTTP_STATUS_BY_CODE = {
    RespCode.SUCCESS: 200,
    RespCode.FIELD_NOT_FOUND: 404,
    RespCode.NOT_FOUND: 404,
    RespCode.FIELD_EXISTED: 409,
    RespCode.UNAUTHORIZED: 401,
    RespCode.FORBIDDEN: 403,
    RespCode.SYSTEM_ERROR: 500,
    RespCode.UNDEFINED: 500,
}


def http_status_for(code: str) -> int:
    """Default HTTP status for a response code (400 for validation codes)."""
    return HTTP_STATUS_BY_CODE.get(code, 400)
