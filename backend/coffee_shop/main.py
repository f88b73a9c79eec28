"""FastAPI application entrypoint.

This module wires the routers, middleware and exception handlers of the
coffee shop backend. Controllers live in `coffee_shop.routers` and are
intentionally thin: they accept requests, delegate to services, and
return the `{resp_code, resp_desc, data}` envelope.

Areas:
- /auth, /forgot-password: accounts and tokens
- /categories, /brands, /type-products, /products, /product-items: catalog
- /cart, /shipping-addresses, /favorites: shopping state
- /orders, /order-items, /reviews, /transactions: order lifecycle
- /payment: VNPay integration
- /conversations, /ws/conversations: support chat
- /users, /profile: user administration and self-service
- /statistics: sales rankings
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlmodel import Session
import os
import json
import logging
import time
import uuid
from .config import settings
from .constants import RespCode
from .database import engine, create_db_and_tables
from .exceptions import CoffeeShopException
from .messages import message_builder, parse_accept_language, reset_locale, set_locale
from .routers import auth, catalog, chat, orders, payment, shopping, users
from .services.account import ForgotPasswordService, initialize_data
from .utils.scheduler import PeriodicJob

logger = logging.getLogger("coffee_shop.api")
if not logger.handlers:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))


def _sweep_expired_otps():
    with Session(engine) as session:
        return ForgotPasswordService(session).delete_expired_forgot_passwords()


otp_sweeper = PeriodicJob("otp-sweeper", settings.OTP_SWEEP_SECONDS, _sweep_expired_otps)


@asynccontextmanager
async def lifespan(app: FastAPI):
    otp_sweeper.start()
    yield
    otp_sweeper.stop()


app = FastAPI(title="Coffee Shop API", lifespan=lifespan)

# Wide-open CORS keeps a locally served storefront working without extra config in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Uploaded product, category and avatar images
settings.MEDIA_ROOT.mkdir(parents=True, exist_ok=True)
app.mount("/media", StaticFiles(directory=settings.MEDIA_ROOT), name="media")

create_db_and_tables()
with Session(engine) as _session:
    initialize_data(_session)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    locale_token = set_locale(parse_accept_language(request.headers.get("Accept-Language")))
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    finally:
        reset_locale(locale_token)
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "client": request.client.host if request.client else "unknown",
            },
            ensure_ascii=True,
        ),
    )
    return response


@app.exception_handler(CoffeeShopException)
async def coffee_shop_exception_handler(request: Request, exc: CoffeeShopException):
    if exc.status_code >= 500:
        logger.error("request %s failed: %s", getattr(request.state, "request_id", ""), exc)
    body = message_builder.failure(exc.code, exc.message_args, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    fields = [".".join(str(p) for p in e.get("loc", [])[1:]) for e in errors]
    body = message_builder.failure(RespCode.FIELD_NOT_VALID, [", ".join(f for f in fields if f)], errors)
    return JSONResponse(status_code=422, content=body)


_CODE_BY_HTTP_STATUS = {401: RespCode.UNAUTHORIZED, 403: RespCode.FORBIDDEN, 404: RespCode.NOT_FOUND}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        code = RespCode.SYSTEM_ERROR
    else:
        code = _CODE_BY_HTTP_STATUS.get(exc.status_code, RespCode.FIELD_NOT_VALID)
    body = message_builder.failure(code, None, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("request %s crashed: %r", getattr(request.state, "request_id", ""), exc)
    body = message_builder.failure(RespCode.SYSTEM_ERROR, None, "Internal server error")
    return JSONResponse(status_code=500, content=body)


app.include_router(auth.router)
app.include_router(auth.forgot_router)
app.include_router(catalog.router)
app.include_router(shopping.router)
app.include_router(orders.router)
app.include_router(payment.router)
app.include_router(chat.router)
app.include_router(users.router)


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
