"""Application settings and validation."""

import os
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_SECONDS: int
    JWT_REFRESH_EXPIRE_SECONDS: int
    MAX_UPLOAD_BYTES: int
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    ADMIN_EMAIL: str
    ADMIN_PASSWORD: str
    FRONTEND_URL: str
    BACKEND_URL: str
    VNPAY_PAY_URL: str
    VNPAY_API_URL: str
    VNPAY_TMN_CODE: str
    VNPAY_HASH_SECRET: str
    VNPAY_VERIFY_RETURN: bool
    VNPAY_TIMEOUT_SECONDS: float
    MEDIA_ROOT: Path
    MEDIA_BASE_URL: str
    RESEND_API_KEY: str
    MAIL_FROM: str
    OTP_EXPIRE_SECONDS: int
    OTP_SWEEP_SECONDS: int
    LOGIN_RATE_LIMIT_PER_MIN: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BACKEND_ROOT / 'app.db'}")
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_SECONDS = int(os.getenv("JWT_EXPIRE_SECONDS", "900"))  # 15 minutes
        self.JWT_REFRESH_EXPIRE_SECONDS = int(os.getenv("JWT_REFRESH_EXPIRE_SECONDS", str(7 * 24 * 3600)))
        self.MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))  # 10 MB default
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@coffeeshop.local")
        self.ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
        self.FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")
        self.BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000").rstrip("/")
        self.VNPAY_PAY_URL = os.getenv("VNPAY_PAY_URL", "https://sandbox.vnpayment.vn/paymentv2/vpcpay.html")
        self.VNPAY_API_URL = os.getenv("VNPAY_API_URL", "https://sandbox.vnpayment.vn/merchant_webapi/api/transaction")
        self.VNPAY_TMN_CODE = os.getenv("VNPAY_TMN_CODE", "W431Y266")
        self.VNPAY_HASH_SECRET = os.getenv("VNPAY_HASH_SECRET", "X1PG8L1HUG4QXOIFFL81QXUATCO1XXCN")
        self.VNPAY_VERIFY_RETURN = os.getenv("VNPAY_VERIFY_RETURN", "true").lower() == "true"
        self.VNPAY_TIMEOUT_SECONDS = float(os.getenv("VNPAY_TIMEOUT_SECONDS", "15"))
        self.MEDIA_ROOT = Path(os.getenv("MEDIA_ROOT", str(BACKEND_ROOT / "media"))).expanduser().resolve()
        self.MEDIA_BASE_URL = os.getenv("MEDIA_BASE_URL", f"{self.BACKEND_URL}/media").rstrip("/")
        self.RESEND_API_KEY = (os.getenv("RESEND_API_KEY") or "").strip()
        self.MAIL_FROM = os.getenv("MAIL_FROM", "Coffee Shop <no-reply@coffeeshop.local>")
        self.OTP_EXPIRE_SECONDS = int(os.getenv("OTP_EXPIRE_SECONDS", "300"))
        self.OTP_SWEEP_SECONDS = int(os.getenv("OTP_SWEEP_SECONDS", "60"))
        self.LOGIN_RATE_LIMIT_PER_MIN = int(os.getenv("LOGIN_RATE_LIMIT_PER_MIN", "30"))
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.JWT_EXPIRE_SECONDS <= 0 or self.JWT_REFRESH_EXPIRE_SECONDS <= 0:
            raise RuntimeError("JWT expiry values must be positive")


settings = Settings()
