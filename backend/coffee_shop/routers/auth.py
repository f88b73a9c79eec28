"""Authentication and password recovery endpoints.

- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/change-password
- GET  /auth/profile
- POST /forgot-password/verify-email
- POST /forgot-password/verify-otp
- POST /forgot-password/change-password
"""

from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from .. import models
from ..auth import get_current_user
from ..config import settings
from ..database import get_session
from ..schemas import (ChangePasswordIn, LoginIn, RefreshIn, RegisterIn, ResetPasswordIn,
                       VerifyEmailIn, VerifyOtpIn)
from ..services.account import AuthService, ForgotPasswordService, user_to_dict
from ..utils.rate_limit import auth_rate_limiter
from . import ok

router = APIRouter(prefix="/auth", tags=["auth"])
forgot_router = APIRouter(prefix="/forgot-password", tags=["auth"])


@router.post("/register")
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a new customer account."""
    user = AuthService(db).register(payload.email, payload.password, payload.confirm_password)
    return ok(user)


@router.post("/login")
def login(payload: LoginIn, request: Request, db: Session = Depends(get_session)):
    """Authenticate and return an access/refresh token pair."""
    auth_rate_limiter.enforce(request, settings.LOGIN_RATE_LIMIT_PER_MIN)
    return ok(AuthService(db).login(payload.email, payload.password))


@router.post("/refresh")
def refresh(payload: RefreshIn, db: Session = Depends(get_session)):
    return ok(AuthService(db).refresh(payload.refresh_token))


@router.post("/change-password")
def change_password(payload: ChangePasswordIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    AuthService(db).change_password(user, payload.old_password, payload.new_password, payload.confirm_password)
    return ok()


@router.get("/profile")
def profile(user: models.User = Depends(get_current_user)):
    """Profile of the bearer token's owner."""
    return ok(user_to_dict(user))


@forgot_router.post("/verify-email")
def verify_email(payload: VerifyEmailIn, request: Request, db: Session = Depends(get_session)):
    """Send a one-time password to the account's email address."""
    auth_rate_limiter.enforce(request, settings.LOGIN_RATE_LIMIT_PER_MIN)
    return ok(ForgotPasswordService(db).verify_email(payload.email))


@forgot_router.post("/verify-otp")
def verify_otp(payload: VerifyOtpIn, request: Request, db: Session = Depends(get_session)):
    auth_rate_limiter.enforce(request, settings.LOGIN_RATE_LIMIT_PER_MIN)
    return ok(ForgotPasswordService(db).verify_otp(payload.otp, payload.email))


@forgot_router.post("/change-password")
def reset_password(payload: ResetPasswordIn, db: Session = Depends(get_session)):
    """Set a new password once the OTP has been verified."""
    ForgotPasswordService(db).change_password(payload.email, payload.password, payload.repeat_password)
    return ok()
