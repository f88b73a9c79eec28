"""Account services: authentication, profile, user administration,
password recovery and the startup data initializer."""

import logging
import secrets
from datetime import timedelta
from typing import Callable, Optional

from sqlmodel import Session

from .. import auth, models, repositories
from ..config import settings
from ..constants import RespCode
from ..exceptions import CoffeeShopException
from ..utils.image_storage import ImageStorage, ImageStorageError
from ..utils.mailer import MailBody, MailDeliveryError, send_simple_mail
from . import PWD_CTX, is_blank, isoformat, require_text

logger = logging.getLogger("coffee_shop.account")


def user_to_dict(user: models.User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "profile_img": user.profile_img,
        "status": user.status.value,
        "role_name": user.role.name.value if user.role else None,
        "created_at": isoformat(user.created_at),
        "updated_at": isoformat(user.updated_at),
    }


def initialize_data(session: Session) -> None:
    """Create missing roles and the bootstrap admin account (idempotent)."""
    role_repo = repositories.RoleRepository(session)
    for name in models.RoleName:
        if role_repo.get_by_name(name) is None:
            role_repo.save(models.Role(name=name))
            logger.info("created role %s", name.value)

    user_repo = repositories.UserRepository(session)
    admin_email = settings.ADMIN_EMAIL.strip().lower()
    if not user_repo.exists_by_email(admin_email):
        admin_role = role_repo.get_by_name(models.RoleName.ROLE_ADMIN)
        user_repo.save(models.User(
            email=admin_email,
            password_hash=PWD_CTX.hash(settings.ADMIN_PASSWORD),
            name="Administrator",
            role_id=admin_role.id,
        ))
        logger.info("created admin user %s", admin_email)


class AuthService:
    """Registration, login, token refresh and password change."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.role_repo = repositories.RoleRepository(session)

    def register(self, email: Optional[str], password: Optional[str], confirm_password: Optional[str]) -> dict:
        """Create an ACTIVE `ROLE_USER` account and return its profile."""
        email = require_text(email, "email", "Email must be not null")
        require_text(password, "password", "Password must be not null")
        require_text(confirm_password, "confirm_password", "Confirm password must be not null")
        email = email.lower()
        if self.user_repo.exists_by_email(email):
            raise CoffeeShopException(RespCode.FIELD_EXISTED, "Email already exists", ["email"])
        if password != confirm_password:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Password and confirm password do not match", ["confirm_password"])
        role = self.role_repo.get_by_name(models.RoleName.ROLE_USER)
        user = models.User(email=email, password_hash=PWD_CTX.hash(password), role_id=role.id)
        user = self.user_repo.save(user)
        logger.info("registered user id=%s", user.id)
        return user_to_dict(user)

    def _token_pair(self, email: str) -> dict:
        return {
            "access_token": auth.generate_access_token(email),
            "refresh_token": auth.generate_refresh_token(email),
            "token_type": "Bearer",
            "expires_in": settings.JWT_EXPIRE_SECONDS,
            "refresh_expires_in": settings.JWT_REFRESH_EXPIRE_SECONDS,
        }

    def login(self, email: Optional[str], password: Optional[str]) -> dict:
        """Verify credentials and return an access/refresh token pair."""
        email = require_text(email, "email", "Email must be not null").lower()
        require_text(password, "password", "Password must be not null")
        user = self.user_repo.get_by_email(email)
        if not user:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "User not found", ["email"])
        if not PWD_CTX.verify(password, user.password_hash):
            raise CoffeeShopException(RespCode.UNAUTHORIZED, "Email or password is incorrect")
        if user.status != models.Status.ACTIVE:
            raise CoffeeShopException(RespCode.FORBIDDEN, "User is inactive")
        return self._token_pair(user.email)

    def refresh(self, refresh_token: Optional[str]) -> dict:
        if is_blank(refresh_token):
            raise CoffeeShopException(RespCode.UNAUTHORIZED, "Invalid refresh token")
        email = auth.get_username(refresh_token, auth.REFRESH_TOKEN)
        user = auth.load_active_user(self.session, email)
        return self._token_pair(user.email)

    def change_password(self, user: models.User, old_password, new_password, confirm_password) -> None:
        require_text(old_password, "old_password", "Old password must be not null")
        require_text(new_password, "new_password", "New password must be not null")
        require_text(confirm_password, "confirm_password", "Confirm password must be not null")
        if not PWD_CTX.verify(old_password, user.password_hash):
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Old password is incorrect", ["old_password"])
        if new_password != confirm_password:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "New password and confirm password do not match", ["confirm_password"])
        user.password_hash = PWD_CTX.hash(new_password)
        user.updated_at = models.utcnow()
        self.user_repo.save(user)


class ProfileService:
    """Self-service profile reads and partial updates."""
    def __init__(self, session: Session, storage: Optional[ImageStorage] = None):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.storage = storage or ImageStorage()

    def _load(self, user_id: int) -> models.User:
        user = self.user_repo.get(user_id)
        if not user:
            raise CoffeeShopException(RespCode.UNAUTHORIZED, "User not found")
        return user

    def get_profile(self, user_id: int) -> dict:
        return user_to_dict(self._load(user_id))

    def update_profile(self, user_id: int, name=None, phone=None, profile_img=None, password=None, confirm_password=None) -> dict:
        """Apply the non-empty fields; a mismatched password pair is ignored."""
        user = self._load(user_id)
        if not is_blank(name):
            user.name = name.strip()
        if not is_blank(phone):
            user.phone = phone.strip()
        if not is_blank(profile_img):
            user.profile_img = profile_img.strip()
        if not is_blank(password) and not is_blank(confirm_password) and password == confirm_password:
            user.password_hash = PWD_CTX.hash(password)
        user.updated_at = models.utcnow()
        return user_to_dict(self.user_repo.save(user))

    def update_avatar(self, user_id: int, payload: bytes, filename: str) -> dict:
        user = self._load(user_id)
        try:
            uploaded = self.storage.upload(payload, filename, "Avatar")
        except ImageStorageError as exc:
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, "Error when upload image") from exc
        user.profile_img = uploaded["secure_url"]
        user.updated_at = models.utcnow()
        return user_to_dict(self.user_repo.save(user))


class UserService:
    """Administrative user management."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def get_all_users(self) -> list:
        return [user_to_dict(u) for u in self.user_repo.list_all()]

    def get_user(self, email: str) -> dict:
        user = self.user_repo.get_by_email(email)
        if not user:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "User not found", ["email"])
        return user_to_dict(user)

    def _set_status(self, user_id: int, status: models.Status) -> dict:
        user = self.user_repo.get(user_id)
        if not user:
            raise CoffeeShopException(RespCode.NOT_FOUND, f"User not found with ID: {user_id}")
        user.status = status
        user.updated_at = models.utcnow()
        return user_to_dict(self.user_repo.save(user))

    def ban_user(self, user_id: int) -> dict:
        return self._set_status(user_id, models.Status.INACTIVE)

    def unban_user(self, user_id: int) -> dict:
        return self._set_status(user_id, models.Status.ACTIVE)

    def update_user_info(self, email: str, name=None, phone=None, profile_img=None) -> dict:
        user = self.user_repo.get_by_email(email)
        if not user:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "User not found", ["email"])
        if name is not None:
            user.name = name
        if phone is not None:
            user.phone = phone
        if profile_img is not None:
            user.profile_img = profile_img
        user.updated_at = models.utcnow()
        return user_to_dict(self.user_repo.save(user))


class ForgotPasswordService:
    """OTP based password recovery: request, verify, reset."""
    def __init__(self, session: Session, mail_sender: Callable[[MailBody], bool] = None):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.otp_repo = repositories.ForgotPasswordRepository(session)
        self.mail_sender = mail_sender or send_simple_mail

    def _load_user(self, email) -> models.User:
        email = require_text(email, "email", "Email must be not null").lower()
        user = self.user_repo.get_by_email(email)
        if not user:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Please provide a valid email!", ["email"])
        return user

    def verify_email(self, email) -> dict:
        """Issue a fresh 6 digit OTP for `email` and mail it to the user."""
        user = self._load_user(email)
        self.otp_repo.delete_for_user(user.id)
        otp = 100000 + secrets.randbelow(900000)
        record = models.ForgotPassword(
            otp=otp,
            expiration_time=models.utcnow() + timedelta(seconds=settings.OTP_EXPIRE_SECONDS),
            user_id=user.id,
        )
        self.otp_repo.save(record)
        body = MailBody(
            to=user.email,
            subject="OTP for Forgot Password request",
            text=f"This is the OTP for your Forgot Password request: {otp}",
        )
        try:
            self.mail_sender(body)
        except MailDeliveryError as exc:
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, "Could not send OTP email") from exc
        return {"email": user.email, "expires_in": settings.OTP_EXPIRE_SECONDS}

    def verify_otp(self, otp: Optional[int], email) -> dict:
        user = self._load_user(email)
        if otp is None:
            raise CoffeeShopException(RespCode.FIELD_NOT_NULL, "OTP must be not null", ["otp"])
        record = self.otp_repo.get_by_otp_and_user(otp, user.id)
        if not record:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, f"Invalid OTP for email: {user.email}", ["otp"])
        if models.as_utc(record.expiration_time) < models.utcnow():
            self.otp_repo.delete(record)
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "OTP has expired!", ["otp"])
        record.verified = True
        self.otp_repo.save(record)
        return {"email": user.email, "verified": True}

    def change_password(self, email, password, repeat_password) -> None:
        require_text(password, "password", "Password must be not null")
        require_text(repeat_password, "repeat_password", "Repeat password must be not null")
        if password != repeat_password:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Please enter the password again!", ["repeat_password"])
        user = self._load_user(email)
        record = self.otp_repo.get_by_user(user.id)
        if not record or not record.verified:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "OTP has not been verified", ["otp"])
        if models.as_utc(record.expiration_time) < models.utcnow():
            self.otp_repo.delete_for_user(user.id)
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "OTP has expired!", ["otp"])
        user.password_hash = PWD_CTX.hash(password)
        user.updated_at = models.utcnow()
        self.user_repo.save(user)
        self.otp_repo.delete_for_user(user.id)

    def delete_expired_forgot_passwords(self) -> int:
        removed = self.otp_repo.delete_expired(models.utcnow())
        if removed:
            logger.info("deleted %s expired OTP records", removed)
        return removed
