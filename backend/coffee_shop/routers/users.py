"""User administration and self-service profile endpoints."""

from fastapi import APIRouter, Depends, File, UploadFile
from sqlmodel import Session

from .. import models
from ..auth import get_current_user, require_admin
from ..database import get_session
from ..schemas import ProfileUpdateIn, UserInfoIn
from ..services.account import ProfileService, UserService
from ..utils.image_storage import ImageStorage, get_image_storage
from . import ok, read_upload

router = APIRouter(tags=["users"])


@router.get("/users")
def list_users(db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(UserService(db).get_all_users())


@router.get("/users/me")
def current_user(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return ok(UserService(db).get_user(user.email))


@router.put("/users/me")
def update_current_user(payload: UserInfoIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return ok(UserService(db).update_user_info(user.email, payload.name, payload.phone, payload.profile_img))


@router.put("/users/{user_id}/ban")
def ban_user(user_id: int, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(UserService(db).ban_user(user_id))


@router.put("/users/{user_id}/unban")
def unban_user(user_id: int, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(UserService(db).unban_user(user_id))


@router.get("/profile")
def get_profile(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return ok(ProfileService(db).get_profile(user.id))


@router.put("/profile")
def update_profile(payload: ProfileUpdateIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Partial update; blank fields keep their current value."""
    svc = ProfileService(db)
    return ok(svc.update_profile(user.id, payload.name, payload.phone, payload.profile_img,
                                 payload.password, payload.confirm_password))


@router.post("/profile/avatar")
def update_avatar(
    file: UploadFile = File(...),
    db: Session = Depends(get_session),
    storage: ImageStorage = Depends(get_image_storage),
    user: models.User = Depends(get_current_user),
):
    payload, filename = read_upload(file)
    return ok(ProfileService(db, storage).update_avatar(user.id, payload, filename))
