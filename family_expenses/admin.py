# family_expenses/admin.py

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from . import crud
from .auth import require_admin
from .database import get_db
from .errors import InvalidInput
from .models import User
from .schemas import AdminRightsUpdate, UserCreate, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/users", tags=["admin"])


def _get_target(db: Session, user_id: int) -> User:
    target = crud.get_user_by_id(db, user_id)
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return target


@router.get("")
def list_users(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    users = [UserOut.model_validate(u).to_json() for u in crud.list_users(db)]
    return {"success": True, "users": users}


@router.post("")
def create_user(payload: UserCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    user = crud.create_user(
        db,
        email=payload.email,
        username=payload.username,
        full_name=payload.full_name,
        password=payload.password,
        is_admin=payload.is_admin,
    )
    logger.info("Admin %s created user %s (admin=%s)", admin.username, user.username, user.is_admin)
    return {
        "success": True,
        "user": UserOut.model_validate(user).to_json(),
        "message": f"User {user.username} created",
    }


@router.patch("/{user_id}")
def update_admin_rights(
    user_id: int,
    payload: AdminRightsUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    if user_id == admin.id and not payload.is_admin:
        logger.warning("Admin %s tried to remove their own admin rights", admin.username)
        raise InvalidInput("You cannot remove your own admin rights")

    target = _get_target(db, user_id)
    target = crud.set_user_admin(db, target, payload.is_admin)

    action = "granted to" if payload.is_admin else "removed from"
    logger.info("Admin %s: admin rights %s %s", admin.username, action, target.username)
    return {
        "success": True,
        "user": UserOut.model_validate(target).to_json(),
        "message": f"Admin rights {action} {target.username}",
    }


@router.delete("/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    if user_id == admin.id:
        logger.warning("Admin %s tried to delete their own account", admin.username)
        raise InvalidInput("You cannot delete your own account")

    target = _get_target(db, user_id)
    username = target.username
    crud.delete_user(db, target)

    logger.info("Admin %s deleted user %s", admin.username, username)
    return {"success": True, "message": f"User {username} deleted"}
