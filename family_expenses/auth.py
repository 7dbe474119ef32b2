# family_expenses/auth.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from . import crud
from .database import get_db
from .models import User
from .schemas import LoginRequest, UserCreate, UserOut
from .security import create_access_token, decode_access_token, verify_password
from .settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _read_token(request: Request, settings: Settings):
    token = request.cookies.get(settings.cookie_name)
    if token:
        return token
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


# Dependency to get logged-in user
def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    token = _read_token(request, settings)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    claims = decode_access_token(settings, token)
    if not claims or "sub" not in claims:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired session")

    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired session")

    user = crud.get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        logger.warning("Non-admin %s tried to reach an admin route", user.username)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin rights required")
    return user


def _set_session_cookie(response: Response, settings: Settings, user: User):
    token = create_access_token(settings, user.id, user.email, user.is_admin)
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
        max_age=settings.token_max_age,
        path="/",
    )


@router.post("/login")
def login(
    payload: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = crud.get_user_by_login(db, payload.email_or_username)
    if not user or not verify_password(payload.password, user.password_hash):
        logger.warning("Failed login for %r", payload.email_or_username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    _set_session_cookie(response, settings, user)
    logger.info("User %s logged in", user.username)
    return {
        "success": True,
        "user": UserOut.model_validate(user).to_json(),
        "message": "Login successful",
    }


# Logout
@router.post("/logout")
def logout(response: Response, settings: Settings = Depends(get_settings)):
    response.delete_cookie(
        key=settings.cookie_name,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="strict",
    )
    return {"success": True, "message": "Logged out"}


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"success": True, "user": UserOut.model_validate(user).to_json()}


# Register (Signup)
@router.post("/register")
def register(
    payload: UserCreate,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not settings.allow_signup:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Self-registration is disabled")

    # self-registered accounts never start as admins
    user = crud.create_user(db, payload.email, payload.username, payload.full_name, payload.password, is_admin=False)
    _set_session_cookie(response, settings, user)
    logger.info("User %s registered", user.username)
    return {
        "success": True,
        "user": UserOut.model_validate(user).to_json(),
        "message": "Account created",
    }
