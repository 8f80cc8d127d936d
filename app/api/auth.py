"""Authentication routes: login, logout and the current owner."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.user import User
from app.services.analysis_errors import AuthError
from app.services.auth import get_auth_provider
from app.services.auth.dependencies import get_current_user


router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str
    password: str


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Check credentials and set the session cookie."""
    auth_provider = get_auth_provider()
    user = await auth_provider.authenticate(db, body.email, body.password)

    if not user:
        raise AuthError("Invalid email or password.")

    token = await auth_provider.create_session(db, user, request)

    response = JSONResponse({"success": True, "user": {"id": str(user.id), "email": user.email}})
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_max_age,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    return response


@router.post("/logout")
async def logout(request: Request, db: Session = Depends(get_db)):
    """Revoke the current session and clear the cookie."""
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        auth_provider = get_auth_provider()
        await auth_provider.revoke_session(db, token)

    response = JSONResponse({"success": True})
    response.delete_cookie(key=settings.session_cookie_name)
    return response


@router.get("/me")
async def current_user(user: User = Depends(get_current_user)):
    """The logged-in owner."""
    return {
        "success": True,
        "user": {"id": str(user.id), "email": user.email, "is_admin": user.is_admin},
    }
