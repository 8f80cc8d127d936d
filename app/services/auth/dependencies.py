"""FastAPI dependencies for authentication."""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.services.analysis_errors import AuthError
from app.services.auth import get_auth_provider
from app.services.auth.context import AnalysisContext


async def get_current_user(
    request: Request,
    db: Session = Depends(get_db)
) -> User:
    """
    Get the currently authenticated user.

    Raises AuthError (401) if not authenticated.
    """
    user = await get_auth_provider().get_user_from_request(db, request)
    if not user:
        raise AuthError()
    return user


async def get_analysis_context(
    request: Request,
    db: Session = Depends(get_db),
) -> AnalysisContext:
    """
    Request-scoped caller context for the analysis pipeline.

    Raises AuthError (401) before any validation or model work when the
    caller has no valid session.
    """
    context = await get_auth_provider().resolve_context(db, request)
    if context is None:
        raise AuthError()
    return context
