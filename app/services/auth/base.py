"""Authentication provider interface."""
from abc import ABC, abstractmethod
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session as DBSession

from app.models.user import User
from app.services.auth.context import AnalysisContext


class AuthProvider(ABC):
    """
    Answers "who is calling" for the journal and analysis routes.

    Routes depend on get_analysis_context, never on a concrete provider, so
    cookie sessions can be replaced by token auth without route changes.
    """

    @abstractmethod
    async def authenticate(self, db: DBSession, email: str, password: str) -> Optional[User]:
        """Return the owner for valid credentials, else None."""

    @abstractmethod
    async def create_user(
        self, db: DBSession, email: str, password: str, is_admin: bool = False
    ) -> User:
        ...

    @abstractmethod
    async def get_user_from_request(self, db: DBSession, request: Request) -> Optional[User]:
        """Owner behind the request's credentials; None when absent, unknown or expired."""

    @abstractmethod
    async def create_session(self, db: DBSession, user: User, request: Request) -> str:
        """Start a session and return the token the client presents."""

    @abstractmethod
    async def revoke_session(self, db: DBSession, token: str) -> bool:
        """End a session. False when the token is unknown."""

    async def resolve_context(
        self, db: DBSession, request: Request
    ) -> Optional[AnalysisContext]:
        """Caller context for the analysis pipeline, None when unauthenticated."""
        user = await self.get_user_from_request(db, request)
        if user is None:
            return None
        return AnalysisContext(user_id=user.id, session_token=self.credential_of(request))

    def credential_of(self, request: Request) -> Optional[str]:
        return None
