"""Password login with database-backed cookie sessions."""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Request
from sqlalchemy import delete, select
from sqlalchemy.orm import Session as DBSession

from app.config import settings
from app.models.session import Session
from app.models.user import User
from app.services.auth.base import AuthProvider

logger = logging.getLogger(__name__)


class LocalAuthProvider(AuthProvider):
    """
    Owners log in with email and password (bcrypt hashes) and receive an
    opaque session token, stored in the sessions table and sent back as the
    session cookie.
    """

    def _hash_password(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    def _verify_password(self, plain_password: str, hashed_password: str) -> bool:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))

    def _generate_session_token(self) -> str:
        return secrets.token_urlsafe(32)

    def credential_of(self, request: Request) -> Optional[str]:
        return request.cookies.get(settings.session_cookie_name)

    async def authenticate(self, db: DBSession, email: str, password: str) -> Optional[User]:
        user = db.execute(
            select(User).where(User.email == email.lower())
        ).scalar_one_or_none()
        if user is None or not user.password_hash:
            logger.info("Login failed: unknown account")
            return None
        if not self._verify_password(password, user.password_hash):
            logger.info("Login failed for user %s", user.id)
            return None
        return user

    async def create_user(
        self, db: DBSession, email: str, password: str, is_admin: bool = False
    ) -> User:
        user = User(
            email=email.lower(),
            password_hash=self._hash_password(password),
            is_admin=is_admin,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Created user %s", user.id)
        return user

    async def get_user_from_request(self, db: DBSession, request: Request) -> Optional[User]:
        token = self.credential_of(request)
        if not token:
            return None

        session = db.execute(
            select(Session).where(
                Session.token == token,
                Session.expires_at > datetime.now(timezone.utc),
            )
        ).scalar_one_or_none()
        return session.user if session else None

    async def create_session(self, db: DBSession, user: User, request: Request) -> str:
        """Start a session; the owner's expired sessions are purged in the same commit."""
        now = datetime.now(timezone.utc)
        db.execute(
            delete(Session)
            .where(Session.user_id == user.id, Session.expires_at <= now)
            .execution_options(synchronize_session="fetch")
        )

        token = self._generate_session_token()
        db.add(
            Session(
                user_id=user.id,
                token=token,
                expires_at=now + timedelta(seconds=settings.session_max_age),
                user_agent=request.headers.get("user-agent", "")[:512],
                ip_address=request.client.host if request.client else None,
            )
        )
        db.commit()
        logger.info("Started session for user %s", user.id)
        return token

    async def revoke_session(self, db: DBSession, token: str) -> bool:
        result = db.execute(delete(Session).where(Session.token == token))
        db.commit()
        return result.rowcount > 0


local_auth_provider = LocalAuthProvider()
