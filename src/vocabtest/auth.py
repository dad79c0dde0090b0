import hashlib
import logging
import secrets
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from fastapi import Request, Response
from werkzeug.security import check_password_hash, generate_password_hash

from .config import Settings
from .errors import Conflict, Unauthorized
from .gateway import PersistenceGateway
from .models import SessionUser

logger = logging.getLogger(__name__)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AuthService:
    """Username/password accounts with opaque, hashed session tokens."""

    def __init__(self, gateway: PersistenceGateway, settings: Settings):
        self.gateway = gateway
        self.settings = settings

    def register(self, username: str, password: str) -> Tuple[SessionUser, str, datetime]:
        if self.gateway.get_password_hash(username) is not None:
            raise Conflict("Username already exists")
        try:
            user = self.gateway.create_user(
                username,
                generate_password_hash(password),
                datetime.now(timezone.utc).isoformat(),
            )
        except sqlite3.IntegrityError:
            raise Conflict("Username already exists")
        logger.info(f"Registered user {username}")
        token, expires_at = self._create_session(user.id)
        return user, token, expires_at

    def login(self, username: str, password: str) -> Tuple[SessionUser, str, datetime]:
        found = self.gateway.get_password_hash(username)
        if found is None or not check_password_hash(found[1], password):
            logger.warning(f"Failed login for {username}")
            raise Unauthorized("Invalid credentials")
        user = found[0]
        token, expires_at = self._create_session(user.id)
        return user, token, expires_at

    def logout(self, token: Optional[str]) -> None:
        if token:
            self.gateway.delete_auth_session(hash_token(token))

    def resolve(self, token: Optional[str]) -> Optional[SessionUser]:
        """Maps a raw cookie token to its user; expired sessions are removed."""
        if not token:
            return None
        token_hash = hash_token(token)
        session = self.gateway.get_auth_session(token_hash)
        if session is None:
            return None
        if datetime.fromisoformat(session["expires_at"]) <= datetime.now(timezone.utc):
            self.gateway.delete_auth_session(token_hash)
            return None
        return self.gateway.get_user(session["user_id"])

    def _create_session(self, user_id: str) -> Tuple[str, datetime]:
        token = secrets.token_hex(32)
        expires_at = datetime.now(timezone.utc) + timedelta(days=self.settings.SESSION_DAYS)
        self.gateway.create_auth_session(user_id, hash_token(token), expires_at.isoformat())
        return token, expires_at

    # --- cookie helpers ---
    def set_cookie(self, response: Response, token: str, expires_at: datetime) -> None:
        response.set_cookie(
            key=self.settings.SESSION_COOKIE_NAME,
            value=token,
            httponly=True,
            samesite="lax",
            secure=self.settings.COOKIE_SECURE,
            expires=expires_at,
            path="/",
        )

    def clear_cookie(self, response: Response) -> None:
        response.delete_cookie(
            key=self.settings.SESSION_COOKIE_NAME,
            httponly=True,
            samesite="lax",
            secure=self.settings.COOKIE_SECURE,
            path="/",
        )

    def token_from(self, request: Request) -> Optional[str]:
        return request.cookies.get(self.settings.SESSION_COOKIE_NAME)
