"""
Authentication service for admin accounts.

Accounts live in the admin_users collection with bcrypt password hashes.
A session is a signed JWT access token; signing out revokes its token id.
Listeners registered with on_auth_state_change hear every sign-in and
sign-out.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Set

from portfolio_cms.services.content_store import ADMIN_USERS, ContentStore, StoreResult, eq
from portfolio_cms.utils.auth import hash_password, verify_password
from portfolio_cms.utils.jwt_auth import InvalidTokenError, create_access_token, decode_access_token

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

INVALID_CREDENTIALS = "Invalid login credentials"
ALREADY_REGISTERED = "User already registered"
SESSION_NOT_ISSUED = "Could not start a session"
UNIQUE_VIOLATION = "23505"


@dataclass(frozen=True)
class Session:
    token: str
    user_id: str
    email: str
    token_id: str
    expires_at: datetime


# Called with (event, session); session is the one that signed in or out
AuthListener = Callable[[str, Session], None]


class AuthService:
    def __init__(
        self,
        store: ContentStore,
        secret: str,
        expire_minutes: int = 60,
        min_password_length: int = 6,
    ):
        self.store = store
        self.secret = secret
        self.expire_minutes = expire_minutes
        self.min_password_length = min_password_length
        self._revoked: Set[str] = set()
        self._listeners: List[AuthListener] = []

    @staticmethod
    def _normalize_email(email: str) -> str:
        return email.strip().lower()

    async def sign_in_with_password(self, email: str, password: str) -> StoreResult[Session]:
        """Exchange credentials for a session; unknown email and wrong password fail alike."""
        result = await self.store.query(ADMIN_USERS, [eq("email", self._normalize_email(email))], limit=1)
        if not result.ok:
            return StoreResult.failure(result.error.message, result.error.code)
        if not result.data:
            logger.warning(f"Login attempt for unknown account {email!r}")
            return StoreResult.failure(INVALID_CREDENTIALS)

        user = result.data[0]
        # bcrypt is CPU bound
        matches = await asyncio.to_thread(verify_password, password, user["password_hash"])
        if not matches:
            logger.warning(f"Wrong password for {user['email']}")
            return StoreResult.failure(INVALID_CREDENTIALS)

        session = self._issue(user)
        if session is None:
            logger.error(f"Session token for {user['email']} did not verify after issuing")
            return StoreResult.failure(SESSION_NOT_ISSUED)
        logger.info(f"Admin signed in: {session.email}")
        self._emit(SIGNED_IN, session)
        return StoreResult.success(session)

    async def sign_up(self, email: str, password: str) -> StoreResult[dict]:
        """Create an admin account. Returns the public part of the new user row."""
        email = self._normalize_email(email)
        if not email:
            return StoreResult.failure("Email is required")
        if len(password) < self.min_password_length:
            return StoreResult.failure(
                f"Password should be at least {self.min_password_length} characters"
            )

        password_hash = await asyncio.to_thread(hash_password, password)
        result = await self.store.insert(ADMIN_USERS, {"email": email, "password_hash": password_hash})
        if not result.ok:
            if result.error.code == UNIQUE_VIOLATION:
                return StoreResult.failure(ALREADY_REGISTERED, UNIQUE_VIOLATION)
            return StoreResult.failure(result.error.message, result.error.code)

        logger.info(f"Admin account created: {email}")
        return StoreResult.success({"id": result.data["id"], "email": result.data["email"]})

    async def sign_out(self, token: Optional[str]) -> StoreResult[None]:
        """Revoke the session behind token. Signing out without a valid session is a no-op."""
        session = self._decode(token)
        if session is None:
            return StoreResult.success()
        self._revoked.add(session.token_id)
        logger.info(f"Admin signed out: {session.email}")
        self._emit(SIGNED_OUT, session)
        return StoreResult.success()

    async def get_session(self, token: Optional[str]) -> StoreResult[Optional[Session]]:
        """The session for token, or None when it is missing, invalid, expired or revoked."""
        return StoreResult.success(self._decode(token))

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _issue(self, user: dict) -> Optional[Session]:
        token = create_access_token(
            {"sub": user["id"], "email": user["email"], "role": "admin"},
            self.secret,
            timedelta(minutes=self.expire_minutes),
        )
        return self._decode(token)

    def _decode(self, token: Optional[str]) -> Optional[Session]:
        if not token:
            return None
        try:
            payload = decode_access_token(token, self.secret)
        except InvalidTokenError as e:
            logger.debug(f"Rejected session token: {str(e)}")
            return None
        if payload["jti"] in self._revoked:
            return None
        return Session(
            token=token,
            user_id=payload["sub"],
            email=payload.get("email", ""),
            token_id=payload["jti"],
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    def _emit(self, event: str, session: Session) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception as e:
                logger.error(f"Auth listener failed on {event}: {str(e)}", exc_info=True)
