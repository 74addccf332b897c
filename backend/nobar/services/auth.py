"""Admin authentication: password hashes and signed access tokens.

Token validity is signature + expiry only: there is no refresh flow and no
revocation list.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from nobar.config import Settings
from nobar.models.tables import AdminUser

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ROLES = ("admin", "superadmin")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthError(Exception):
    status_code = 401


class InvalidCredentials(AuthError):
    status_code = 401


class InactiveAccount(AuthError):
    status_code = 403


class InvalidToken(AuthError):
    status_code = 401


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # Unknown or corrupt hash format
        return False


def create_access_token(
    claims: dict,
    secret: str,
    expires_delta: timedelta,
    now: Optional[datetime] = None,
) -> str:
    issued = now or utcnow()
    payload = {**claims, "iat": int(issued.timestamp()), "exp": int((issued + expires_delta).timestamp())}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, secret: str) -> dict:
    """Claims of a valid token; raises InvalidToken on bad signature or expiry."""
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError as e:
        raise InvalidToken(str(e)) from e
    if not claims.get("id") or not claims.get("username"):
        raise InvalidToken("token is missing identity claims")
    return claims


class AuthService:
    """Login against the account table, or the fallback pair without a database."""

    def __init__(
        self,
        db: Optional[AsyncSession],
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.settings = settings
        self.clock = clock

    def issue_token(self, user_id: str, username: str, role: str) -> str:
        return create_access_token(
            {"id": user_id, "username": username, "role": role},
            self.settings.secret_key,
            timedelta(hours=self.settings.access_token_expire_hours),
            now=self.clock(),
        )

    async def login(self, username: str, password: str) -> tuple[str, dict]:
        """Authenticate and return ``(token, public user dict)``."""
        if self.db is None:
            return self._login_fallback(username, password)

        user = await self.find_user(username)
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentials("Invalid credentials")
        if not user.is_active:
            raise InactiveAccount("Account is disabled")

        user.last_login = self.clock()
        await self.db.flush()
        logger.info(f"Admin login: {user.username}")

        token = self.issue_token(str(user.id), user.username, user.role)
        return token, {"id": str(user.id), "username": user.username, "email": user.email, "role": user.role}

    def _login_fallback(self, username: str, password: str) -> tuple[str, dict]:
        # Degraded mode for deployments without a database
        if username != self.settings.fallback_admin_username or password != self.settings.fallback_admin_password:
            raise InvalidCredentials("Invalid credentials")
        logger.warning("Admin login via fallback credentials (no database configured)")
        token = self.issue_token("admin", username, "superadmin")
        return token, {"id": "admin", "username": username, "email": None, "role": "superadmin"}

    async def find_user(self, username_or_email: str) -> Optional[AdminUser]:
        result = await self.db.execute(
            select(AdminUser).where(
                or_(AdminUser.username == username_or_email, AdminUser.email == username_or_email)
            )
        )
        return result.scalars().first()

    async def create_user(
        self,
        username: str,
        password: str,
        email: Optional[str] = None,
        role: str = "admin",
    ) -> AdminUser:
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        if await self.find_user(username) or (email and await self.find_user(email)):
            raise ValueError("User already exists")
        user = AdminUser(
            username=username,
            email=email,
            password_hash=hash_password(password),
            role=role,
            is_active=True,
        )
        self.db.add(user)
        await self.db.flush()
        return user

    async def list_users(self) -> list[AdminUser]:
        result = await self.db.execute(select(AdminUser).order_by(AdminUser.id))
        return list(result.scalars().all())

    async def seed_bootstrap_admin(self) -> Optional[AdminUser]:
        """Create the configured superadmin if the account table is empty."""
        if self.db is None or not self.settings.has_bootstrap_admin:
            return None
        count = await self.db.scalar(select(func.count()).select_from(AdminUser))
        if count:
            return None
        user = await self.create_user(
            self.settings.bootstrap_admin_username,
            self.settings.bootstrap_admin_password,
            email=self.settings.bootstrap_admin_email,
            role="superadmin",
        )
        logger.info(f"Created bootstrap superadmin '{user.username}'")
        return user
