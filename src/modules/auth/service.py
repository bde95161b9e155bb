"""
Auth Service
============

Purpose
-------
Email/password accounts and HS256 bearer tokens.

Tokens
------
- access:  {userId, email, type: "access"}, 7 days
- refresh: {userId, email, type: "refresh"}, 30 days
Both are signed with `Config.JWT_SECRET`. A refresh token is never accepted
as an access token and vice versa.

Demo Account
------------
`demo@levelupsolo.net` / `demo1234` logs in as `demo_user` without touching
the database; that identity is served by the in-memory demo store.

Dependencies
------------
- PyJWT: token signing and verification
- bcrypt: password hashing (run off the event loop)
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

import bcrypt
import jwt

from src.core.config.config import Config
from src.core.event.types import USER_REGISTERED
from src.core.validation.input_validator import InputValidator
from src.database.models import User
from src.modules.shared.base_service import BaseService
from src.modules.shared.exceptions import UnauthorizedError, ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from src.core.config.manager import ConfigManager
    from src.core.event.bus import EventBus
    from src.modules.store.provider import StoreProvider


ACCESS = "access"
REFRESH = "refresh"
MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


class AuthService(BaseService):
    """
    Public Methods
    --------------
    - login() -> {message, accessToken, refreshToken, user}
    - register() -> same shape as login
    - refresh() -> {accessToken, refreshToken}
    - verify() -> access token claims
    - current_user() -> public profile for a verified identity
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        stores: StoreProvider,
        secret: Optional[str] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._stores = stores
        self._secret = secret or Config.JWT_SECRET
        self._algorithm = Config.JWT_ALGORITHM

    # ========================================================================
    # TOKENS
    # ========================================================================

    def _encode(self, user_id: str, email: str, token_type: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "userId": user_id,
            "email": email,
            "type": token_type,
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def issue_tokens(self, user_id: str, email: str) -> Dict[str, str]:
        return {
            "accessToken": self._encode(user_id, email, ACCESS, timedelta(days=Config.ACCESS_TOKEN_TTL_DAYS)),
            "refreshToken": self._encode(user_id, email, REFRESH, timedelta(days=Config.REFRESH_TOKEN_TTL_DAYS)),
        }

    def _decode(self, token: Any, expected_type: str) -> Dict[str, Any]:
        if not isinstance(token, str) or not token:
            raise UnauthorizedError("missing_token")
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            raise UnauthorizedError("expired_token", "令牌已过期")
        except jwt.InvalidTokenError:
            raise UnauthorizedError("invalid_token", "无效的令牌")

        if claims.get("type", ACCESS) != expected_type or not claims.get("userId"):
            raise UnauthorizedError("wrong_token_type", "无效的令牌")
        return claims

    def verify(self, token: Any) -> Dict[str, Any]:
        """
        Decode an access token.

        Raises:
            UnauthorizedError: Missing, expired, malformed or refresh token
        """
        return self._decode(token, ACCESS)

    async def refresh(self, refresh_token: Any) -> Dict[str, str]:
        if not refresh_token:
            raise ValidationError("refreshToken", "刷新令牌是必需的")
        try:
            claims = self._decode(refresh_token, REFRESH)
        except UnauthorizedError:
            raise UnauthorizedError("invalid_refresh_token", "无效的刷新令牌")
        self.log.debug("Tokens refreshed", extra={"user_id": claims["userId"]})
        return self.issue_tokens(claims["userId"], claims.get("email", ""))

    # ========================================================================
    # ACCOUNTS
    # ========================================================================

    def _demo_profile(self) -> Dict[str, Any]:
        return {
            "id": Config.DEMO_USER_ID,
            "email": Config.DEMO_EMAIL,
            "firstName": "Demo",
            "lastName": "User",
            "profileImageUrl": None,
            "hasCompletedOnboarding": True,
        }

    async def login(self, email: Any, password: Any) -> Dict[str, Any]:
        """
        Raises:
            ValidationError: Missing email or password
            UnauthorizedError: Unknown email or wrong password
        """
        if not email or not password:
            raise ValidationError("email", "邮箱和密码是必填项")
        email = str(email).strip().lower()
        password = str(password)

        if email == Config.DEMO_EMAIL and password == Config.DEMO_PASSWORD:
            self.log.info("Demo login", extra={"user_id": Config.DEMO_USER_ID})
            return {
                "message": "登录成功",
                **self.issue_tokens(Config.DEMO_USER_ID, email),
                "user": self._demo_profile(),
            }

        async with self._stores.unit_of_work(None) as uow:
            user = await uow.get_user_by_email(email)

        if user is None or not user.hashed_password:
            self.log.info("Login rejected: unknown email", extra={"reason": "unknown_email"})
            raise UnauthorizedError("bad_credentials", "邮箱或密码错误")
        if not await asyncio.to_thread(check_password, password, user.hashed_password):
            self.log.info("Login rejected: wrong password", extra={"user_id": user.id, "reason": "bad_password"})
            raise UnauthorizedError("bad_credentials", "邮箱或密码错误")

        self.log.info("User logged in", extra={"user_id": user.id})
        return {
            "message": "登录成功",
            **self.issue_tokens(user.id, user.email),
            "user": user.to_public_dict(),
        }

    async def register(
        self,
        email: Any,
        password: Any,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create an account and log it in.

        Raises:
            ValidationError: Bad email, short password or email already taken
        """
        email = InputValidator.validate_email(email)
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError("password", f"密码至少需要{MIN_PASSWORD_LENGTH}个字符")
        if email == Config.DEMO_EMAIL:
            raise ValidationError("email", "该邮箱已被注册")

        hashed = await asyncio.to_thread(hash_password, password)

        async with self._stores.unit_of_work(None) as uow:
            if await uow.get_user_by_email(email) is not None:
                raise ValidationError("email", "该邮箱已被注册")
            user = uow.add_user(
                User(
                    id=str(uuid.uuid4()),
                    email=email,
                    first_name=InputValidator.validate_optional_string(first_name, "firstName", 100),
                    last_name=InputValidator.validate_optional_string(last_name, "lastName", 100),
                    hashed_password=hashed,
                )
            )
            await uow.flush()
            profile = user.to_public_dict()

        self.log.info("User registered", extra={"user_id": profile["id"]})
        await self.emit_event(USER_REGISTERED, {"user_id": profile["id"]})
        return {
            "message": "注册成功",
            **self.issue_tokens(profile["id"], email),
            "user": profile,
        }

    async def current_user(self, claims: Dict[str, Any]) -> Dict[str, Any]:
        """Profile for verified token claims; falls back to the claims if the row is gone."""
        user_id = claims["userId"]
        if self._stores.is_demo(user_id):
            return self._demo_profile()

        async with self._stores.unit_of_work(None) as uow:
            user = await uow.get_user(user_id)

        if user is None:
            return {
                "id": user_id,
                "email": claims.get("email"),
                "firstName": "",
                "lastName": "",
                "profileImageUrl": None,
                "hasCompletedOnboarding": True,
            }
        return user.to_public_dict()
