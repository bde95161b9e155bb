"""
Unit Tests for AuthService
==========================

Purpose
-------
Test registration, login, the demo account and bearer token handling.

Test Coverage
-------------
- register() validation, duplicate emails, password hashing
- login() success, wrong password, unknown email, demo credentials
- verify() / refresh() token type separation and expiry
- current_user()
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from src.core.config.config import Config
from src.modules.auth.service import check_password, hash_password
from src.modules.shared.exceptions import UnauthorizedError, ValidationError

pytestmark = pytest.mark.unit


# ============================================================================
# PASSWORDS
# ============================================================================


class TestPasswordHashing:
    def test_hash_and_check(self):
        hashed = hash_password("s3cret!")

        assert hashed != "s3cret!"
        assert check_password("s3cret!", hashed) is True
        assert check_password("wrong", hashed) is False

    def test_malformed_hash_is_a_mismatch(self):
        assert check_password("anything", "not-a-bcrypt-hash") is False


# ============================================================================
# ACCOUNTS
# ============================================================================


class TestRegisterAndLogin:
    async def test_register_then_login(self, container, published_events):
        # Act
        registered = await container.auth.register("Player@Example.com", "hunter22", "Ada", "Lovelace")
        logged_in = await container.auth.login("player@example.com", "hunter22")

        # Assert
        assert registered["message"] == "注册成功"
        assert registered["user"]["email"] == "player@example.com"
        assert registered["user"]["firstName"] == "Ada"
        assert logged_in["message"] == "登录成功"
        assert logged_in["user"]["id"] == registered["user"]["id"]
        assert published_events.payloads("user.registered") == [{"user_id": registered["user"]["id"]}]

        claims = container.auth.verify(logged_in["accessToken"])
        assert claims["userId"] == registered["user"]["id"]
        assert claims["email"] == "player@example.com"

    async def test_duplicate_email_rejected(self, container):
        await container.auth.register("player@example.com", "hunter22")

        with pytest.raises(ValidationError) as exc_info:
            await container.auth.register("PLAYER@example.com", "another1")

        assert exc_info.value.field == "email"

    @pytest.mark.parametrize(
        "email,password,field_name",
        [
            ("not-an-email", "hunter22", "email"),
            ("player@example.com", "short", "password"),
            ("player@example.com", None, "password"),
            ("demo@levelupsolo.net", "hunter22", "email"),
        ],
    )
    async def test_register_validation(self, container, email, password, field_name):
        with pytest.raises(ValidationError) as exc_info:
            await container.auth.register(email, password)

        assert exc_info.value.field == field_name

    async def test_wrong_password(self, container):
        await container.auth.register("player@example.com", "hunter22")

        with pytest.raises(UnauthorizedError) as exc_info:
            await container.auth.login("player@example.com", "hunter23")

        assert exc_info.value.message == "邮箱或密码错误"

    async def test_unknown_email(self, container):
        with pytest.raises(UnauthorizedError):
            await container.auth.login("nobody@example.com", "hunter22")

    async def test_missing_credentials(self, container):
        with pytest.raises(ValidationError):
            await container.auth.login("", "")

    async def test_demo_login(self, container):
        result = await container.auth.login(Config.DEMO_EMAIL, Config.DEMO_PASSWORD)

        assert result["user"]["id"] == Config.DEMO_USER_ID
        assert container.auth.verify(result["accessToken"])["userId"] == Config.DEMO_USER_ID


# ============================================================================
# TOKENS
# ============================================================================


class TestTokens:
    def test_refresh_token_not_accepted_as_access(self, container):
        tokens = container.auth.issue_tokens("user-1", "player@example.com")

        with pytest.raises(UnauthorizedError):
            container.auth.verify(tokens["refreshToken"])

    async def test_access_token_not_accepted_for_refresh(self, container):
        tokens = container.auth.issue_tokens("user-1", "player@example.com")

        with pytest.raises(UnauthorizedError) as exc_info:
            await container.auth.refresh(tokens["accessToken"])

        assert exc_info.value.message == "无效的刷新令牌"

    async def test_refresh_issues_new_pair(self, container):
        tokens = container.auth.issue_tokens("user-1", "player@example.com")

        refreshed = await container.auth.refresh(tokens["refreshToken"])

        assert container.auth.verify(refreshed["accessToken"])["userId"] == "user-1"

    async def test_refresh_token_required(self, container):
        with pytest.raises(ValidationError):
            await container.auth.refresh(None)

    def test_expired_token(self, container):
        past = datetime.now(timezone.utc) - timedelta(days=10)
        token = jwt.encode(
            {"userId": "user-1", "type": "access", "iat": past, "exp": past + timedelta(days=1)},
            Config.JWT_SECRET,
            algorithm=Config.JWT_ALGORITHM,
        )

        with pytest.raises(UnauthorizedError) as exc_info:
            container.auth.verify(token)

        assert exc_info.value.message == "令牌已过期"

    def test_foreign_signature(self, container):
        token = jwt.encode({"userId": "user-1", "type": "access"}, "some-other-secret", algorithm="HS256")

        with pytest.raises(UnauthorizedError):
            container.auth.verify(token)

    @pytest.mark.parametrize("token", [None, "", "garbage"])
    def test_missing_or_malformed(self, container, token):
        with pytest.raises(UnauthorizedError):
            container.auth.verify(token)


class TestCurrentUser:
    async def test_registered_user(self, container):
        registered = await container.auth.register("player@example.com", "hunter22")
        claims = container.auth.verify(registered["accessToken"])

        profile = await container.auth.current_user(claims)

        assert profile == registered["user"]

    async def test_demo_user(self, container):
        profile = await container.auth.current_user({"userId": Config.DEMO_USER_ID})

        assert profile["email"] == Config.DEMO_EMAIL

    async def test_deleted_user_falls_back_to_claims(self, container):
        profile = await container.auth.current_user({"userId": "ghost", "email": "ghost@example.com"})

        assert profile["id"] == "ghost"
        assert profile["email"] == "ghost@example.com"
