"""Unit tests for authentication module.

Tests for Cognito client, session cookies, and configuration validation.
"""

import asyncio
import base64
import hashlib
import hmac
import json
import time

import pytest
from unittest.mock import patch, MagicMock
from botocore.exceptions import ClientError

from usage_dashboard.config import AppConfig


def _config(**overrides):
    values = dict(
        cognito_user_pool_id="us-east-1_testpool",
        cognito_client_id="test-client-id",
        cognito_client_secret="test-client-secret",
        aws_region="us-east-1",
    )
    values.update(overrides)
    return AppConfig(**values)


# Test configuration module
class TestConfiguration:
    """Tests for configuration module."""

    def test_configuration_error_includes_variable_name(self):
        """Test that ConfigurationError includes the variable name."""
        from usage_dashboard.config import ConfigurationError

        error = ConfigurationError("TEST_VAR")
        assert "TEST_VAR" in str(error)
        assert error.variable_name == "TEST_VAR"

    def test_configuration_error_with_custom_message(self):
        """Test ConfigurationError with custom message."""
        from usage_dashboard.config import ConfigurationError

        error = ConfigurationError("TEST_VAR", "custom message")
        assert "TEST_VAR" in str(error)
        assert "custom message" in str(error)

    @patch.dict('os.environ', {}, clear=True)
    def test_missing_required_env_var_raises_error(self):
        """Test that missing required env vars raise ConfigurationError."""
        from usage_dashboard.config import ConfigurationError, get_config

        # Clear the cache
        get_config.cache_clear()

        with pytest.raises(ConfigurationError) as exc_info:
            get_config()

        assert exc_info.value.variable_name == "COGNITO_USER_POOL_ID"
        get_config.cache_clear()

    @patch.dict('os.environ', {
        'COGNITO_USER_POOL_ID': 'us-east-1_testpool',
        'COGNITO_CLIENT_ID': 'test-client-id',
        'COGNITO_CLIENT_SECRET': 'test-client-secret',
        'AWS_REGION': 'us-east-1',
    }, clear=True)
    def test_valid_config_loads_successfully(self):
        """Test that valid config loads without errors and applies defaults."""
        config = AppConfig.from_env()

        assert config.cognito_user_pool_id == "us-east-1_testpool"
        assert config.aws_region == "us-east-1"
        assert config.usage_table_name == "admin-dashboard-usage"
        assert config.users_table_name == "admin-dashboard-users"
        assert config.refresh_interval_seconds == 60
        assert config.dev_mode is False

    @patch.dict('os.environ', {
        'DEV_MODE': 'true',
        'AWS_REGION': 'eu-west-1',
        'USAGE_TABLE_NAME': 'custom-usage',
        'DASHBOARD_REFRESH_SECONDS': '0',
    }, clear=True)
    def test_dev_mode_makes_cognito_optional(self):
        """Test that dev mode fills in placeholder Cognito values."""
        config = AppConfig.from_env()

        assert config.dev_mode is True
        assert config.cognito_user_pool_id == "dev-pool"
        assert config.usage_table_name == "custom-usage"
        assert config.refresh_interval_seconds == 0

    @patch.dict('os.environ', {'DEV_MODE': 'true'}, clear=True)
    def test_region_required_in_dev_mode(self):
        """Test that AWS_REGION is required even in dev mode."""
        from usage_dashboard.config import ConfigurationError

        with pytest.raises(ConfigurationError) as exc_info:
            AppConfig.from_env()

        assert exc_info.value.variable_name == "AWS_REGION"

    @pytest.mark.parametrize("value", ["soon", "-5"])
    def test_invalid_refresh_interval_raises_error(self, value):
        """Test that a bad refresh interval is rejected."""
        from usage_dashboard.config import ConfigurationError

        env = {'DEV_MODE': 'true', 'AWS_REGION': 'us-east-1', 'DASHBOARD_REFRESH_SECONDS': value}
        with patch.dict('os.environ', env, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                AppConfig.from_env()

        assert exc_info.value.variable_name == "DASHBOARD_REFRESH_SECONDS"


class TestCognitoAuth:
    """Tests for Cognito client."""

    def test_cognito_auth_initializes_with_config(self):
        """Test that CognitoAuth initializes correctly with config."""
        from usage_dashboard.auth.cognito import CognitoAuth

        auth = CognitoAuth(config=_config(), client=MagicMock())

        assert auth.user_pool_id == "us-east-1_testpool"
        assert auth.client_id == "test-client-id"
        assert auth.issuer == "https://cognito-idp.us-east-1.amazonaws.com/us-east-1_testpool"

    def test_cognito_auth_generates_secret_hash(self):
        """Test that secret hash is generated correctly."""
        from usage_dashboard.auth.cognito import CognitoAuth

        auth = CognitoAuth(config=_config(), client=MagicMock())

        expected = base64.b64encode(hmac.new(
            b"test-client-secret",
            b"admin@example.comtest-client-id",
            hashlib.sha256,
        ).digest()).decode()
        assert auth._get_secret_hash("admin@example.com") == expected

    def test_authenticate_returns_tokens(self):
        """Test a successful password sign-in."""
        from usage_dashboard.auth.cognito import CognitoAuth

        client = MagicMock()
        client.initiate_auth.return_value = {
            "AuthenticationResult": {
                "AccessToken": "access",
                "IdToken": "id",
                "RefreshToken": "refresh",
                "ExpiresIn": 3600,
                "TokenType": "Bearer",
            }
        }
        auth = CognitoAuth(config=_config(), client=client)

        tokens = asyncio.run(auth.authenticate("admin@example.com", "secret"))

        assert tokens.access_token == "access"
        assert tokens.refresh_token == "refresh"
        kwargs = client.initiate_auth.call_args.kwargs
        assert kwargs["AuthFlow"] == "USER_PASSWORD_AUTH"
        assert kwargs["AuthParameters"]["USERNAME"] == "admin@example.com"
        assert "SECRET_HASH" in kwargs["AuthParameters"]

    def test_authenticate_bad_password_raises_error(self):
        """Test that rejected credentials raise AuthenticationError."""
        from usage_dashboard.auth.cognito import CognitoAuth, AuthenticationError

        client = MagicMock()
        client.initiate_auth.side_effect = ClientError(
            {"Error": {"Code": "NotAuthorizedException", "Message": "Incorrect username or password."}},
            "InitiateAuth",
        )
        auth = CognitoAuth(config=_config(), client=client)

        with pytest.raises(AuthenticationError) as exc_info:
            asyncio.run(auth.authenticate("admin@example.com", "wrong"))

        assert "Invalid email or password" in str(exc_info.value)

    def test_authenticate_challenge_raises_error(self):
        """Test that challenge responses are rejected."""
        from usage_dashboard.auth.cognito import CognitoAuth, AuthenticationError

        client = MagicMock()
        client.initiate_auth.return_value = {"ChallengeName": "NEW_PASSWORD_REQUIRED"}
        auth = CognitoAuth(config=_config(), client=client)

        with pytest.raises(AuthenticationError) as exc_info:
            asyncio.run(auth.authenticate("admin@example.com", "secret"))

        assert "NEW_PASSWORD_REQUIRED" in str(exc_info.value)

    def test_refresh_tokens_keeps_refresh_token(self):
        """Test that the original refresh token is reused when none is returned."""
        from usage_dashboard.auth.cognito import CognitoAuth

        client = MagicMock()
        client.initiate_auth.return_value = {
            "AuthenticationResult": {"AccessToken": "new-access", "IdToken": "new-id"}
        }
        auth = CognitoAuth(config=_config(), client=client)

        tokens = asyncio.run(auth.refresh_tokens("refresh", "admin"))

        assert tokens.access_token == "new-access"
        assert tokens.refresh_token == "refresh"
        assert client.initiate_auth.call_args.kwargs["AuthFlow"] == "REFRESH_TOKEN_AUTH"


class TestValidateToken:
    """Tests for token validation."""

    def test_validate_token_extracts_user_info(self):
        """Test that validate_token extracts user info correctly."""
        from usage_dashboard.auth.cognito import CognitoAuth

        auth = CognitoAuth(config=_config(), client=MagicMock())

        # Mock the internal methods to bypass JWKS validation
        mock_signing_key = {"kty": "RSA", "kid": "test-key-id"}

        with patch.object(auth, '_get_signing_key', return_value=mock_signing_key):
            with patch('usage_dashboard.auth.cognito.jwk.construct'):
                with patch('usage_dashboard.auth.cognito.jwt.decode') as mock_decode:
                    mock_decode.return_value = {
                        "sub": "user-456-def",
                        "username": "testuser",
                        "token_use": "access",
                        "exp": int(time.time()) + 3600
                    }

                    user_info = auth.validate_token("dummy.token.value")

                    assert user_info.user_id == "user-456-def"
                    assert user_info.username == "testuser"

    def test_validate_token_reads_email_from_id_token(self):
        """Test that email and username come from the ID token."""
        from usage_dashboard.auth.cognito import CognitoAuth

        auth = CognitoAuth(config=_config(), client=MagicMock())

        with patch.object(auth, '_get_signing_key', return_value={"kid": "k"}):
            with patch('usage_dashboard.auth.cognito.jwk.construct'):
                with patch('usage_dashboard.auth.cognito.jwt.decode') as mock_decode:
                    mock_decode.side_effect = [
                        {"sub": "user-1", "token_use": "access"},
                        {"sub": "user-1", "email": "admin@example.com", "cognito:username": "admin"},
                    ]

                    user_info = auth.validate_token("access.token.value", id_token="id.token.value")

                    assert user_info.email == "admin@example.com"
                    assert user_info.username == "admin"

    def test_validate_token_expired_raises_error(self):
        """Test that expired token raises TokenExpiredError."""
        from usage_dashboard.auth.cognito import CognitoAuth, TokenExpiredError
        from jose.exceptions import ExpiredSignatureError

        auth = CognitoAuth(config=_config(), client=MagicMock())

        # Mock the internal methods to simulate expired token
        mock_signing_key = {"kty": "RSA", "kid": "test-key-id"}

        with patch.object(auth, '_get_signing_key', return_value=mock_signing_key):
            with patch('usage_dashboard.auth.cognito.jwk.construct'):
                with patch('usage_dashboard.auth.cognito.jwt.decode') as mock_decode:
                    mock_decode.side_effect = ExpiredSignatureError("Token has expired")

                    with pytest.raises(TokenExpiredError):
                        auth.validate_token("dummy.expired.token")

    def test_validate_token_wrong_token_use_raises_error(self):
        """Test that tokens other than access or ID are rejected."""
        from usage_dashboard.auth.cognito import CognitoAuth, TokenValidationError

        auth = CognitoAuth(config=_config(), client=MagicMock())

        with patch.object(auth, '_get_signing_key', return_value={"kid": "k"}):
            with patch('usage_dashboard.auth.cognito.jwk.construct'):
                with patch('usage_dashboard.auth.cognito.jwt.decode') as mock_decode:
                    mock_decode.return_value = {"sub": "user-1", "token_use": "refresh"}

                    with pytest.raises(TokenValidationError):
                        auth.validate_token("dummy.token.value")

    def test_malformed_token_raises_error(self):
        """Test that a token without a readable header is rejected."""
        from usage_dashboard.auth.cognito import CognitoAuth, TokenValidationError

        auth = CognitoAuth(config=_config(), client=MagicMock())

        with pytest.raises(TokenValidationError):
            auth.validate_token("not-a-valid-token")


class TestSessionCookies:
    """Tests for session cookie helpers."""

    def test_set_session_cookies_writes_both_cookies(self):
        """Test that the session and refresh cookies are set."""
        from fastapi import Response
        from usage_dashboard.auth.middleware import (
            REFRESH_COOKIE_NAME,
            SESSION_COOKIE_NAME,
            set_session_cookies,
        )

        response = Response()
        set_session_cookies(response, {"access_token": "a"}, "refresh-token", secure=False)

        headers = response.headers.getlist("set-cookie")
        assert any(h.startswith(f"{SESSION_COOKIE_NAME}=") for h in headers)
        assert any(h.startswith(f"{REFRESH_COOKIE_NAME}=refresh-token") for h in headers)
        assert all("HttpOnly" in h for h in headers)

    def test_set_session_cookies_without_refresh_token(self):
        """Test that no refresh cookie is set when none was issued."""
        from fastapi import Response
        from usage_dashboard.auth.middleware import set_session_cookies

        response = Response()
        set_session_cookies(response, {"access_token": "a"}, None)

        assert len(response.headers.getlist("set-cookie")) == 1

    def test_session_cookie_holds_json(self):
        """Test that the session cookie value decodes to the session data."""
        from http.cookies import SimpleCookie
        from fastapi import Response
        from usage_dashboard.auth.middleware import SESSION_COOKIE_NAME, set_session_cookies

        response = Response()
        set_session_cookies(response, {"username": "admin"}, None)

        cookie = SimpleCookie()
        cookie.load(response.headers["set-cookie"])
        assert json.loads(cookie[SESSION_COOKIE_NAME].value) == {"username": "admin"}

    @pytest.mark.parametrize("value", [None, "not json", "[1]"])
    def test_unreadable_session_cookie_reads_as_none(self, value):
        """Test that a missing or malformed session cookie means no session."""
        from starlette.requests import Request
        from usage_dashboard.auth.middleware import SESSION_COOKIE_NAME, read_session

        headers = []
        if value is not None:
            headers.append((b"cookie", f"{SESSION_COOKIE_NAME}={value}".encode()))
        request = Request({"type": "http", "headers": headers})

        assert read_session(request) is None
