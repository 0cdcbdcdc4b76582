"""Admin sign-in against a Cognito user pool.

Admins sign in with email and password through InitiateAuth, and every
request afterwards is checked by verifying the stored access token against
the pool's published signing keys. Only sign-in is supported; accounts are
managed in the pool itself.
"""

import asyncio
import base64
import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
import httpx
from botocore.exceptions import ClientError
from jose import jwk, jwt, JWTError
from jose.exceptions import ExpiredSignatureError

from usage_dashboard.config import AppConfig, get_config

logger = logging.getLogger(__name__)

# Seconds before the pool's signing keys are fetched again
SIGNING_KEYS_TTL = 3600

# InitiateAuth error codes mapped to the message shown to the admin
SIGN_IN_ERRORS = {
    "NotAuthorizedException": "Invalid email or password",
    "UserNotFoundException": "Invalid email or password",
    "UserNotConfirmedException": "User account not confirmed",
    "PasswordResetRequiredException": "Password reset required",
}


class AuthenticationError(Exception):
    """Sign-in or session check failed."""


class TokenExpiredError(AuthenticationError):
    """The session's access token is past its expiry."""


class TokenValidationError(AuthenticationError):
    """A token could not be verified against the pool."""


@dataclass
class TokenResponse:
    """Tokens issued by the user pool for one admin session.

    Attributes:
        access_token: Token checked on every dashboard request
        id_token: Token carrying the admin's email and username
        refresh_token: Token used to renew the session, when issued
        expires_in: Lifetime of the access token in seconds
        token_type: Always "Bearer" for Cognito
    """
    access_token: str
    id_token: str
    refresh_token: Optional[str]
    expires_in: int
    token_type: str

    @classmethod
    def from_auth_result(
        cls, result: Dict[str, Any], refresh_token: Optional[str] = None
    ) -> "TokenResponse":
        """Build from an InitiateAuth AuthenticationResult.

        Refresh flows do not return a new refresh token, so the one that
        was sent is carried forward.
        """
        return cls(
            access_token=result["AccessToken"],
            id_token=result["IdToken"],
            refresh_token=result.get("RefreshToken", refresh_token),
            expires_in=result.get("ExpiresIn", 3600),
            token_type=result.get("TokenType", "Bearer"),
        )


@dataclass
class UserInfo:
    """The signed-in admin as shown in the dashboard header.

    Attributes:
        user_id: The token's sub claim
        email: Email from the ID token, if it verified
        username: Pool username, falling back to the email
    """
    user_id: str
    email: Optional[str] = None
    username: Optional[str] = None


class CognitoAuth:
    """Signs admins in and verifies their session tokens.

    A single instance lives on ``app.state`` and is shared by the login
    routes and the auth middleware, so the pool's signing keys are fetched
    once per TTL rather than per request.
    """

    def __init__(self, config: Optional[AppConfig] = None, client: Any = None):
        """Initialize the client.

        Args:
            config: Application configuration (defaults to get_config())
            client: cognito-idp client (created from the config region if not provided)
        """
        config = config or get_config()
        self.user_pool_id = config.cognito_user_pool_id
        self.client_id = config.cognito_client_id
        self.client_secret = config.cognito_client_secret
        self.region = config.aws_region

        self._client = client or boto3.client("cognito-idp", region_name=self.region)

        self.issuer = f"https://cognito-idp.{self.region}.amazonaws.com/{self.user_pool_id}"
        self._keys_url = f"{self.issuer}/.well-known/jwks.json"
        self._signing_keys: Optional[dict] = None
        self._signing_keys_fetched_at: float = 0

    def _get_secret_hash(self, username: str) -> str:
        """HMAC-SHA256 of username + client ID, keyed by the app client secret."""
        digest = hmac.new(
            self.client_secret.encode("utf-8"),
            (username + self.client_id).encode("utf-8"),
            hashlib.sha256,
        ).digest()
        return base64.b64encode(digest).decode()

    async def _initiate_auth(self, flow: str, parameters: Dict[str, str]) -> Dict[str, Any]:
        """Run InitiateAuth in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: self._client.initiate_auth(
                ClientId=self.client_id,
                AuthFlow=flow,
                AuthParameters=parameters,
            ),
        )

    async def authenticate(self, email: str, password: str) -> TokenResponse:
        """Sign an admin in with email and password.

        Raises:
            AuthenticationError: With a message suitable for the login page
        """
        try:
            response = await self._initiate_auth(
                "USER_PASSWORD_AUTH",
                {
                    "USERNAME": email,
                    "PASSWORD": password,
                    "SECRET_HASH": self._get_secret_hash(email),
                },
            )
        except ClientError as e:
            error = e.response.get("Error", {})
            error_code = error.get("Code", "")
            logger.warning("Sign-in failed", extra={"error_code": error_code})
            message = SIGN_IN_ERRORS.get(error_code)
            if message is None:
                message = f"Authentication failed: {error.get('Message', str(e))}"
            raise AuthenticationError(message)

        result = response.get("AuthenticationResult")
        if not result:
            # MFA and forced password change are not handled here
            challenge = response.get("ChallengeName", "unknown")
            raise AuthenticationError(f"Unsupported authentication challenge: {challenge}")

        return TokenResponse.from_auth_result(result)

    async def refresh_tokens(self, refresh_token: str, username: str) -> TokenResponse:
        """Renew an admin session whose access token expired.

        Args:
            refresh_token: Refresh token from the session cookie
            username: Username the secret hash is computed over

        Raises:
            AuthenticationError: If the pool rejects the refresh token
        """
        try:
            response = await self._initiate_auth(
                "REFRESH_TOKEN_AUTH",
                {
                    "REFRESH_TOKEN": refresh_token,
                    "SECRET_HASH": self._get_secret_hash(username),
                },
            )
        except ClientError as e:
            message = e.response.get("Error", {}).get("Message", str(e))
            raise AuthenticationError(f"Token refresh failed: {message}")

        return TokenResponse.from_auth_result(
            response.get("AuthenticationResult", {}), refresh_token
        )

    def _get_jwks(self, force: bool = False) -> dict:
        """Return the pool's signing keys, fetching them when stale.

        If a fetch fails and keys were fetched before, the old set is used.

        Raises:
            TokenValidationError: If no keys could ever be fetched
        """
        age = time.time() - self._signing_keys_fetched_at
        if not force and self._signing_keys and age < SIGNING_KEYS_TTL:
            return self._signing_keys

        try:
            with httpx.Client(timeout=10.0) as client:
                response = client.get(self._keys_url)
                response.raise_for_status()
                self._signing_keys = response.json()
        except httpx.HTTPError as e:
            logger.error("Could not fetch signing keys", extra={"error": str(e)})
            if self._signing_keys:
                return self._signing_keys
            raise TokenValidationError(f"Failed to fetch JWKS: {e}")

        self._signing_keys_fetched_at = time.time()
        return self._signing_keys

    def _get_signing_key(self, token: str) -> dict:
        """Find the key a token was signed with.

        An unknown key ID forces one refetch in case the pool rotated keys.

        Raises:
            TokenValidationError: If the header is unreadable or the key is unknown
        """
        try:
            kid = jwt.get_unverified_header(token).get("kid")
        except JWTError as e:
            raise TokenValidationError(f"Invalid token header: {e}")
        if not kid:
            raise TokenValidationError("Token missing 'kid' header")

        for force in (False, True):
            for key in self._get_jwks(force=force).get("keys", []):
                if key.get("kid") == kid:
                    return key
        raise TokenValidationError(f"Signing key {kid} not found in JWKS")

    def _decode(self, token: str, verify_exp: bool, audience: Optional[str] = None) -> dict:
        """Verify signature, issuer and (optionally) expiry and audience."""
        return jwt.decode(
            token,
            jwk.construct(self._get_signing_key(token)),
            algorithms=["RS256"],
            issuer=self.issuer,
            audience=audience,
            options={"verify_exp": verify_exp, "verify_aud": audience is not None},
        )

    def validate_token(
        self, token: str, verify_exp: bool = True, id_token: Optional[str] = None
    ) -> UserInfo:
        """Verify a session's access token and identify the admin.

        The ID token is only read for display fields; if it fails to
        verify the admin is still identified by the access token.

        Args:
            token: Access token from the session
            verify_exp: Whether an expired token is rejected
            id_token: ID token to read email and username from

        Raises:
            TokenExpiredError: If the access token has expired
            TokenValidationError: If the access token does not verify
        """
        try:
            # Access tokens carry client_id instead of aud
            claims = self._decode(token, verify_exp)
        except ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except JWTError as e:
            raise TokenValidationError(f"Invalid token: {e}")

        token_use = claims.get("token_use")
        if token_use not in ("access", "id"):
            raise TokenValidationError(f"Invalid token_use: {token_use}")
        user_id = claims.get("sub")
        if not user_id:
            raise TokenValidationError("Token missing 'sub' claim")

        user = UserInfo(user_id=user_id, username=claims.get("username"))
        if id_token:
            try:
                id_claims = self._decode(id_token, verify_exp, audience=self.client_id)
            except (JWTError, TokenValidationError) as e:
                logger.warning("ID token did not verify", extra={"error": str(e)})
            else:
                user.email = id_claims.get("email")
                user.username = id_claims.get("cognito:username") or user.email
        return user
