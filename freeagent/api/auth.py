"""OAuth 2.0 authorisation against the FreeAgent token endpoint."""

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import requests

from freeagent.api.errors import ConfigError, TokenError
from freeagent.api.ratelimit import RateLimiter

logger = logging.getLogger(__name__)

PRODUCTION_BASE_URL = "https://api.freeagent.com/v2"
SANDBOX_BASE_URL = "https://api.sandbox.freeagent.com/v2"

DEFAULT_EXPIRES_IN = 3600
REFRESH_BUFFER_SECONDS = 60
MAX_CLIENT_SECRETS = 2


def base_url_for(sandbox: bool) -> str:
    return SANDBOX_BASE_URL if sandbox else PRODUCTION_BASE_URL


@dataclass
class TokenSet:
    """Access and refresh tokens returned by the token endpoint."""

    access_token: str
    refresh_token: str | None
    expires_at: datetime
    token_type: str = "Bearer"

    def is_expired(self, buffer_seconds: int = REFRESH_BUFFER_SECONDS, now: datetime | None = None) -> bool:
        """Check whether the access token expires within ``buffer_seconds``."""
        if now is None:
            now = datetime.now(timezone.utc)
        return self.expires_at <= now + timedelta(seconds=buffer_seconds)

    @classmethod
    def from_response(
        cls, data: dict[str, Any], previous_refresh_token: str | None = None, now: datetime | None = None
    ) -> "TokenSet":
        """Build a TokenSet from a token endpoint response body.

        A response without a refresh token keeps ``previous_refresh_token``.

        Raises:
            TokenError: If the response has no access token.
        """
        access_token = data.get("access_token")
        if not access_token:
            raise TokenError("invalid_response", "No access token in response")

        if now is None:
            now = datetime.now(timezone.utc)
        try:
            expires_in = int(data.get("expires_in") or 0)
        except (TypeError, ValueError):
            expires_in = 0
        if expires_in <= 0:
            expires_in = DEFAULT_EXPIRES_IN

        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or previous_refresh_token,
            expires_at=now + timedelta(seconds=expires_in),
            token_type=data.get("token_type") or "Bearer",
        )


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code verifier and its S256 challenge.

    Returns:
        Tuple of (verifier, challenge).
    """
    verifier = secrets.token_urlsafe(64)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return verifier, challenge


def generate_state() -> str:
    return secrets.token_urlsafe(16)


class OAuthClient:
    """Talks to the authorisation and token endpoints.

    Up to two client secrets may be active while a secret is being rotated.
    Token calls use the primary secret and fall back to the secondary one
    when the server reports ``invalid_client``.

    Args:
        client_id: OAuth client identifier.
        client_secrets: Active secrets, primary first.
        sandbox: Use the sandbox host instead of production.
        session: HTTP session for token calls.
        rate_limiter: Limiter whose refresh budget token calls draw from.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        client_id: str,
        client_secrets: list[str],
        sandbox: bool = False,
        session: requests.Session | None = None,
        rate_limiter: RateLimiter | None = None,
        timeout: float = 30.0,
    ) -> None:
        if not client_id:
            raise ConfigError("client_id is required for OAuth authentication")
        active = [secret for secret in client_secrets if secret]
        if not active:
            raise ConfigError("At least one client secret is required for OAuth authentication")
        if len(active) > MAX_CLIENT_SECRETS:
            raise ConfigError(f"At most {MAX_CLIENT_SECRETS} client secrets can be active at once")

        self.client_id = client_id
        self.client_secrets = active
        self.base_url = base_url_for(sandbox)
        self.session = session or requests.Session()
        self.rate_limiter = rate_limiter
        self.timeout = timeout

    @property
    def authorization_endpoint(self) -> str:
        return f"{self.base_url}/approve_app"

    @property
    def token_endpoint(self) -> str:
        return f"{self.base_url}/token_endpoint"

    def authorization_url(self, redirect_uri: str, state: str, code_challenge: str | None = None) -> str:
        """Build the URL the user visits to approve the app."""
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "state": state,
        }
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"
        return f"{self.authorization_endpoint}?{urlencode(params)}"

    def exchange_code(self, code: str, redirect_uri: str, code_verifier: str | None = None) -> TokenSet:
        """Exchange an authorisation code for tokens.

        Raises:
            TokenError: If the token endpoint refuses the exchange.
        """
        form = {"grant_type": "authorization_code", "code": code, "redirect_uri": redirect_uri}
        if code_verifier:
            form["code_verifier"] = code_verifier

        logger.info("Exchanging authorization code for tokens")
        data = self._token_request(form)
        return TokenSet.from_response(data)

    def refresh(self, refresh_token: str) -> TokenSet:
        """Refresh an access token.

        Raises:
            TokenError: If the refresh token is rejected.
        """
        if not refresh_token:
            raise TokenError("invalid_request", "A refresh token is required")

        if self.rate_limiter is not None:
            self.rate_limiter.acquire_refresh()

        logger.info("Refreshing access token")
        data = self._token_request({"grant_type": "refresh_token", "refresh_token": refresh_token})
        tokens = TokenSet.from_response(data, previous_refresh_token=refresh_token)
        logger.info("Access token refreshed, expires at %s", tokens.expires_at.isoformat())
        return tokens

    def _token_request(self, form: dict[str, str]) -> dict[str, Any]:
        last_error: TokenError | None = None

        for index, secret in enumerate(self.client_secrets):
            if index > 0:
                logger.warning("Primary client secret rejected, retrying with secondary secret")

            response = self.session.post(
                self.token_endpoint,
                data=form,
                auth=(self.client_id, secret),
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
            if response.ok:
                return self._token_body(response)

            last_error = self._token_error(response)
            if last_error.error != "invalid_client" and response.status_code != 401:
                break

        assert last_error is not None
        logger.error("Token request failed: %s", last_error)
        raise last_error

    @staticmethod
    def _token_body(response: requests.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            logger.error("Token endpoint returned a non-JSON body (HTTP %d)", response.status_code)
            raise TokenError(
                "invalid_response", "Token endpoint did not return JSON", response.status_code, response
            ) from e
        if not isinstance(body, dict):
            logger.error("Token endpoint returned a non-object body (HTTP %d)", response.status_code)
            raise TokenError(
                "invalid_response", "Token endpoint did not return a JSON object", response.status_code, response
            )
        return body

    @staticmethod
    def _token_error(response: requests.Response) -> TokenError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return TokenError(
            body.get("error") or f"http_{response.status_code}",
            body.get("error_description") or (response.text or None),
            response.status_code,
            response,
        )
