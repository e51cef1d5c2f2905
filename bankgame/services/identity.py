"""
Identity verification against the external auth service.

A bearer token is exchanged for the user id it belongs to with one bounded
GET request. Rejected tokens surface as AuthError; anything else that goes
wrong on the way surfaces as UpstreamError.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from bankgame.core.exceptions import AuthError, UpstreamError
from bankgame.settings import AuthSettings

logger = logging.getLogger(__name__)

USER_PATH = "/auth/v1/user"


class IdentityVerifier(Protocol):
    async def verify(self, token: Optional[str]) -> str: ...


def parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class HttpIdentityVerifier:
    """Resolves bearer tokens through the identity service's user endpoint."""

    def __init__(self, settings: AuthSettings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client

    def _headers(self, token: str) -> dict:
        headers = {"Authorization": f"Bearer {token}"}
        if self.settings.api_key is not None:
            headers["apikey"] = self.settings.api_key.get_secret_value()
        return headers

    async def verify(self, token: Optional[str]) -> str:
        """
        Return the user id behind a bearer token.

        Raises:
            AuthError: Token missing, rejected, or not bound to a user
            UpstreamError: Identity service unreachable or misbehaving
        """
        if not token:
            raise AuthError("Missing session", code="missing_session")

        url = f"{self.settings.base_url}{USER_PATH}"
        try:
            if self._client is not None:
                resp = await self._client.get(url, headers=self._headers(token))
            else:
                async with httpx.AsyncClient(timeout=self.settings.timeout_seconds) as client:
                    resp = await client.get(url, headers=self._headers(token))
        except httpx.HTTPError as exc:
            logger.warning(f"Identity lookup failed: {exc}")
            raise UpstreamError("Identity service unavailable") from exc

        if resp.status_code in (401, 403):
            raise AuthError("Invalid session")
        if resp.status_code != 200:
            logger.warning(f"Identity service answered {resp.status_code}")
            raise UpstreamError("Identity service returned an unexpected status")

        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamError("Identity service returned malformed JSON") from exc
        user_id = data.get("id") if isinstance(data, dict) else None
        if not user_id:
            raise AuthError("Invalid session")
        return str(user_id)
