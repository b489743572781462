"""Identity provider client (GoTrue / Supabase Auth).

Validates an access token by asking the provider who it belongs to:

    GET {auth_url}/auth/v1/user
    apikey: <anon key>
    Authorization: Bearer <access token>

Outcomes:
- 200 with a user id -> AuthUser
- 401 / 403          -> None (token invalid or expired)
- anything else      -> IdentityProviderError

Access tokens are never logged.
"""

from dataclasses import dataclass
import logging
from typing import Any, Protocol

import httpx

from nearby_offers.settings import get_settings

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class AuthUser:
    """User as reported by the identity provider."""

    id: str
    email: str | None = None


class IdentityProviderError(RuntimeError):
    pass


class IdentityProvider(Protocol):
    async def get_user(self, access_token: str) -> AuthUser | None: ...


class SupabaseIdentityProvider:
    """Token validation against a GoTrue-compatible auth server."""

    USER_PATH = "/auth/v1/user"

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.auth_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.auth_api_key
        self.timeout = timeout or settings.auth_timeout_seconds
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def get_user(self, access_token: str) -> AuthUser | None:
        """Resolve the user owning `access_token`.

        Returns:
            AuthUser, or None if the provider rejects the token.

        Raises:
            IdentityProviderError: provider unreachable or unexpected response.
        """
        if not access_token:
            return None

        headers = {"Authorization": f"Bearer {access_token}"}
        if self.api_key:
            headers["apikey"] = self.api_key

        client = await self._get_client()
        try:
            resp = await client.get(self.USER_PATH, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("Identity provider request failed: %s", type(e).__name__)
            raise IdentityProviderError("Identity provider unreachable") from e

        if resp.status_code in (401, 403):
            return None
        if resp.status_code != 200:
            logger.warning("Identity provider returned unexpected status %s", resp.status_code)
            raise IdentityProviderError(f"Unexpected identity provider status {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise IdentityProviderError("Identity provider returned invalid JSON") from e

        return _parse_user(data)


def _parse_user(data: Any) -> AuthUser | None:
    if not isinstance(data, dict):
        raise IdentityProviderError("Unexpected identity provider payload")
    user_id = data.get("id")
    if not isinstance(user_id, str) or not user_id:
        return None
    email = data.get("email")
    return AuthUser(id=user_id, email=email if isinstance(email, str) else None)
