"""Request-scoped dependencies shared by the discovery routes.

Every request gets its own store handle and an explicitly extracted credential;
tests swap these through `app.dependency_overrides`.
"""

from fastapi import Depends, Request

from nearby_offers.services.errors import Unauthenticated
from nearby_offers.services.identity import Credential, extract_credential, resolve_identity
from nearby_offers.services.identity_provider import AuthUser, IdentityProvider, SupabaseIdentityProvider
from nearby_offers.settings import get_settings
from nearby_offers.stores.discovery import DiscoveryStore, SqlDiscoveryStore


def get_store() -> DiscoveryStore:
    """Discovery store for this request (one DB session per query)."""
    return SqlDiscoveryStore()


def get_identity_provider(request: Request) -> IdentityProvider:
    """Identity provider client held on app.state (created on first use)."""
    provider = getattr(request.app.state, "identity_provider", None)
    if provider is None:
        provider = SupabaseIdentityProvider()
        request.app.state.identity_provider = provider
    return provider


def get_credential(request: Request) -> Credential:
    """Bearer header or session cookie, extracted once per request."""
    return extract_credential(
        request.headers.get("authorization"),
        request.cookies,
        get_settings().session_cookie_name,
    )


async def require_user(
    credential: Credential = Depends(get_credential),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> AuthUser:
    """Authenticated user or 401 (Unauthenticated)."""
    user = await resolve_identity(credential, provider, required=True)
    if user is None:
        raise Unauthenticated("Authentication required")
    return user
