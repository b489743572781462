"""Request identity resolution (bearer token vs. session cookie).

Resolution order, first match wins:
1. `Authorization: Bearer <token>` header -> validate with the identity provider.
   Header credentials belong to explicit non-browser callers (mobile apps), so a
   browser cookie never overrides them; an invalid bearer token does NOT fall
   back to the cookie.
2. Session cookie -> validate with the identity provider.
3. Anonymous.

Callers choose the failure mode:
- required=True  (follow/unfollow, ...): any failure raises Unauthenticated.
- required=False (feed browsing): failures resolve to Anonymous.

The credential is extracted once per request and passed explicitly. Tokens are
never logged or persisted.
"""

import base64
import binascii
from collections.abc import Mapping
from dataclasses import dataclass
import json
import logging
from typing import Protocol, Union

from nearby_offers.services.errors import Unauthenticated, UpstreamQueryError
from nearby_offers.services.identity_provider import AuthUser, IdentityProvider, IdentityProviderError

logger = logging.getLogger("uvicorn.error")

BEARER_PREFIX = "bearer "
BASE64_COOKIE_PREFIX = "base64-"
# Upper bound on numbered cookie chunks (<name>.0, <name>.1, ...)
MAX_COOKIE_CHUNKS = 16


@dataclass(frozen=True)
class BearerCredential:
    token: str

    def __repr__(self) -> str:
        return "BearerCredential(token=***)"


@dataclass(frozen=True)
class CookieCredential:
    token: str

    def __repr__(self) -> str:
        return "CookieCredential(token=***)"


Credential = Union[BearerCredential, CookieCredential, None]


@dataclass(frozen=True)
class Anonymous:
    @property
    def is_authenticated(self) -> bool:
        return False


@dataclass(frozen=True)
class Authenticated:
    user_id: str
    subscriptions: frozenset[str] = frozenset()
    email: str | None = None
    # False when the followed-commerce lookup failed and `subscriptions` is a stand-in
    subscriptions_loaded: bool = True

    @property
    def is_authenticated(self) -> bool:
        return True


Principal = Union[Anonymous, Authenticated]

ANONYMOUS = Anonymous()


class SubscriptionSource(Protocol):
    async def list_followed_commerce_ids(self, user_id: str) -> frozenset[str]: ...


# ============================================================
# Credential extraction
# ============================================================


def parse_bearer_token(authorization: str | None) -> str | None:
    """Return the token of a well-formed `Bearer <token>` header value."""
    if not authorization:
        return None
    if authorization[: len(BEARER_PREFIX)].lower() != BEARER_PREFIX:
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def _join_cookie_chunks(cookies: Mapping[str, str], name: str) -> str | None:
    raw = cookies.get(name)
    if raw is not None:
        return raw

    chunks: list[str] = []
    for i in range(MAX_COOKIE_CHUNKS):
        part = cookies.get(f"{name}.{i}")
        if part is None:
            break
        chunks.append(part)
    return "".join(chunks) or None


def _access_token_from_session(session: object) -> str | None:
    if isinstance(session, dict):
        token = session.get("access_token")
        return token if isinstance(token, str) and token else None
    # Older clients stored [access_token, refresh_token, ...]
    if isinstance(session, list) and session and isinstance(session[0], str):
        return session[0] or None
    return None


def read_session_cookie(cookies: Mapping[str, str], name: str) -> str | None:
    """Extract the access token from the session cookie.

    Accepted values:
    - raw access token
    - JSON session object / array
    - "base64-" + base64url(JSON session)
    The cookie may be split into numbered chunks, joined in order.
    """
    raw = _join_cookie_chunks(cookies, name)
    if not raw:
        return None
    raw = raw.strip()

    if raw.startswith(BASE64_COOKIE_PREFIX):
        encoded = raw[len(BASE64_COOKIE_PREFIX):]
        try:
            decoded = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
            return _access_token_from_session(json.loads(decoded))
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Malformed session cookie %s ignored", name)
            return None

    if raw.startswith(("{", "[")):
        try:
            return _access_token_from_session(json.loads(raw))
        except json.JSONDecodeError:
            logger.warning("Malformed session cookie %s ignored", name)
            return None

    return raw


def extract_credential(
    authorization: str | None,
    cookies: Mapping[str, str],
    cookie_name: str,
) -> Credential:
    """Pick the request credential. A bearer header always wins over the cookie."""
    token = parse_bearer_token(authorization)
    if token is not None:
        return BearerCredential(token)

    cookie_token = read_session_cookie(cookies, cookie_name)
    if cookie_token is not None:
        return CookieCredential(cookie_token)

    return None


# ============================================================
# Resolution
# ============================================================


async def resolve_identity(
    credential: Credential,
    provider: IdentityProvider,
    *,
    required: bool = False,
) -> AuthUser | None:
    """Validate the credential.

    Returns:
        AuthUser, or None for an anonymous caller (only when not required).

    Raises:
        Unauthenticated: required=True and no valid identity.
    """
    if credential is None:
        if required:
            raise Unauthenticated("Authentication required")
        return None

    source = "bearer" if isinstance(credential, BearerCredential) else "cookie"
    try:
        user = await provider.get_user(credential.token)
    except IdentityProviderError:
        logger.warning("Identity verification unavailable for %s credential", source)
        if required:
            raise Unauthenticated("Identity could not be verified", detail={"source": source}) from None
        return None

    if user is None:
        if required:
            raise Unauthenticated("Invalid or expired credentials", detail={"source": source})
        logger.info("Rejected %s credential; continuing as anonymous", source)
        return None

    return user


async def resolve_principal(
    credential: Credential,
    provider: IdentityProvider,
    subscriptions: SubscriptionSource,
    *,
    required: bool = False,
) -> Principal:
    """Resolve the caller and, if authenticated, load their followed commerces once.

    When identity is optional, a failed followed-commerce lookup still yields an
    authenticated principal with an empty subscription set (personalization is
    best-effort). When identity is required the store error propagates.
    """
    user = await resolve_identity(credential, provider, required=required)
    if user is None:
        return ANONYMOUS

    try:
        followed = await subscriptions.list_followed_commerce_ids(user.id)
    except UpstreamQueryError:
        if required:
            raise
        logger.warning("Followed commerces unavailable; continuing without subscriptions")
        return Authenticated(user_id=user.id, email=user.email, subscriptions_loaded=False)

    return Authenticated(user_id=user.id, subscriptions=frozenset(followed), email=user.email)
