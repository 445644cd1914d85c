"""Identity providers: resolve an inbound request to a user id.

Sign-in itself happens in the browser against Clerk.  Each API request then
carries a Clerk session token, either as ``Authorization: Bearer <jwt>`` or in
the ``__session`` cookie Clerk sets for same-origin requests.  The
:class:`ClerkIdentityProvider` verifies that token against Clerk's JWKS and
returns its subject claim, which is the user id stored in ``profiles``.

The :class:`HeaderIdentityProvider` trusts an ``X-User-Id`` header verbatim.
It exists for local development and tests and must never face the internet.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import jwt
from starlette.requests import HTTPConnection

from emojimaker.core.config import EmojiMakerConfig
from emojimaker.core.errors import AuthenticationMissing, ConfigurationMissing
from emojimaker.core.registry import BackendRegistry

logger = logging.getLogger(__name__)


class IdentityProviderBase(ABC):
    """Abstract base class for identity providers."""

    name: str = "base"

    def __init__(self, config: EmojiMakerConfig) -> None:
        self.config = config

    @abstractmethod
    def resolve(self, request: HTTPConnection) -> str | None:
        """Return the caller's user id, or None if the request is anonymous."""

    def require(self, request: HTTPConnection) -> str:
        """Return the caller's user id.

        Raises:
            AuthenticationMissing: If the request carries no valid identity.
        """
        user_id = self.resolve(request)
        if not user_id:
            raise AuthenticationMissing()
        return user_id


# Global identity provider registry
identity_registry: BackendRegistry[IdentityProviderBase] = BackendRegistry("identity provider")


@identity_registry.register
class HeaderIdentityProvider(IdentityProviderBase):
    """Trust the ``X-User-Id`` request header (development only)."""

    name = "header"
    header_name = "X-User-Id"

    def resolve(self, request: HTTPConnection) -> str | None:
        user_id = request.headers.get(self.header_name, "").strip()
        return user_id or None


@identity_registry.register
class ClerkIdentityProvider(IdentityProviderBase):
    """Verify Clerk session JWTs with PyJWT.

    Args:
        config: Configuration providing the JWKS URL, and optionally the
            expected issuer and authorized parties.
        jwk_client: Optional object with a ``get_signing_key_from_jwt``
            method.  Defaults to a caching ``jwt.PyJWKClient``.
    """

    name = "clerk"
    cookie_name = "__session"
    algorithms = ["RS256"]

    def __init__(self, config: EmojiMakerConfig, jwk_client: Any | None = None) -> None:
        super().__init__(config)
        self._jwk_client = jwk_client

    def _client(self) -> Any:
        if self._jwk_client is None:
            if not self.config.clerk_jwks_url:
                raise ConfigurationMissing("Clerk JWKS URL not configured")
            self._jwk_client = jwt.PyJWKClient(self.config.clerk_jwks_url)
        return self._jwk_client

    def _extract_token(self, request: HTTPConnection) -> str | None:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header.split(" ", 1)[1].strip()
            if token:
                return token
        return request.cookies.get(self.cookie_name) or None

    def resolve(self, request: HTTPConnection) -> str | None:
        token = self._extract_token(request)
        if not token:
            return None

        client = self._client()
        try:
            signing_key = client.get_signing_key_from_jwt(token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=self.algorithms,
                issuer=self.config.clerk_issuer,
                options={
                    "require": ["exp", "sub"],
                    "verify_iss": self.config.clerk_issuer is not None,
                },
            )
        except jwt.PyJWTError as e:
            logger.info(f"Rejected session token: {e}")
            return None

        authorized_parties = self.config.clerk_authorized_parties
        if authorized_parties and claims.get("azp") not in authorized_parties:
            logger.info(f"Rejected session token from unauthorized party: {claims.get('azp')}")
            return None

        return claims["sub"]


def create_identity_provider(config: EmojiMakerConfig) -> IdentityProviderBase:
    """Instantiate the identity provider named by ``config.identity_backend``."""
    return identity_registry.instantiate(config.identity_backend, config)
