"""Client for the external identity/session provider.

Smartmark does not authenticate anyone itself.  Each request carries an access
token (``Authorization: Bearer`` header or the session cookie) that is handed
to the provider's ``/user`` endpoint; a 2xx answer yields the caller, anything
in the 4xx range means the session is invalid.  Sign-out is forwarded to the
provider's ``/logout`` endpoint.
"""

from __future__ import annotations

import logging

import httpx
from fastapi import Depends, HTTPException, Request, status

from smartmark.schemas.user import User
from smartmark.settings import AppSettings, get_settings

logger = logging.getLogger(__name__)

UNAUTHORIZED_MESSAGE = "Unauthorized"


class IdentityProviderError(RuntimeError):
    """Raised when the identity provider cannot be reached or misbehaves."""


class IdentityProvider:
    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"apikey": api_key} if api_key else {}
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def get_user(self, access_token: str) -> User | None:
        """Resolve ``access_token`` to a user, or ``None`` for an invalid session."""

        response = await self._request("GET", "/user", access_token)
        if response.is_client_error:
            return None
        try:
            return User.from_provider(response.json())
        except (KeyError, TypeError, ValueError) as exc:
            raise IdentityProviderError("Identity provider returned a malformed user") from exc

    async def sign_out(self, access_token: str) -> None:
        response = await self._request("POST", "/logout", access_token)
        if response.is_client_error:
            # Already signed out or expired; nothing left to revoke.
            logger.info("Identity provider rejected sign-out with %s", response.status_code)

    async def _request(self, method: str, path: str, access_token: str) -> httpx.Response:
        try:
            response = await self._client.request(
                method, path, headers={"Authorization": f"Bearer {access_token}"}
            )
        except httpx.HTTPError as exc:
            raise IdentityProviderError(f"Identity provider request failed: {exc}") from exc

        if response.is_server_error:
            raise IdentityProviderError(
                f"Identity provider answered {response.status_code} for {method} {path}"
            )
        return response

    async def aclose(self) -> None:
        await self._client.aclose()


_provider: IdentityProvider | None = None


def create_identity_provider(settings: AppSettings) -> IdentityProvider | None:
    if not settings.auth_url:
        return None
    return IdentityProvider(
        base_url=settings.auth_url,
        api_key=settings.auth_api_key,
        timeout=settings.auth_timeout_seconds,
    )


def get_identity_provider() -> IdentityProvider | None:
    """Return the shared provider client, or ``None`` when AUTH_URL is unset."""

    global _provider
    if _provider is None:
        _provider = create_identity_provider(get_settings())
    return _provider


async def close_identity_provider() -> None:
    global _provider
    if _provider is not None:
        await _provider.aclose()
        _provider = None


def extract_access_token(request: Request, cookie_name: str) -> str | None:
    """Pull the access token from the bearer header or the session cookie."""

    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    cookie = request.cookies.get(cookie_name)
    if cookie and cookie.strip():
        return cookie.strip()
    return None


def get_access_token(request: Request) -> str:
    token = extract_access_token(request, get_settings().session_cookie_name)
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHORIZED_MESSAGE)
    return token


async def get_current_user(
    access_token: str = Depends(get_access_token),
    provider: IdentityProvider | None = Depends(get_identity_provider),
) -> User:
    """FastAPI dependency returning the authenticated caller or failing with 401."""

    if provider is None:
        logger.warning("Rejecting request: no identity provider configured (AUTH_URL)")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHORIZED_MESSAGE)

    user = await provider.get_user(access_token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHORIZED_MESSAGE)
    return user
