"""Session endpoints delegating to the external identity provider."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from smartmark.schemas.user import SignOutResponse, User
from smartmark.services.identity import (
    UNAUTHORIZED_MESSAGE,
    IdentityProvider,
    get_access_token,
    get_current_user,
    get_identity_provider,
)

router = APIRouter()


@router.get("/me", response_model=User)
async def read_current_user(user: User = Depends(get_current_user)) -> User:
    """Return the caller as seen by the identity provider."""

    return user


@router.post("/signout", response_model=SignOutResponse)
async def sign_out(
    access_token: str = Depends(get_access_token),
    provider: IdentityProvider | None = Depends(get_identity_provider),
) -> SignOutResponse:
    """Revoke the caller's session at the identity provider."""

    if provider is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=UNAUTHORIZED_MESSAGE)
    await provider.sign_out(access_token)
    return SignOutResponse(success=True)
