"""Current-identity endpoint."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from blog_api.auth import IdentityClaim, require_claim
from blog_api.users import UserStore

router = APIRouter(prefix="/api/auth", tags=["Auth"])

CurrentClaim = Annotated[IdentityClaim, Depends(require_claim)]


@router.get("/me")
async def get_current_user(request: Request, claim: CurrentClaim) -> dict[str, Any]:
    """Return the profile of the authenticated user.

    The token proves identity; the profile is always read fresh from the
    user store so deleted users are reported as missing.

    Raises:
        HTTPException: 404 if the user no longer exists.
    """
    store: UserStore = request.app.state.user_store
    user = await store.find_by_id(claim.subject_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return {"user": user.to_public_dict()}
