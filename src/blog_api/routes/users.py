"""User profile endpoints.

Profiles are private: only the owner may read one.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from blog_api.auth import IdentityClaim, OwnershipChecker
from blog_api.users import UserStore

router = APIRouter(prefix="/api/users", tags=["Users"])

ProfileOwner = Annotated[IdentityClaim, Depends(OwnershipChecker("user_id"))]


@router.get("/{user_id}")
async def get_user_profile(request: Request, user_id: str, claim: ProfileOwner) -> dict[str, Any]:
    """Return a user's own profile.

    Raises:
        HTTPException: 404 if the user does not exist.
    """
    _ = claim  # Dependency ensures ownership
    store: UserStore = request.app.state.user_store
    user = await store.find_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return {"user": user.to_public_dict()}
