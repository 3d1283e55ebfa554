# apps/api/trackhub/routers/users.py
"""
Users Router - Track-Hub
Account sync on sign-in.
"""

from fastapi import APIRouter

from trackhub.core.deps import AppSettings, CurrentUser, DBSession
from trackhub.schemas import AccountOut, AccountSync
from trackhub.services.users import sync_account

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/me", response_model=AccountOut)
async def sync_me(
    payload: AccountSync,
    current_user: CurrentUser,
    db: DBSession,
    settings: AppSettings,
):
    """Create the caller's account on first sign-in, else refresh the profile."""
    return await sync_account(
        db,
        settings,
        user_id=current_user.id,
        email=payload.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        image_url=payload.image_url,
    )
