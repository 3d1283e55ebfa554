"""
Account sync - Track-Hub
Creates the caller's account on first sign-in with the free-tier credits.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from trackhub.core.config import Settings
from trackhub.db.models import User

logger = logging.getLogger(__name__)


async def sync_account(
    session: AsyncSession,
    settings: Settings,
    user_id: str,
    email: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    image_url: Optional[str] = None,
) -> User:
    user = await session.get(User, user_id)
    if user is None:
        user = User(
            id=user_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            image_url=image_url,
            credits=settings.FREE_TIER_CREDITS,
        )
        session.add(user)
        logger.info(f"Account created: {user_id}", extra={"user_id": user_id})
    else:
        user.email = email
        user.first_name = first_name
        user.last_name = last_name
        user.image_url = image_url
    await session.commit()
    return user
