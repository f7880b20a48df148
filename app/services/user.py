"""
User service.
Maintains the business profile that appears on quotes.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from app.models.user import User
from app.schemas.user import UserUpdate
from app.core.security import get_password_hash, verify_password


logger = logging.getLogger(__name__)


class UserService:
    """Service for the current account."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def update(self, user: User, data: UserUpdate) -> User:
        """
        Update the profile fields that were sent.

        Clearing the business email falls back to the login email, since
        quote documents always print a contact address.
        """
        update_data = data.model_dump(exclude_unset=True)
        if "business_email" in update_data and not update_data["business_email"]:
            update_data["business_email"] = user.email

        for field, value in update_data.items():
            setattr(user, field, value)
        user.touch()

        await self.db.flush()
        await self.db.refresh(user)

        logger.info(f"Profile updated for {user.email}: {', '.join(sorted(update_data))}")
        return user

    async def change_password(
        self,
        user: User,
        current_password: str,
        new_password: str,
    ) -> User:
        """
        Change the account password.

        Raises:
            HTTPException: If the current password is incorrect
        """
        if not verify_password(current_password, user.hashed_password):
            logger.warning(f"Password change rejected for {user.email}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is incorrect",
            )

        user.hashed_password = get_password_hash(new_password)

        await self.db.flush()
        logger.info(f"Password changed for {user.email}")
        return user
