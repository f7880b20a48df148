"""
User model for authentication and business ownership.
Each user represents a field-service business operating the app.
"""

from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import String, Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel

if TYPE_CHECKING:
    from app.models.customer import Customer


class User(BaseModel):
    """
    User model representing a business account.

    Attributes:
        email: Unique email for authentication
        hashed_password: Bcrypt hashed password
        full_name: Account holder's full name
        business_name: Name shown on quotes and messages
        business_address: Physical address of the business
        business_phone: Contact phone number
        business_email: Reply-to email for customer communications
        is_active: Whether the account is active
        is_verified: Whether email has been verified
    """

    __tablename__ = "users"

    # Authentication
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Personal info
    full_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Business info
    business_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    business_address: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    business_phone: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )
    business_email: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )

    # Account status
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    customers: Mapped[List["Customer"]] = relationship(
        "Customer",
        back_populates="owner",
        cascade="all, delete-orphan",
    )

    @property
    def display_name(self) -> str:
        return self.business_name or self.full_name

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', business='{self.business_name}')>"
