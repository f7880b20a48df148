"""
Customer model.
Each customer belongs to a user (business account) and receives quotes.
"""

from typing import Optional, TYPE_CHECKING
from sqlalchemy import String, Text, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel

if TYPE_CHECKING:
    from app.models.user import User


class Customer(BaseModel):
    """
    Customer receiving quotes and jobs.

    Attributes:
        owner_id: Foreign key to the business account
        name: Customer's full name or company name
        email: Default recipient for emailed quotes
        phone: Default recipient for SMS (E.164)
        address: Service address
        notes: Additional notes about the customer
    """

    __tablename__ = "customers"

    owner_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    email: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    phone: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )
    address: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    owner: Mapped["User"] = relationship(
        "User",
        back_populates="customers",
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name='{self.name}', owner_id={self.owner_id})>"
