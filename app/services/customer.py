"""
Customer service.
Handles customer CRUD operations.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_

from app.core.contact import to_e164
from app.core.errors import InvalidStateError, NotFoundError, WorkflowValidationError
from app.models.customer import Customer
from app.models.quote import Quote
from app.models.user import User
from app.schemas.customer import CustomerCreate, CustomerUpdate


def normalize_phone(phone: str | None) -> str | None:
    """Store phones in E.164 so SMS delivery can use them as is."""
    if not phone:
        return None
    normalized = to_e164(phone)
    if normalized is None:
        raise WorkflowValidationError(
            f"'{phone}' is not a valid phone number (E.164, e.g. +12015550123)",
            field="phone",
        )
    return normalized


class CustomerService:
    """Service for customer operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, owner: User, data: CustomerCreate) -> Customer:
        values = data.model_dump()
        values["phone"] = normalize_phone(values.get("phone"))
        customer = Customer(owner_id=owner.id, **values)

        self.db.add(customer)
        await self.db.flush()
        await self.db.refresh(customer)

        return customer

    async def get_by_id(self, customer_id: int, owner_id: int) -> Customer | None:
        """Get customer by ID, ensuring owner access."""
        result = await self.db.execute(
            select(Customer).where(
                Customer.id == customer_id,
                Customer.owner_id == owner_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_or_404(self, customer_id: int, owner_id: int) -> Customer:
        customer = await self.get_by_id(customer_id, owner_id)
        if not customer:
            raise NotFoundError(f"Customer {customer_id} not found", field="customer_id")
        return customer

    async def list(
        self,
        owner_id: int,
        skip: int = 0,
        limit: int = 20,
        search: str | None = None,
    ) -> tuple[list[Customer], int]:
        """
        List customers with pagination and search.

        Args:
            owner_id: Owner's user ID
            skip: Number of records to skip
            limit: Maximum records to return
            search: Search term for name/email/phone

        Returns:
            Tuple of (customers list, total count)
        """
        conditions = [Customer.owner_id == owner_id]
        if search:
            search_filter = f"%{search}%"
            conditions.append(or_(
                Customer.name.ilike(search_filter),
                Customer.email.ilike(search_filter),
                Customer.phone.ilike(search_filter),
            ))

        total_result = await self.db.execute(
            select(func.count(Customer.id)).where(*conditions)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Customer)
            .where(*conditions)
            .order_by(Customer.name)
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def update(self, customer: Customer, data: CustomerUpdate) -> Customer:
        update_data = data.model_dump(exclude_unset=True)
        if "phone" in update_data:
            update_data["phone"] = normalize_phone(update_data["phone"])

        for field, value in update_data.items():
            setattr(customer, field, value)

        await self.db.flush()
        await self.db.refresh(customer)

        return customer

    async def delete(self, customer: Customer) -> None:
        """Delete a customer that has no quotes."""
        result = await self.db.execute(
            select(func.count(Quote.id)).where(Quote.customer_id == customer.id)
        )
        if result.scalar():
            raise InvalidStateError(
                f"Customer {customer.id} has quotes and cannot be deleted",
                field="customer_id",
            )

        await self.db.delete(customer)
        await self.db.flush()
