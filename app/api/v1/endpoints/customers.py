"""
Customer management endpoints.
CRUD operations for customers.
"""

from fastapi import APIRouter, Query, status

from app.api.deps import DbSession, CurrentUser
from app.schemas.customer import (
    CustomerCreate,
    CustomerUpdate,
    CustomerResponse,
    CustomerListResponse,
)
from app.schemas.base import MessageResponse, page_count
from app.services.customer import CustomerService


router = APIRouter()


@router.post(
    "",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a customer",
)
async def create_customer(
    data: CustomerCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> CustomerResponse:
    service = CustomerService(db)
    customer = await service.create(current_user, data)
    return CustomerResponse.model_validate(customer)


@router.get(
    "",
    response_model=CustomerListResponse,
    summary="List customers",
    description="Paginated list of customers",
)
async def list_customers(
    current_user: CurrentUser,
    db: DbSession,
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(20, ge=1, le=100, description="Items per page"),
    search: str | None = Query(None, description="Search by name, email or phone"),
) -> CustomerListResponse:
    service = CustomerService(db)
    skip = (page - 1) * per_page

    customers, total = await service.list(
        owner_id=current_user.id,
        skip=skip,
        limit=per_page,
        search=search,
    )

    pages = page_count(total, per_page)

    return CustomerListResponse(
        items=[CustomerResponse.model_validate(c) for c in customers],
        total=total,
        page=page,
        per_page=per_page,
        pages=pages,
    )


@router.get(
    "/{customer_id}",
    response_model=CustomerResponse,
    summary="Customer details",
)
async def get_customer(
    customer_id: int,
    current_user: CurrentUser,
    db: DbSession,
) -> CustomerResponse:
    service = CustomerService(db)
    customer = await service.get_or_404(customer_id, current_user.id)
    return CustomerResponse.model_validate(customer)


@router.patch(
    "/{customer_id}",
    response_model=CustomerResponse,
    summary="Update a customer",
)
async def update_customer(
    customer_id: int,
    data: CustomerUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> CustomerResponse:
    service = CustomerService(db)
    customer = await service.get_or_404(customer_id, current_user.id)
    customer = await service.update(customer, data)
    return CustomerResponse.model_validate(customer)


@router.delete(
    "/{customer_id}",
    response_model=MessageResponse,
    summary="Delete a customer",
    description="Delete a customer (not possible once quotes exist)",
)
async def delete_customer(
    customer_id: int,
    current_user: CurrentUser,
    db: DbSession,
) -> MessageResponse:
    service = CustomerService(db)
    customer = await service.get_or_404(customer_id, current_user.id)
    await service.delete(customer)
    return MessageResponse(message="Customer deleted")
