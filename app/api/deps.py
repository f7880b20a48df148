"""
API Dependencies.
Authentication, database sessions, gateways and the workflow engine.
"""

import logging
from typing import Annotated
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.config import settings
from app.core.database import get_db
from app.core.security import decode_token
from app.gateways.accounting import QuickBooksExportGateway
from app.gateways.base import (
    AccountingExportGateway,
    CalendarGateway,
    CommunicationGateway,
    DocumentGateway,
    SignatureGateway,
)
from app.gateways.calendar import GoogleCalendarGateway, LocalCalendarGateway
from app.gateways.communication import ProviderCommunicationGateway, SmtpEmailSender, TwilioSmsSender
from app.gateways.document import PdfDocumentGateway
from app.gateways.signature import PortalSignatureGateway
from app.models.user import User
from app.repositories.job import SQLJobRepository
from app.repositories.quote import SQLQuoteRepository
from app.services.workflow import QuoteWorkflowEngine, WorkflowSettings, quote_locks


logger = logging.getLogger(__name__)

# Bearer token security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the current user from the JWT access token.

    Raises:
        HTTPException: If the token is invalid or the user does not exist
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired authentication token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not credentials:
        logger.warning("Request without token")
        raise credentials_exception

    token_data = decode_token(credentials.credentials)

    if token_data is None:
        logger.warning("Invalid or expired token")
        raise credentials_exception

    if token_data.token_type != "access":
        logger.warning("Wrong token type")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(
        select(User).where(User.id == token_data.user_id)
    )
    user = result.scalar_one_or_none()

    if user is None:
        logger.warning(f"User {token_data.user_id} not found")
        raise credentials_exception

    logger.debug(f"Authenticated user: {user.email}")
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Resolve the current user, rejecting disabled accounts.

    Raises:
        HTTPException: If the account is disabled
    """
    if not current_user.is_active:
        logger.warning(f"Disabled account: {current_user.email}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account disabled",
        )
    return current_user


# Type aliases for cleaner route signatures
CurrentUser = Annotated[User, Depends(get_current_active_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]


# Gateways (overridden with fakes in tests)

def get_communication_gateway() -> CommunicationGateway:
    return ProviderCommunicationGateway(SmtpEmailSender(settings), TwilioSmsSender(settings))


def get_signature_gateway() -> SignatureGateway:
    return PortalSignatureGateway(settings)


def get_document_gateway() -> DocumentGateway:
    return PdfDocumentGateway(settings)


def get_accounting_gateway() -> AccountingExportGateway:
    return QuickBooksExportGateway(settings)


def get_calendar_gateway() -> CalendarGateway:
    if settings.GOOGLE_CALENDAR_ACCESS_TOKEN:
        return GoogleCalendarGateway(settings)
    return LocalCalendarGateway()


def get_workflow_settings() -> WorkflowSettings:
    return WorkflowSettings.from_settings(settings)


async def get_workflow_engine(
    db: DbSession,
    current_user: CurrentUser,
    communication: CommunicationGateway = Depends(get_communication_gateway),
    signature: SignatureGateway = Depends(get_signature_gateway),
    documents: DocumentGateway = Depends(get_document_gateway),
    accounting: AccountingExportGateway = Depends(get_accounting_gateway),
    calendar: CalendarGateway = Depends(get_calendar_gateway),
    workflow_settings: WorkflowSettings = Depends(get_workflow_settings),
) -> QuoteWorkflowEngine:
    """Workflow engine scoped to the current user's quotes."""
    return QuoteWorkflowEngine(
        quotes=SQLQuoteRepository(db),
        jobs=SQLJobRepository(db),
        communication=communication,
        signature=signature,
        documents=documents,
        accounting=accounting,
        calendar=calendar,
        locks=quote_locks,
        settings=workflow_settings,
        owner_id=current_user.id,
        actor=current_user.email,
    )


WorkflowEngine = Annotated[QuoteWorkflowEngine, Depends(get_workflow_engine)]
