"""
Signature gateway for the customer portal.

The customer signs on the portal page; the portal reports completion back
through POST /api/v1/workflow/signatures/{signature_id}/complete.
"""

import logging
import secrets
from datetime import timedelta

from app.core.config import Settings
from app.gateways.base import (
    SignatureGateway,
    SignatureRequest,
    SignatureState,
    SignatureStatus,
    Signer,
)
from app.models.base import utcnow
from app.models.quote import Quote


logger = logging.getLogger(__name__)


class PortalSignatureGateway(SignatureGateway):
    """Issues signing links on the customer portal."""

    def __init__(self, settings: Settings):
        self.frontend_url = settings.FRONTEND_URL.rstrip("/")
        self.request_days = settings.SIGNATURE_REQUEST_DAYS

    async def create_request(self, quote: Quote, signer: Signer) -> SignatureRequest:
        signature_id = f"sig_{secrets.token_hex(12)}"
        logger.info(f"Signature request {signature_id} issued for quote {quote.quote_number} to {signer.name}")
        return SignatureRequest(
            signature_id=signature_id,
            url=f"{self.frontend_url}/sign/{signature_id}",
            expires_at=utcnow() + timedelta(days=self.request_days),
        )

    async def check_status(self, signature_id: str) -> SignatureStatus:
        # Completion arrives through the callback endpoint, polling never sees it first.
        return SignatureStatus(signature_id=signature_id, status=SignatureState.PENDING)
