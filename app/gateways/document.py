"""
Document gateway backed by the local PDF renderer.
Rendered files are written to DOCUMENT_STORAGE_PATH and served under /documents.
"""

import logging

from reportlab.platypus.doctemplate import LayoutError

from app.core.config import Settings
from app.gateways.base import DocumentGateway, DocumentOptions, GatewayUnavailable, RenderedDocument
from app.models.base import utcnow
from app.models.quote import Quote
from app.services.pdf import QuotePDFRenderer


logger = logging.getLogger(__name__)


class PdfDocumentGateway(DocumentGateway):
    """Renders quotes to PDF files reachable over HTTP."""

    content_type = "application/pdf"

    def __init__(self, settings: Settings, renderer: QuotePDFRenderer | None = None):
        self.renderer = renderer or QuotePDFRenderer(settings.DOCUMENT_STORAGE_PATH)
        self.base_url = settings.API_BASE_URL.rstrip("/")

    async def render(self, quote: Quote, options: DocumentOptions) -> RenderedDocument:
        try:
            path = await self.renderer.render(quote, options, utcnow())
        except (OSError, LayoutError) as e:
            logger.error(f"Rendering quote {quote.quote_number} failed: {e}")
            raise GatewayUnavailable(str(e)) from e

        return RenderedDocument(
            document_url=f"{self.base_url}/documents/{path.name}",
            content_type=self.content_type,
            filename=path.name,
            path=str(path),
        )
