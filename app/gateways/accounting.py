"""
Accounting export gateway for QuickBooks Online.
Each quote becomes an Estimate, Invoice or SalesReceipt transaction.
"""

import logging
from typing import Optional

import httpx

from app.core.config import Settings
from app.gateways.base import AccountingExportGateway, ExportReceipt, ExportType, GatewayUnavailable
from app.models.quote import Quote


logger = logging.getLogger(__name__)

# export type -> (API endpoint, response entity, web app page)
QUICKBOOKS_ENTITIES = {
    ExportType.ESTIMATE: ("estimate", "Estimate", "estimate"),
    ExportType.INVOICE: ("invoice", "Invoice", "invoice"),
    ExportType.SALES_RECEIPT: ("salesreceipt", "SalesReceipt", "salesreceipt"),
}


class QuickBooksExportGateway(AccountingExportGateway):
    """Creates QuickBooks transactions from quotes."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.api_base_url = settings.quickbooks_api_base_url
        self.realm_id = settings.QUICKBOOKS_REALM_ID
        self.access_token = settings.QUICKBOOKS_ACCESS_TOKEN
        self.default_customer_ref = settings.QUICKBOOKS_DEFAULT_CUSTOMER_REF
        self.app_base_url = (
            "https://app.qbo.intuit.com/app"
            if settings.QUICKBOOKS_ENVIRONMENT == "production"
            else "https://app.sandbox.qbo.intuit.com/app"
        )
        self.http_client = http_client

    def is_configured(self) -> bool:
        return bool(self.realm_id and self.access_token and self.default_customer_ref)

    def build_payload(self, quote: Quote) -> dict:
        """Transaction body shared by all three export types."""
        lines = [
            {
                "Amount": float(item.total),
                "DetailType": "SalesItemLineDetail",
                "Description": item.description or item.name,
                "SalesItemLineDetail": {
                    "Qty": float(item.quantity),
                    "UnitPrice": float(item.unit_price),
                },
            }
            for item in quote.items
        ]
        payload = {
            "CustomerRef": {"value": self.default_customer_ref},
            "Line": lines,
            "DocNumber": quote.quote_number[:21],
            "PrivateNote": f"FieldQuote {quote.quote_number}",
        }
        if quote.customer is not None and quote.customer.email:
            payload["BillEmail"] = {"Address": quote.customer.email}
        if quote.tax:
            payload["TxnTaxDetail"] = {"TotalTax": float(quote.tax)}
        return payload

    async def _post(self, url: str, payload: dict) -> httpx.Response:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.access_token}",
        }
        if self.http_client is not None:
            return await self.http_client.post(url, headers=headers, json=payload)
        async with httpx.AsyncClient() as client:
            return await client.post(url, headers=headers, json=payload, timeout=10.0)

    async def export(self, quote: Quote, export_type: ExportType) -> ExportReceipt:
        if not self.is_configured():
            raise GatewayUnavailable("QuickBooks is not configured")

        endpoint, entity, page = QUICKBOOKS_ENTITIES[ExportType(export_type)]
        url = f"{self.api_base_url}/company/{self.realm_id}/{endpoint}"

        try:
            response = await self._post(url, self.build_payload(quote))
        except httpx.HTTPError as e:
            logger.error(f"QuickBooks request for quote {quote.quote_number} failed: {e}")
            raise GatewayUnavailable(str(e)) from e

        if response.status_code not in (200, 201):
            logger.error(f"QuickBooks {entity} export failed: {response.text}")
            raise GatewayUnavailable(f"QuickBooks API returned {response.status_code}")

        export_id = response.json().get(entity, {}).get("Id")
        if not export_id:
            raise GatewayUnavailable(f"QuickBooks response carried no {entity} id")

        logger.info(f"Quote {quote.quote_number} exported to QuickBooks as {entity} {export_id}")
        return ExportReceipt(
            export_id=str(export_id),
            export_url=f"{self.app_base_url}/{page}?txnId={export_id}",
        )
