"""
Spreadsheet export of quotes.
CSV opens directly in Excel, Numbers and Google Sheets.
"""

import csv
from datetime import date, datetime
from io import StringIO
from typing import Optional, Sequence

from app.models.base import as_utc
from app.models.quote import Quote


QUOTE_COLUMNS = [
    "Quote Number",
    "Title",
    "Customer",
    "Customer Email",
    "Customer Phone",
    "Status",
    "Subtotal",
    "Tax Rate",
    "Tax",
    "Total",
    "Sent At",
    "Expires At",
    "Approved At",
    "Scheduled For",
    "Signed By",
    "Job ID",
    "Accounting Export ID",
]


def _timestamp(value: Optional[datetime]) -> str:
    return as_utc(value).strftime("%Y-%m-%d %H:%M:%S") if value else ""


def _scheduled_for(scheduled_date: Optional[date], scheduled_time: Optional[str]) -> str:
    if not scheduled_date:
        return ""
    return f"{scheduled_date.isoformat()} {scheduled_time or ''}".strip()


def quotes_to_csv(quotes: Sequence[Quote], now: datetime) -> str:
    """One header row, then one row per quote; status is the effective status."""
    output = StringIO()
    writer = csv.writer(output)

    writer.writerow(QUOTE_COLUMNS)

    for quote in quotes:
        customer = quote.customer
        writer.writerow(
            [
                quote.quote_number,
                quote.title or "",
                customer.name if customer else "",
                (customer.email or "") if customer else "",
                (customer.phone or "") if customer else "",
                quote.effective_status(now).value,
                f"{quote.subtotal:.2f}",
                f"{quote.tax_rate:.2f}",
                f"{quote.tax:.2f}",
                f"{quote.total:.2f}",
                _timestamp(quote.sent_at),
                _timestamp(quote.expires_at),
                _timestamp(quote.approved_at),
                _scheduled_for(quote.scheduled_date, quote.scheduled_time),
                quote.signed_by or "",
                quote.job_id or "",
                quote.accounting_export_id or "",
            ]
        )

    return output.getvalue()
