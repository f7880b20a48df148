"""
Calendar gateway adapters.
Google Calendar when an access token is configured, otherwise local ids.
"""

import logging
import secrets
from datetime import date, datetime, time, timedelta
from typing import Optional

import httpx

from app.core.config import Settings
from app.gateways.base import CalendarEvent, CalendarGateway, GatewayUnavailable
from app.models.quote import Quote


logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
DEFAULT_VISIT_DURATION = timedelta(hours=1)


def visit_window(scheduled_date: date, scheduled_time: str) -> tuple[datetime, datetime]:
    """Start and end of the visit, one hour long."""
    hour, minute = (int(part) for part in scheduled_time.split(":"))
    start = datetime.combine(scheduled_date, time(hour, minute))
    return start, start + DEFAULT_VISIT_DURATION


def event_summary(quote: Quote) -> str:
    customer_name = quote.customer.name if quote.customer is not None else "Customer"
    return f"{quote.title or 'Service visit'} - {customer_name}"


class GoogleCalendarGateway(CalendarGateway):
    """Creates events through the Google Calendar REST API."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.access_token = settings.GOOGLE_CALENDAR_ACCESS_TOKEN
        self.calendar_id = settings.GOOGLE_CALENDAR_ID
        self.timezone = settings.GOOGLE_CALENDAR_TIMEZONE
        self.http_client = http_client

    async def create_event(
        self,
        quote: Quote,
        scheduled_date: date,
        scheduled_time: str,
        notes: Optional[str] = None,
    ) -> CalendarEvent:
        start, end = visit_window(scheduled_date, scheduled_time)
        description = f"Quote {quote.quote_number}"
        if notes:
            description += f"\n\nNotes: {notes}"

        event_data = {
            "summary": event_summary(quote),
            "description": description,
            "start": {"dateTime": start.isoformat(), "timeZone": self.timezone},
            "end": {"dateTime": end.isoformat(), "timeZone": self.timezone},
        }
        if quote.customer is not None and quote.customer.address:
            event_data["location"] = quote.customer.address

        url = f"{GOOGLE_CALENDAR_API}/calendars/{self.calendar_id}/events"
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            if self.http_client is not None:
                response = await self.http_client.post(url, headers=headers, json=event_data)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, headers=headers, json=event_data, timeout=10.0)
        except httpx.HTTPError as e:
            logger.error(f"Google Calendar request failed: {e}")
            raise GatewayUnavailable(str(e)) from e

        if response.status_code not in (200, 201):
            logger.error(f"Failed to create calendar event: {response.text}")
            raise GatewayUnavailable(f"Google Calendar API returned {response.status_code}")

        event = response.json()
        event_id = event.get("id")
        if not event_id:
            raise GatewayUnavailable("Google Calendar response carried no event id")

        logger.info(f"Google Calendar event created: {event_id}")
        return CalendarEvent(event_id=event_id, details={"html_link": event.get("htmlLink")})


class LocalCalendarGateway(CalendarGateway):
    """Assigns calendar event ids without an external calendar."""

    async def create_event(
        self,
        quote: Quote,
        scheduled_date: date,
        scheduled_time: str,
        notes: Optional[str] = None,
    ) -> CalendarEvent:
        start, end = visit_window(scheduled_date, scheduled_time)
        event_id = f"cal_{secrets.token_hex(8)}"
        return CalendarEvent(
            event_id=event_id,
            details={
                "summary": event_summary(quote),
                "start": start.isoformat(),
                "end": end.isoformat(),
                "notes": notes,
            },
        )
