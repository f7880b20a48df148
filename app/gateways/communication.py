"""
Communication gateway adapters.
Email goes out over SMTP, SMS through the Twilio REST API.
"""

import asyncio
import logging
import smtplib
import uuid
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from pathlib import Path
from typing import List, Optional

import httpx

from app.core.config import Settings
from app.core.contact import is_e164
from app.gateways.base import Attachment, CommunicationGateway, DeliveryError, DeliveryReceipt
from app.models.base import utcnow
from app.models.quote import CommunicationChannel


logger = logging.getLogger(__name__)

TWILIO_API_BASE_URL = "https://api.twilio.com/2010-04-01"


class SmtpEmailSender:
    """Sends HTML email with optional PDF attachments via SMTP."""

    def __init__(self, settings: Settings):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.email_from = settings.EMAIL_FROM

    def is_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_password)

    def _create_message(self, to_email: str, subject: str, body: str) -> MIMEMultipart:
        msg = MIMEMultipart("mixed")
        msg["Subject"] = subject
        msg["From"] = self.email_from
        msg["To"] = to_email
        msg["Message-ID"] = f"<{uuid.uuid4().hex}@{self.email_from.split('@')[-1]}>"

        alternative = MIMEMultipart("alternative")
        alternative.attach(MIMEText(body, "plain", "utf-8"))
        paragraphs = "".join(f"<p>{escape(line)}</p>" for line in body.split("\n\n"))
        html = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <style>
                body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
                .content {{ padding: 20px; }}
            </style>
        </head>
        <body>
            <div class="content">{paragraphs}</div>
        </body>
        </html>
        """
        alternative.attach(MIMEText(html, "html", "utf-8"))
        msg.attach(alternative)
        return msg

    def _attach(self, msg: MIMEMultipart, attachment: Attachment) -> None:
        if not attachment.path:
            return
        path = Path(attachment.path)
        if path.exists():
            with open(path, "rb") as f:
                part = MIMEApplication(f.read(), _subtype=attachment.content_type.split("/")[-1])
                part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
                msg.attach(part)

    def _deliver(self, msg: MIMEMultipart, to_email: str) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
            server.starttls()
            server.login(self.smtp_user, self.smtp_password)
            server.sendmail(self.email_from, to_email, msg.as_string())

    async def send(
        self,
        to_email: str,
        subject: str,
        body: str,
        attachments: Optional[List[Attachment]] = None,
    ) -> DeliveryReceipt:
        if not self.is_configured():
            raise DeliveryError("Email is not configured")

        msg = self._create_message(to_email, subject, body)
        for attachment in attachments or []:
            self._attach(msg, attachment)

        try:
            await asyncio.to_thread(self._deliver, msg, to_email)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email delivery to {to_email} failed: {e}")
            raise DeliveryError(str(e)) from e

        logger.info(f"Email sent to {to_email}")
        return DeliveryReceipt(
            message_id=msg["Message-ID"],
            status="sent",
            sent_at=utcnow(),
        )


class TwilioSmsSender:
    """Sends SMS/MMS through the Twilio Messages API."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.account_sid = settings.TWILIO_ACCOUNT_SID
        self.auth_token = settings.TWILIO_AUTH_TOKEN
        self.from_number = settings.TWILIO_FROM_NUMBER
        self.messaging_service_sid = settings.TWILIO_MESSAGING_SERVICE_SID
        self.http_client = http_client

    def is_configured(self) -> bool:
        return bool(
            self.account_sid
            and self.auth_token
            and (self.from_number or self.messaging_service_sid)
        )

    async def send(
        self,
        to_phone: str,
        body: str,
        media_url: Optional[str] = None,
    ) -> DeliveryReceipt:
        if not self.is_configured():
            raise DeliveryError("Twilio is not configured")

        if not is_e164(to_phone):
            raise DeliveryError("Phone number must be in E.164 format (e.g., +12015550123)")

        data = {"To": to_phone, "Body": body}
        if self.messaging_service_sid:
            data["MessagingServiceSid"] = self.messaging_service_sid
        else:
            data["From"] = self.from_number
        if media_url:
            data["MediaUrl"] = media_url

        url = f"{TWILIO_API_BASE_URL}/Accounts/{self.account_sid}/Messages.json"
        logger.info(f"Sending SMS to {to_phone}")
        try:
            if self.http_client is not None:
                response = await self.http_client.post(url, auth=(self.account_sid, self.auth_token), data=data)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        url,
                        auth=(self.account_sid, self.auth_token),
                        data=data,
                        timeout=10.0,
                    )
        except httpx.HTTPError as e:
            logger.error(f"Twilio request failed: {e}")
            raise DeliveryError(str(e)) from e

        if response.status_code not in (200, 201):
            logger.error(f"Twilio API error {response.status_code}: {response.text}")
            raise DeliveryError(f"Twilio API returned {response.status_code}")

        result = response.json()
        return DeliveryReceipt(
            message_id=result.get("sid", ""),
            status=result.get("status", "queued"),
            sent_at=utcnow(),
        )


class ProviderCommunicationGateway(CommunicationGateway):
    """Routes each message to the email or SMS provider."""

    def __init__(self, email_sender: SmtpEmailSender, sms_sender: TwilioSmsSender):
        self.email_sender = email_sender
        self.sms_sender = sms_sender

    async def send(
        self,
        channel: CommunicationChannel,
        to: str,
        body: str,
        subject: Optional[str] = None,
        attachments: Optional[List[Attachment]] = None,
    ) -> DeliveryReceipt:
        if channel == CommunicationChannel.EMAIL:
            return await self.email_sender.send(to, subject or "", body, attachments)

        media_url = attachments[0].url if attachments else None
        return await self.sms_sender.send(to, body, media_url)
