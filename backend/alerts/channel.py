"""
Outbound notification channel.

The dispatcher only needs `send(title, content) -> DeliveryResult`. The
production channel emails the warehouse owner through SendGrid.
"""

import asyncio
from dataclasses import dataclass
from html import escape
from typing import Protocol

import sendgrid
from sendgrid.helpers.mail import Mail

from core.config import Settings, get_settings


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    error: str | None = None
    recipient: str | None = None


class NotificationChannel(Protocol):
    async def send(self, title: str, content: str) -> DeliveryResult: ...


def render_html(title: str, content: str) -> str:
    body = "<br>".join(escape(line) for line in content.splitlines())
    return f"""
    <div style="font-family: Inter, sans-serif; max-width: 600px; margin: 0 auto;">
      <div style="background: #1e1b4b; color: white; padding: 24px; border-radius: 12px 12px 0 0;">
        <h1 style="margin: 0; font-size: 20px;">{escape(title)}</h1>
      </div>
      <div style="background: #f8fafc; padding: 24px; border: 1px solid #e2e8f0;">
        <p style="color: #334155; line-height: 1.6;">{body}</p>
      </div>
    </div>
    """


class SendGridChannel:
    """Email the configured owner address via SendGrid."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    @property
    def recipient(self) -> str:
        return self.settings.owner_email

    def _send_sync(self, title: str, content: str) -> int:
        sg = sendgrid.SendGridAPIClient(api_key=self.settings.sendgrid_api_key)
        email = Mail(
            from_email=self.settings.alert_from_email,
            to_emails=self.recipient,
            subject=title,
            html_content=render_html(title, content),
        )
        response = sg.send(email)
        return response.status_code

    async def send(self, title: str, content: str) -> DeliveryResult:
        if not self.settings.sendgrid_api_key:
            return DeliveryResult(False, "SendGrid API key is not configured", self.recipient or None)
        if not self.recipient:
            return DeliveryResult(False, "Owner email is not configured")

        try:
            status_code = await asyncio.to_thread(self._send_sync, title, content)
        except Exception as exc:
            return DeliveryResult(False, f"SendGrid error: {exc}", self.recipient)
        if status_code not in (200, 201, 202):
            return DeliveryResult(False, f"SendGrid returned HTTP {status_code}", self.recipient)
        return DeliveryResult(True, None, self.recipient)
