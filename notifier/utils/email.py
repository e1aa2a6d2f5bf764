from html import escape
from typing import Any

import aioboto3
import structlog

from notifier.models import Repository

logger = structlog.get_logger(__name__)

RESET_EMAIL_SUBJECT = "Password Reset"

RESET_EMAIL_TEXT = """Hello {username},

You requested to reset your password. Open the link below to choose a new one:

{reset_url}

This link will expire in 1 hour.

If you didn't request this, please ignore this email.
"""

RESET_EMAIL_HTML = """<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2>Password Reset</h2>
  <p>Hello {username},</p>
  <p>You requested to reset your password. Click the link below to choose a new one:</p>
  <p><a href="{reset_url}">Reset your password</a></p>
  <p><strong>This link will expire in 1 hour.</strong></p>
  <p>If you didn't request this, please ignore this email.</p>
</div>
"""

EVENT_EMAIL_HTML = """<h2>Repository Event Notification</h2>
<p>{message}</p>
<hr>
<h3>Event Details:</h3>
<ul>
  <li>Repository: {repository}</li>
  <li>Event Type: {event_type}</li>
</ul>
<p>View repository: <a href="{url}">{url}</a></p>
"""


class EmailClient:
    def __init__(
        self,
        region: str,
        notification_email: str,
        app_url: str,
        from_email: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        session: Any | None = None,
    ):
        self.region = region
        self.notification_email = notification_email
        self.from_email = from_email or notification_email
        self.app_url = app_url.rstrip("/")
        self.session = session or aioboto3.Session(
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
        )

    def get_reset_url(self, token: str) -> str:
        return f"{self.app_url}/auth/reset-password?token={token}"

    async def send_email(
        self, to: str, subject: str, text_body: str, html_body: str
    ) -> bool:
        try:
            async with self.session.client("ses", region_name=self.region) as client:
                response = await client.send_email(
                    Source=self.from_email,
                    Destination={"ToAddresses": [to]},
                    Message={
                        "Subject": {"Charset": "UTF-8", "Data": subject},
                        "Body": {
                            "Text": {"Charset": "UTF-8", "Data": text_body},
                            "Html": {"Charset": "UTF-8", "Data": html_body},
                        },
                    },
                )
            logger.info(
                "Email sent",
                subject=subject,
                ses_message_id=response.get("MessageId"),
            )
            return True
        except Exception as e:
            logger.error(
                "Failed to send email",
                subject=subject,
                region=self.region,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def send_password_reset_email(
        self, to: str, token: str, username: str
    ) -> bool:
        reset_url = self.get_reset_url(token)
        return await self.send_email(
            to=to,
            subject=RESET_EMAIL_SUBJECT,
            text_body=RESET_EMAIL_TEXT.format(username=username, reset_url=reset_url),
            html_body=RESET_EMAIL_HTML.format(
                username=escape(username), reset_url=escape(reset_url)
            ),
        )

    async def send_event_notification(
        self, message: str, repository: Repository, event_type: str
    ) -> bool:
        return await self.send_email(
            to=self.notification_email,
            subject=f"Repository Event: {event_type}",
            text_body=message,
            html_body=EVENT_EMAIL_HTML.format(
                message=escape(message),
                repository=escape(repository.name),
                event_type=escape(event_type),
                url=escape(repository.url),
            ),
        )
