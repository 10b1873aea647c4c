"""Transactional email through the Resend REST API."""

from typing import List, Optional, Tuple, Union

import aiohttp
from loguru import logger

from minimusiker.core.config import settings
from minimusiker.core.errors import EmailError

RESEND_API_URL = "https://api.resend.com/emails"

# (to, subject, html) of every message sent while TESTING is set
EMAIL_OUTBOX: List[Tuple[str, str, str]] = []


class ResendMailer:
    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self.api_key = settings.RESEND_API_KEY
        self.sender = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>"
        self._session = session
        self._owns_session = session is None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure we have an aiohttp session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"Authorization": f"Bearer {self.api_key}"}
            )
        return self._session

    async def send(self, to: Union[str, List[str]], subject: str, html: str) -> str:
        """Send one email and return the provider message id.

        Without an API key the message is only logged and ``"dev-mode"`` is
        returned.

        Raises:
            EmailError: When Resend rejects the message or is unreachable.
        """
        recipients = [to] if isinstance(to, str) else list(to)

        if settings.TESTING:
            for recipient in recipients:
                EMAIL_OUTBOX.append((recipient, subject, html))
            return "test-outbox"

        if not self.api_key:
            logger.info(f"[dev-mode] Email to {', '.join(recipients)}: {subject}")
            return "dev-mode"

        session = await self._ensure_session()
        payload = {
            "from": self.sender,
            "to": recipients,
            "subject": subject,
            "html": html,
        }
        try:
            async with session.post(RESEND_API_URL, json=payload) as response:
                data = await response.json()
                if response.status >= 400:
                    message = data.get("message") if isinstance(data, dict) else None
                    logger.error(f"Resend rejected email '{subject}': {message or response.status}")
                    raise EmailError(f"Email send failed: {message or response.status}")
        except aiohttp.ClientError as e:
            logger.error(f"Network error sending email '{subject}': {e}")
            raise EmailError(f"Email send failed: {e}") from e

        logger.info(f"Sent email '{subject}' to {len(recipients)} recipient(s)")
        return data.get("id", "")

    async def close(self):
        """Close the aiohttp session if we own it."""
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None
