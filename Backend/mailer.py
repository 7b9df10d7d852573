import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from errors import MailerError

logger = logging.getLogger(__name__)

EMAILJS_SEND_URL = "https://api.emailjs.com/api/v1.0/email/send"


@dataclass(frozen=True)
class EmailJSConfig:
    service_id: str
    template_id: str
    public_key: str
    admin_email: str
    private_key: Optional[str] = None


class Mailer:
    """Relays access and category requests to the library admin through EmailJS."""

    def __init__(self, config: EmailJSConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    async def _send(self, template_params: Dict[str, Any]) -> None:
        payload: Dict[str, Any] = {
            "service_id": self.config.service_id,
            "template_id": self.config.template_id,
            "user_id": self.config.public_key,
            "template_params": {"to_email": self.config.admin_email, **template_params},
        }
        if self.config.private_key:
            payload["accessToken"] = self.config.private_key

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=None) as client:
                response = await client.post(EMAILJS_SEND_URL, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"EmailJS request failed: {e}")
            raise MailerError(f"Email relay unreachable: {e}") from e

        if response.status_code != 200:
            logger.error(f"EmailJS error {response.status_code}: {response.text}")
            raise MailerError(response.text or "Email relay failed", response.status_code)
        logger.info(f"Sent '{template_params.get('subject')}' to {self.config.admin_email}")

    async def send_access_request(self, name: str, email: str, reason: str) -> None:
        submitted = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        await self._send({
            "from_name": name,
            "from_email": email,
            "subject": f"New Access Request from {name}",
            "message": (
                "New access request received:\n\n"
                f"Name: {name}\n"
                f"Email: {email}\n"
                f"Reason: {reason}\n\n"
                f"Submitted at: {submitted}"
            ),
        })

    async def send_category_request(
        self, name: str, email: str, category_name: str, description: str, examples: str = ""
    ) -> None:
        submitted = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        examples = examples or "No examples provided"
        await self._send({
            "from_name": name,
            "from_email": email,
            "category_name": category_name,
            "category_description": description,
            "category_examples": examples,
            "subject": f"New Category Request: {category_name}",
            "message": (
                "New category request received:\n\n"
                f"Name: {name}\n"
                f"Email: {email}\n"
                f"Category Name: {category_name}\n"
                f"Description: {description}\n"
                f"Examples: {examples}\n\n"
                f"Submitted at: {submitted}"
            ),
        })
