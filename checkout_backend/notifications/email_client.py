"""
Client de l'API HTTP d'email transactionnel (POST JSON, auth Bearer).
"""
import logging
from typing import Any, Dict, Optional

import httpx

from checkout_backend import config

logger = logging.getLogger(__name__)

class EmailNotConfigured(RuntimeError):
    pass

# module checkout_backend.notifications.email_client
class EmailClient:
    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self._transport = transport

    @classmethod
    def from_config(cls) -> "EmailClient":
        return cls(config.EMAIL_API_URL, config.EMAIL_API_KEY, config.EMAIL_FROM)

    @property
    def configured(self) -> bool:
        return bool(self.api_url and self.api_key)

    async def send(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        """
        Envoie un email HTML.
        - Lève EmailNotConfigured si l'URL ou la clé manque.
        - Lève httpx.HTTPStatusError sur réponse non 2xx.
        """
        if not self.configured:
            raise EmailNotConfigured("EMAIL_API_URL/EMAIL_API_KEY manquants")
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {"from": self.sender, "to": [to], "subject": subject, "html": html}
        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(self.api_url, headers=headers, json=payload)
            response.raise_for_status()
            logger.info("notifications.email sent to=%s status=%s", to, response.status_code)
            return response.json() if response.content else {}
