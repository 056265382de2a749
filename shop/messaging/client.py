# shop/messaging/client.py
"""Thin WhatsApp Cloud API client. Every call raises a classified ``ProviderError`` on failure."""
import logging

import requests

from core.exceptions import ConfigurationError, ProviderRequestError
from shop.messaging.errors import classify_whatsapp_error

logger = logging.getLogger(__name__)


class WhatsAppClient:
    def __init__(self, config, session=None):
        self.config = config
        self.session = session or requests.Session()

    @property
    def messages_url(self):
        return f"{self.config.base_url}/{self.config.phone_number_id}/messages"

    @property
    def media_url(self):
        return f"{self.config.base_url}/{self.config.phone_number_id}/media"

    def _post(self, url, recipient=None, **kwargs):
        if not self.config.is_configured:
            raise ConfigurationError("WhatsApp API credentials not configured")

        headers = {"Authorization": f"Bearer {self.config.api_token}"}
        try:
            response = self.session.post(url, headers=headers, timeout=self.config.timeout, **kwargs)
        except requests.RequestException as e:
            raise classify_whatsapp_error(exc=e, recipient=recipient)

        if not response.ok:
            logger.error(f"WhatsApp API {response.status_code}: {response.text}")
            raise classify_whatsapp_error(response=response, recipient=recipient)
        return response.json()

    # ===================== MESSAGES =====================
    def send_template(self, to, template_name=None, language=None):
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "template",
            "template": {
                "name": template_name or self.config.template_name,
                "language": {"code": language or self.config.template_language},
            },
        }
        logger.info(f"Sending template {payload['template']['name']} to {to}")
        return self._post(self.messages_url, recipient=to, json=payload)

    def send_document(self, to, media_id, caption="", filename="bill.pdf"):
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "document",
            "document": {"id": media_id, "caption": caption, "filename": filename},
        }
        return self._post(self.messages_url, recipient=to, json=payload)

    # ===================== MEDIA =====================
    def upload_media(self, content, filename, mime_type="application/pdf"):
        """Upload bytes to WhatsApp's media store and return the media id."""
        data = self._post(
            self.media_url,
            files={"file": (filename, content, mime_type)},
            data={"type": mime_type, "messaging_product": "whatsapp"},
        )
        media_id = data.get("id")
        if not media_id:
            raise ProviderRequestError("Failed to upload PDF to WhatsApp: No media ID returned")
        return media_id
