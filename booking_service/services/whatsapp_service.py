"""
WhatsApp Cloud API Service
Sends documents (invoice PDFs) to customers through a tenant's WhatsApp Business number
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx

from ..config import EXTERNAL_HTTP_TIMEOUT, WHATSAPP_API_VERSION, WHATSAPP_GRAPH_URL
from ..exceptions import ExternalServiceError
from ..models import Tenant
from ..security_utils import decrypt_token

logger = logging.getLogger(__name__)


class WhatsAppCloudSender:
    """Upload a document to Meta, then send it as a document message"""

    def __init__(
        self,
        phone_number_id: str,
        access_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = EXTERNAL_HTTP_TIMEOUT,
    ):
        self.phone_number_id = phone_number_id
        self.access_token = access_token
        self.base_url = f"{WHATSAPP_GRAPH_URL}/{WHATSAPP_API_VERSION}/{phone_number_id}"
        self.timeout = timeout
        self._http_client = http_client

    @asynccontextmanager
    async def _session(self):
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    @staticmethod
    def _check(response: httpx.Response, operation: str) -> dict:
        if response.status_code >= 400:
            try:
                error = response.json().get("error", {})
                message = error.get("message") or response.text[:500]
            except ValueError:
                message = response.text[:500]
            raise ExternalServiceError(
                f"WhatsApp {operation} failed: {message}",
                status=response.status_code,
                retryable=response.status_code >= 500 or response.status_code == 429,
            )
        return response.json()

    async def send_document(self, to_phone: str, content: bytes, filename: str, caption: Optional[str] = None) -> str:
        """Send a PDF to an E.164 phone number and return the WhatsApp message id"""
        headers = {"Authorization": f"Bearer {self.access_token}"}
        recipient = to_phone.lstrip("+")

        try:
            async with self._session() as client:
                upload = await client.post(
                    f"{self.base_url}/media",
                    headers=headers,
                    data={"messaging_product": "whatsapp", "type": "application/pdf"},
                    files={"file": (filename, content, "application/pdf")},
                )
                media_id = self._check(upload, "media upload")["id"]

                document = {"id": media_id, "filename": filename}
                if caption:
                    document["caption"] = caption
                message = await client.post(
                    f"{self.base_url}/messages",
                    headers=headers,
                    json={
                        "messaging_product": "whatsapp",
                        "to": recipient,
                        "type": "document",
                        "document": document,
                    },
                )
                body = self._check(message, "document send")
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"WhatsApp request failed: {e}", retryable=True) from e

        message_id = (body.get("messages") or [{}])[0].get("id")
        logger.info(f"📱 WhatsApp document {filename} sent to {to_phone} (message {message_id})")
        return message_id


def build_whatsapp_sender(tenant: Optional[Tenant]) -> Optional[WhatsAppCloudSender]:
    """Sender for the tenant's WhatsApp settings, or None when not configured"""
    settings = (tenant.whatsapp_settings or {}) if tenant is not None else {}
    phone_number_id = settings.get("phone_number_id")
    access_token = decrypt_token(settings.get("access_token"))
    if not phone_number_id or not access_token:
        return None
    return WhatsAppCloudSender(phone_number_id=phone_number_id, access_token=access_token)
