"""WhatsApp Cloud API document delivery tests"""

import json

import httpx
import pytest

from booking_service.exceptions import ExternalServiceError
from booking_service.models import Tenant
from booking_service.security_utils import encrypt_token
from booking_service.services.notification_service import send_invoice_notifications
from booking_service.services.whatsapp_service import WhatsAppCloudSender, build_whatsapp_sender


async def test_document_uploaded_then_sent():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.endswith("/media"):
            return httpx.Response(200, json={"id": "MEDIA-1"})
        return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

    sender = WhatsAppCloudSender(
        "PNID", "token-1", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    message_id = await sender.send_document("+966501234567", b"%PDF", "invoice-INV-1.pdf", caption="Your invoice")

    assert message_id == "wamid.1"
    assert requests[0].url.path == "/v18.0/PNID/media"
    assert requests[0].headers["Authorization"] == "Bearer token-1"
    body = json.loads(requests[1].content)
    assert body["to"] == "966501234567"
    assert body["type"] == "document"
    assert body["document"] == {"id": "MEDIA-1", "filename": "invoice-INV-1.pdf", "caption": "Your invoice"}


async def test_upload_failure_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "Invalid OAuth access token."}})

    sender = WhatsAppCloudSender(
        "PNID", "bad", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    with pytest.raises(ExternalServiceError, match="Invalid OAuth access token"):
        await sender.send_document("+966501234567", b"%PDF", "invoice.pdf")


def test_sender_built_from_tenant_settings():
    tenant = Tenant(
        id=1, name="T", whatsapp_settings={"phone_number_id": "PNID", "access_token": encrypt_token("tok")}
    )
    sender = build_whatsapp_sender(tenant)
    assert sender.access_token == "tok"
    assert sender.phone_number_id == "PNID"

    assert build_whatsapp_sender(Tenant(id=2, name="T", whatsapp_settings=None)) is None


async def test_notifications_report_each_channel():
    sent = []

    async def email_func(email):
        raise RuntimeError("mailbox full")

    async def whatsapp_func(phone):
        sent.append(phone)

    result = await send_invoice_notifications("INV-1", "sara@example.com", "966501234567", email_func, whatsapp_func)

    assert result == {
        "email_sent": False,
        "whatsapp_sent": True,
        "email_error": "mailbox full",
        "whatsapp_error": None,
    }
    assert sent == ["+966501234567"]
