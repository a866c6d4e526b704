"""
Zoho Invoice API client

One client per tenant: credentials and region come from that tenant's
ZohoIntegration row and are never shared through module state.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Optional

import httpx
from sqlalchemy.orm import Session

from ...config import EXTERNAL_HTTP_TIMEOUT, ZOHO_DEFAULT_REGION
from ...exceptions import ExternalServiceError
from ...models_zoho import ZohoIntegration
from ...security_utils import decrypt_token, encrypt_token

logger = logging.getLogger(__name__)

# Region -> Zoho data-centre domain suffix
ZOHO_REGION_DOMAINS = {
    "com": "com",
    "eu": "eu",
    "in": "in",
    "au": "com.au",
    "jp": "jp",
    "cn": "com.cn",
}

# Zoho error code for "mobile number not verified" on contact creation
ZOHO_MOBILE_NOT_VERIFIED = 1025


def _domain(region: Optional[str]) -> str:
    return ZOHO_REGION_DOMAINS.get((region or ZOHO_DEFAULT_REGION).lower(), "com")


def get_api_base_url(region: Optional[str]) -> str:
    return f"https://invoice.zoho.{_domain(region)}/api/v3"


def get_token_url(region: Optional[str]) -> str:
    return f"https://accounts.zoho.{_domain(region)}/oauth/v2/token"


def _error_from_response(response: httpx.Response, operation: str) -> ExternalServiceError:
    try:
        body = response.json()
    except ValueError:
        body = {"message": response.text[:500]}
    message = body.get("message") or f"HTTP {response.status_code}"
    retryable = response.status_code >= 500 or response.status_code == 429
    return ExternalServiceError(
        f"Zoho {operation} failed: {message}",
        status=response.status_code,
        retryable=retryable,
        details={"code": body.get("code"), "response": body},
    )


class ZohoTokenManager:
    """Hand out a valid access token, refreshing it 5 minutes before expiry"""

    def __init__(self, db: Session, integration: ZohoIntegration, http_client: Optional[httpx.AsyncClient] = None):
        self.db = db
        self.integration = integration
        self._http_client = http_client

    async def get_access_token(self) -> str:
        integration = self.integration
        if (
            integration.access_token
            and integration.token_expires_at
            and integration.token_expires_at > datetime.utcnow() + timedelta(minutes=5)
        ):
            token = decrypt_token(integration.access_token)
            if token:
                return token
        return await self.refresh()

    async def refresh(self) -> str:
        integration = self.integration
        refresh_token = decrypt_token(integration.refresh_token)
        client_secret = decrypt_token(integration.client_secret)
        if not refresh_token or not client_secret:
            raise ExternalServiceError("Zoho credentials are missing or unreadable")

        data = {
            "refresh_token": refresh_token,
            "client_id": integration.client_id,
            "client_secret": client_secret,
            "grant_type": "refresh_token",
        }
        try:
            if self._http_client is not None:
                response = await self._http_client.post(get_token_url(integration.region), data=data)
            else:
                async with httpx.AsyncClient(timeout=EXTERNAL_HTTP_TIMEOUT) as client:
                    response = await client.post(get_token_url(integration.region), data=data)
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Zoho token refresh failed: {e}", retryable=True) from e

        if response.status_code != 200:
            logger.error(f"❌ Zoho token refresh failed for tenant {integration.tenant_id}: {response.text}")
            raise _error_from_response(response, "token refresh")

        token_data = response.json()
        access_token = token_data.get("access_token")
        if not access_token:
            raise ExternalServiceError(f"Zoho token refresh failed: {token_data.get('error', 'no access_token')}")

        integration.access_token = encrypt_token(access_token)
        integration.token_expires_at = datetime.utcnow() + timedelta(seconds=int(token_data.get("expires_in", 3600)))
        self.db.commit()
        logger.info(f"✅ Refreshed Zoho access token for tenant {integration.tenant_id}")
        return access_token


class ZohoInvoiceClient:
    """Async wrapper over the Zoho Invoice v3 endpoints used for booking invoices"""

    def __init__(
        self,
        token_provider: Callable[[], Awaitable[str]],
        region: Optional[str] = None,
        organization_id: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = EXTERNAL_HTTP_TIMEOUT,
    ):
        self.token_provider = token_provider
        self.base_url = get_api_base_url(region)
        self.organization_id = organization_id
        self.timeout = timeout
        self._http_client = http_client

    @asynccontextmanager
    async def _session(self):
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    async def _request(self, method: str, path: str, operation: str, *, json=None, params=None, raw: bool = False):
        token = await self.token_provider()
        headers = {"Authorization": f"Zoho-oauthtoken {token}"}
        if self.organization_id:
            headers["X-com-zoho-invoice-organizationid"] = self.organization_id

        try:
            async with self._session() as client:
                response = await client.request(
                    method, f"{self.base_url}{path}", headers=headers, json=json, params=params
                )
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Zoho {operation} failed: {e}", retryable=True) from e

        if response.status_code >= 400:
            raise _error_from_response(response, operation)
        if raw:
            return response.content

        body = response.json()
        if body.get("code", 0) != 0:
            raise ExternalServiceError(
                f"Zoho {operation} failed: {body.get('message', 'unknown error')}",
                status=response.status_code,
                details={"code": body.get("code"), "response": body},
            )
        return body

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    async def get_or_create_contact(self, name: str, email: Optional[str] = None, phone: Optional[str] = None) -> str:
        for field, value in (("email", email), ("phone", phone)):
            if not value:
                continue
            body = await self._request("GET", "/contacts", "contact search", params={field: value})
            contacts = body.get("contacts") or []
            if contacts:
                return contacts[0]["contact_id"]

        person = {"first_name": name}
        if email:
            person["email"] = email
        if phone:
            person["mobile"] = phone
        payload = {"contact_name": name, "contact_persons": [person]}

        try:
            body = await self._request("POST", "/contacts", "contact creation", json=payload)
        except ExternalServiceError as e:
            if e.details.get("code") != ZOHO_MOBILE_NOT_VERIFIED or "mobile" not in person:
                raise
            logger.warning(f"⚠️ Zoho rejected unverified mobile for {name}, creating contact without it")
            person.pop("mobile")
            body = await self._request("POST", "/contacts", "contact creation", json=payload)
        return body["contact"]["contact_id"]

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    async def create_invoice(
        self,
        customer: dict,
        line_items: list[dict],
        currency_code: str,
        notes: Optional[str] = None,
        reference_number: Optional[str] = None,
    ) -> str:
        """Create the invoice, mark it sent, and return its Zoho id"""
        customer_id = await self.get_or_create_contact(
            customer["name"], customer.get("email"), customer.get("phone")
        )
        payload = {
            "customer_id": customer_id,
            "currency_code": currency_code,
            "date": date.today().isoformat(),
            "line_items": line_items,
        }
        if notes:
            payload["notes"] = notes
        if reference_number:
            payload["reference_number"] = reference_number

        body = await self._request("POST", "/invoices", "invoice creation", json=payload)
        invoice_id = body["invoice"]["invoice_id"]

        try:
            await self._request("POST", f"/invoices/{invoice_id}/status/sent", "mark as sent")
        except ExternalServiceError as e:
            logger.warning(f"⚠️ Invoice {invoice_id} created but could not be marked as sent: {e}")

        logger.info(f"🧾 Zoho invoice {invoice_id} created for contact {customer_id}")
        return invoice_id

    async def get_invoice(self, invoice_id: str) -> dict:
        body = await self._request("GET", f"/invoices/{invoice_id}", "invoice lookup")
        return body["invoice"]

    async def get_invoice_status(self, invoice_id: str) -> dict:
        invoice = await self.get_invoice(invoice_id)
        return {
            "status": invoice.get("status"),
            "balance": invoice.get("balance"),
            "total": invoice.get("total"),
        }

    async def send_invoice_email(self, invoice_id: str, email: str) -> None:
        await self._request(
            "POST", f"/invoices/{invoice_id}/email", "invoice email", json={"to_mail_ids": [email]}
        )
        logger.info(f"📧 Zoho emailed invoice {invoice_id} to {email}")

    async def download_invoice_pdf(self, invoice_id: str) -> bytes:
        return await self._request(
            "GET", f"/invoices/{invoice_id}", "invoice PDF download", params={"accept": "pdf"}, raw=True
        )

    async def record_payment(
        self, invoice_id: str, amount: float, payment_mode: str, reference_number: Optional[str] = None
    ) -> str:
        """Apply a customer payment to the invoice so Zoho reports it as paid"""
        invoice = await self.get_invoice(invoice_id)
        payload = {
            "customer_id": invoice["customer_id"],
            "payment_mode": payment_mode,
            "amount": amount,
            "date": date.today().isoformat(),
            "invoices": [{"invoice_id": invoice_id, "amount_applied": amount}],
        }
        if reference_number:
            payload["reference_number"] = reference_number
        body = await self._request("POST", "/customerpayments", "payment recording", json=payload)
        payment_id = body.get("payment", {}).get("payment_id")
        logger.info(f"💰 Recorded {payment_mode} payment {payment_id} on invoice {invoice_id}")
        return payment_id


def build_zoho_client(db: Session, tenant_id: int) -> Optional[ZohoInvoiceClient]:
    """Client for the tenant's active Zoho integration, or None when not configured"""
    integration = (
        db.query(ZohoIntegration)
        .filter(ZohoIntegration.tenant_id == tenant_id, ZohoIntegration.is_active.is_(True))
        .first()
    )
    if integration is None:
        return None
    manager = ZohoTokenManager(db, integration)
    return ZohoInvoiceClient(
        token_provider=manager.get_access_token,
        region=integration.region,
        organization_id=integration.organization_id,
    )
