"""Hubtel hosted checkout: initiation and callback interpretation."""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Tuple

import httpx

from busline.config import Settings, settings
from busline.services.errors import CallbackError, GatewayConfigError, GatewayError

logger = logging.getLogger(__name__)

SUCCESS = "success"
FAILURE = "failure"


@dataclass
class PaymentFields:
    transaction_id: Optional[str] = None
    status: Optional[str] = None
    amount: Optional[Decimal] = None
    method: str = "hubtel"


@dataclass
class CallbackResult:
    client_reference: str
    outcome: str
    gateway_status: Optional[str] = None
    payment: PaymentFields = field(default_factory=PaymentFields)

    @property
    def succeeded(self) -> bool:
        return self.outcome == SUCCESS


class HubtelGateway:
    provider_name = "hubtel"

    def __init__(self, config: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or settings
        # tests swap in httpx.MockTransport
        self.transport = transport

    def credentials(self) -> Tuple[str, str, str]:
        """(client id, secret key, merchant account) for the active mode."""
        c = self.config
        if c.HUBTEL_LIVE_MODE:
            triple = (c.HUBTEL_CLIENT_ID, c.HUBTEL_SECRET_KEY, c.HUBTEL_ACCOUNT_ID)
        else:
            triple = (c.HUBTEL_TEST_CLIENT_ID, c.HUBTEL_TEST_SECRET_KEY, c.HUBTEL_TEST_ACCOUNT_ID)
        if not all(triple):
            mode = "live" if c.HUBTEL_LIVE_MODE else "test"
            raise GatewayConfigError(f"Hubtel {mode} credentials are not configured")
        return triple

    def build_request(self, amount: Decimal, description: str, client_reference: str, phone: str, account_id: str) -> Dict:
        base = self.config.PUBLIC_BASE_URL.rstrip("/")
        return {
            "totalAmount": float(amount),
            "description": description,
            "callbackUrl": f"{base}/payments/callback",
            "returnUrl": f"{base}/payments/return?clientreference={client_reference}",
            "cancellationUrl": f"{base}/payments/return?error=payment_failed",
            "merchantAccountNumber": account_id,
            "clientReference": client_reference,
            "customerMsisdn": phone,
        }

    async def initiate(self, amount: Decimal, description: str, client_reference: str, phone: str) -> str:
        """Open a checkout session and return the hosted checkout URL."""
        client_id, secret_key, account_id = self.credentials()
        body = self.build_request(amount, description, client_reference, phone, account_id)
        try:
            async with httpx.AsyncClient(timeout=self.config.HUBTEL_TIMEOUT_SECONDS, transport=self.transport) as client:
                resp = await client.post(self.config.HUBTEL_API_URL, json=body, auth=(client_id, secret_key))
        except httpx.HTTPError as exc:
            logger.error("Hubtel request failed for %s: %s", client_reference, exc)
            raise GatewayError("Could not reach the payment provider") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.is_error or data.get("status") != "Success":
            logger.error("Hubtel initiation rejected for %s: status=%s body=%s", client_reference, resp.status_code, data)
            raise GatewayError(data.get("message") or "Hubtel payment initiation failed")

        checkout_url = (data.get("data") or {}).get("checkoutUrl")
        if not checkout_url:
            logger.error("Hubtel response for %s has no checkout url: %s", client_reference, data)
            raise GatewayError("Hubtel response did not include a checkout url")
        return checkout_url


def _amount(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise CallbackError(f"Invalid callback amount: {value!r}")


def interpret_callback(payload) -> CallbackResult:
    """Extract the correlation key and outcome from a Hubtel notification.

    Success requires Status == "Success", ResponseCode == "0000" and
    Data.Status == "Success"; anything else is a failure.
    """
    if not isinstance(payload, dict):
        raise CallbackError("Callback payload is not a JSON object")
    data = payload.get("Data")
    if not isinstance(data, dict):
        data = {}
    client_reference = data.get("ClientReference")
    if not client_reference:
        raise CallbackError("ClientReference not found in Hubtel callback")

    status = payload.get("Status")
    succeeded = status == "Success" and payload.get("ResponseCode") == "0000" and data.get("Status") == "Success"
    payment = PaymentFields(
        transaction_id=data.get("CheckoutId"),
        status=data.get("Status"),
        amount=_amount(data.get("Amount")),
    )
    return CallbackResult(
        client_reference=str(client_reference),
        outcome=SUCCESS if succeeded else FAILURE,
        gateway_status=status,
        payment=payment,
    )


async def handle_callback(lifecycle, payload):
    """Interpret a callback and drive the booking to paid or rejected.

    Returns the updated booking, or None when it was already finalised.
    """
    result = interpret_callback(payload)
    if result.succeeded:
        return await lifecycle.confirm_paid(result.client_reference, result.payment)
    return await lifecycle.payment_failed(result.client_reference, result.gateway_status)
