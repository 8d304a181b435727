"""Payment processor client and webhook signature verification.

Wraps the Stripe SDK with the API version pinned, so event and object
shapes do not drift with the account's default version. Connection failures
are retried with exponential backoff; API errors surface as
PaymentProcessorError with the processor's own message.
"""
import json
from typing import Any, Dict, Optional

import stripe
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from vendorhub.lib.logging import get_logger
from vendorhub.lib.settings import settings

logger = get_logger(__name__)


class PaymentProcessorError(Exception):
    """Error reported by (or while talking to) the payment processor."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class SignatureVerificationError(PaymentProcessorError):
    """Webhook payload does not carry a valid signature."""


def _as_dict(obj: Any) -> Dict[str, Any]:
    return {key: obj[key] for key in obj.keys()} if obj is not None else {}


class PaymentProcessorClient:
    """Minimal processor API surface used by the billing bridge."""

    def __init__(self, api_key: Optional[str] = None, api_version: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.stripe_secret_key
        self.api_version = api_version or settings.stripe_api_version

    def _options(self) -> Dict[str, str]:
        return {"api_key": self.api_key, "stripe_version": self.api_version}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(stripe.APIConnectionError),
        reraise=True,
    )
    def _send(self, operation, *args, **params):
        return operation(*args, **params, **self._options())

    def _call(self, operation, *args, **params):
        try:
            return self._send(operation, *args, **params)
        except stripe.APIConnectionError as e:
            logger.error(f"Payment processor unreachable: {e}")
            raise PaymentProcessorError(f"Payment processor unreachable: {e.user_message or e}") from e
        except stripe.StripeError as e:
            raise PaymentProcessorError(e.user_message or str(e), status_code=e.http_status) from e

    # ===== Customers =====

    def find_customer_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        customers = self._call(stripe.Customer.list, email=email, limit=1)
        data = customers["data"] or []
        if not data:
            return None
        customer = data[0]
        return {"id": customer["id"], "metadata": _as_dict(customer["metadata"])}

    def create_customer(self, email: str, metadata: Dict[str, str]) -> Dict[str, Any]:
        customer = self._call(stripe.Customer.create, email=email, metadata=metadata)
        return {"id": customer["id"], "metadata": _as_dict(customer["metadata"])}

    def update_customer(self, customer_id: str, metadata: Dict[str, str]) -> Dict[str, Any]:
        customer = self._call(stripe.Customer.modify, customer_id, metadata=metadata)
        return {"id": customer["id"], "metadata": _as_dict(customer["metadata"])}

    # ===== Checkout =====

    def create_checkout_session(self, params: Dict[str, Any]) -> Dict[str, Any]:
        session = self._call(stripe.checkout.Session.create, **params)
        return {"id": session["id"], "url": session["url"]}


# ===== Webhook signatures =====

def construct_event(
    payload: bytes,
    signature_header: Optional[str],
    secret: str,
    tolerance: Optional[int] = None,
) -> Dict[str, Any]:
    """Verify a webhook delivery and decode its event envelope.

    Raises:
        SignatureVerificationError: missing/malformed header, no matching
            signature, or a timestamp outside the tolerance window
        PaymentProcessorError: payload is not a JSON object
    """
    if not signature_header:
        raise SignatureVerificationError("No signature header value was provided.")
    if not secret:
        raise SignatureVerificationError("Webhook signing secret is not configured.")

    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise PaymentProcessorError(f"Invalid payload: {e}") from e

    tolerance = settings.webhook_tolerance_seconds if tolerance is None else tolerance
    try:
        stripe.WebhookSignature.verify_header(text, signature_header, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        raise SignatureVerificationError(e.user_message or str(e)) from e

    try:
        event = json.loads(text)
    except ValueError as e:
        raise PaymentProcessorError(f"Invalid payload: {e}") from e
    if not isinstance(event, dict):
        raise PaymentProcessorError("Invalid payload: expected a JSON object")
    return event
