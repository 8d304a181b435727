"""
Billing bridge application.

Served separately from the main API because the hosted web client calls it
cross-origin with a wildcard CORS policy, and the processor posts signed
webhooks to it:

- POST /create-checkout-session: open a subscription checkout for a price
- POST /webhook: apply subscription lifecycle events to listings

Every response, errors included, carries the bridge's CORS headers.
"""
import json
import uuid
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from vendorhub.lib.db import get_db_context
from vendorhub.lib.logging import get_logger, set_correlation_id
from vendorhub.services.billing_service import BillingService, CheckoutError, WebhookPayloadError
from vendorhub.services.payment_processor import PaymentProcessorError

logger = get_logger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

REQUIRED_CHECKOUT_FIELDS = ("priceId", "userId", "email")


def bridge_response(content: Dict[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)


def get_billing_service() -> BillingService:
    """Checkout does not touch the directory store."""
    return BillingService()


def _apply_webhook(payload: bytes, signature: str):
    with get_db_context() as session:
        return BillingService(session).handle_webhook(payload, signature)


app = FastAPI(
    title="VendorHub Billing Bridge",
    version="1.0.0",
    description="Checkout sessions and payment processor webhooks",
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
    set_correlation_id(correlation_id)
    try:
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response
    finally:
        set_correlation_id(None)


@app.exception_handler(StarletteHTTPException)
async def bridge_http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown methods and paths keep the bridge's error shape and CORS headers."""
    if exc.status_code == 405:
        return bridge_response({"error": "Method Not Allowed"}, status_code=405)
    return bridge_response({"error": exc.detail}, status_code=exc.status_code)


async def _preflight() -> JSONResponse:
    return bridge_response({"message": "Success"})


app.add_api_route("/create-checkout-session", _preflight, methods=["OPTIONS"], include_in_schema=False)
app.add_api_route("/webhook", _preflight, methods=["OPTIONS"], include_in_schema=False)


@app.post("/create-checkout-session")
async def create_checkout_session(request: Request) -> JSONResponse:
    """
    Create a hosted checkout session.

    Body: {"priceId": str, "userId": str, "email": str}

    Returns:
        {"sessionId": str, "url": str}
    """
    raw = await request.body()
    if not raw.strip():
        return bridge_response({"error": "Request body is required"}, status_code=400)

    try:
        body = json.loads(raw)
    except ValueError:
        return bridge_response({"error": "Request body is required"}, status_code=400)
    if not isinstance(body, dict):
        body = {}

    missing = {field: not body.get(field) for field in REQUIRED_CHECKOUT_FIELDS}
    if any(missing.values()):
        return bridge_response(
            {"error": "Missing required fields", "details": missing},
            status_code=400,
        )

    service = get_billing_service()
    try:
        session = await run_in_threadpool(
            service.create_checkout_session,
            str(body["priceId"]),
            str(body["userId"]),
            str(body["email"]),
        )
    except CheckoutError as e:
        return bridge_response({"error": e.error, "details": e.details}, status_code=400)

    return bridge_response({"sessionId": session.session_id, "url": session.url})


@app.post("/webhook")
async def receive_webhook(request: Request) -> JSONResponse:
    """
    Receive a signed processor event.

    Returns {"received": true} once the event is applied (or recognised as a
    duplicate); any verification or processing failure is a 400 so the
    processor retries the delivery.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        result = await run_in_threadpool(_apply_webhook, payload, signature)
    except (PaymentProcessorError, WebhookPayloadError) as e:
        logger.warning(f"Webhook rejected: {e}")
        return bridge_response({"error": "Webhook error", "details": str(e)}, status_code=400)
    except Exception as e:
        logger.error(f"Webhook processing failed: {e}", exc_info=True)
        return bridge_response({"error": "Webhook error", "details": str(e)}, status_code=400)

    logger.info(
        "Webhook processed",
        extra={"event_id": result.event_id, "event_type": result.event_type, "outcome": result.outcome},
    )
    return bridge_response({"received": True})
