"""Order, payment and hosted-checkout routes.

Every route here mutates upstream state, so each is gated behind the
store-online check and bypasses the response cache.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request

from ....application.checkout_builder import (
    build_payment_link_request,
    build_payment_request,
    ensure_idempotency_key,
    new_idempotency_key,
    validate_checkout,
)
from ....application.validation import validate_payment_request
from ....config import Settings
from ....constants import LOCATION_UNRESOLVED_MESSAGE
from ....domain.exceptions import ValidationError
from ....domain.models import CheckoutRequest
from ....infrastructure.square.client import SquareClient
from ....logging import LogEvent, LogRecord, info
from ..dependencies import (
    get_request_id,
    get_settings,
    get_square_client,
    require_store_online,
)

router = APIRouter(prefix="/api/square", dependencies=[Depends(require_store_online)])


@router.post("/orders")
async def create_order(
    request: Request,
    client: SquareClient = Depends(get_square_client),
    request_id: str = Depends(get_request_id),
) -> Dict[str, Any]:
    body = await request.json()
    if not isinstance(body, dict):
        raise ValidationError(
            "Request body must be a JSON object", request_id=request_id
        )
    body = ensure_idempotency_key(body)
    return await client.request(
        "/orders", method="POST", body=body, use_cache=False, request_id=request_id
    )


@router.post("/payment")
async def process_payment(
    request: Request,
    client: SquareClient = Depends(get_square_client),
    settings: Settings = Depends(get_settings),
    request_id: str = Depends(get_request_id),
) -> Dict[str, Any]:
    """Charge a tokenized card; ``amount`` is in minor units."""
    body = await request.json()
    if not isinstance(body, dict):
        body = {}
    field_errors = validate_payment_request(body)
    if field_errors:
        raise ValidationError(
            "Validation failed", field_errors=field_errors, request_id=request_id
        )

    payload = build_payment_request(
        body["token"], body["amount"], body.get("orderId"), settings.currency
    )
    info(
        LogRecord(
            event=LogEvent.PAYMENT_REQUEST.value,
            message="Forwarding payment",
            request_id=request_id,
            data={
                "order_id": body.get("orderId"),
                "amount": payload["amount_money"]["amount"],
            },
        )
    )
    return await client.request(
        "/payments",
        method="POST",
        body=payload,
        use_cache=False,
        request_id=request_id,
    )


async def _resolve_location_id(
    checkout: CheckoutRequest, client: SquareClient, request_id: str
) -> str:
    location_id: Optional[str] = (
        checkout.pickup_location.id if checkout.pickup_location else None
    )
    if not location_id:
        location_id = await client.first_location_id(request_id=request_id)
    if not location_id:
        raise ValidationError(LOCATION_UNRESOLVED_MESSAGE, request_id=request_id)
    return location_id


@router.post("/create-checkout")
async def create_checkout(
    request: Request,
    client: SquareClient = Depends(get_square_client),
    settings: Settings = Depends(get_settings),
    request_id: str = Depends(get_request_id),
) -> Dict[str, Any]:
    """Build an order with pickup fulfillment and return a hosted payment link.

    Pickup date and time are checked before any upstream call is made.
    """
    checkout = CheckoutRequest.model_validate(await request.json())
    validate_checkout(checkout)

    location_id = await _resolve_location_id(checkout, client, request_id)
    redirect_origin = request.headers.get("origin") or settings.default_redirect_origin
    payload = build_payment_link_request(
        checkout,
        location_id=location_id,
        redirect_origin=redirect_origin,
        support_email=settings.merchant_support_email,
        currency=settings.currency,
        idempotency_key=new_idempotency_key("checkout"),
    )
    info(
        LogRecord(
            event=LogEvent.CHECKOUT_BUILD.value,
            message="Creating payment link",
            request_id=request_id,
            data={
                "location_id": location_id,
                "line_items": len(payload["order"]["line_items"]),
                "discounts": len(payload["order"].get("discounts", [])),
                "pickup_at": payload["order"]["fulfillments"][0]["pickup_details"][
                    "pickup_at"
                ],
            },
        )
    )

    result = await client.request(
        "/online-checkout/payment-links",
        method="POST",
        body=payload,
        use_cache=False,
        request_id=request_id,
    )
    payment_link = result.get("payment_link") or {}
    return {
        "checkoutUrl": payment_link.get("url"),
        "orderId": payment_link.get("order_id"),
    }
