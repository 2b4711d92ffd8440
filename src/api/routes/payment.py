"""Payment routes backed by Razorpay."""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from core.dependencies import PaymentManagerDep, PaymentServiceDep
from core.exceptions import ValidationError
from api.routes.auth import get_optional_user
from schemas.payment import (
    CreateOrderRequest,
    CreateOrderResponse,
    CreateQRCodeRequest,
    CreateQRCodeResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from schemas.user import User
from utils.payment_manager import validate_amount

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payment", tags=["Payment"])


@router.post("/create-order", response_model=CreateOrderResponse, summary="Create order")
def create_order(
    req: CreateOrderRequest,
    current_user: Optional[User] = Depends(get_optional_user),
    payment_service: PaymentServiceDep = None,
    payment_manager: PaymentManagerDep = None,
) -> CreateOrderResponse:
    amount = validate_amount(req.amount)
    order = payment_service.create_order(amount, req.currency, req.receipt)
    payment_manager.record_order(order, current_user.user_id if current_user else None)
    return CreateOrderResponse(success=True, order=order, key=payment_service.key_id)


@router.post("/create-qr", response_model=CreateQRCodeResponse, summary="Create UPI QR code")
def create_qr_code(
    req: CreateQRCodeRequest,
    current_user: Optional[User] = Depends(get_optional_user),
    payment_service: PaymentServiceDep = None,
    payment_manager: PaymentManagerDep = None,
) -> CreateQRCodeResponse:
    amount = validate_amount(req.amount)
    qr = payment_service.create_qr_code(amount, req.description)
    payment_manager.record_qr_code(qr, amount, current_user.user_id if current_user else None)
    return CreateQRCodeResponse(success=True, qr=qr)


@router.post("/verify", response_model=VerifyPaymentResponse, summary="Verify payment")
def verify_payment(
    req: VerifyPaymentRequest,
    payment_service: PaymentServiceDep = None,
    payment_manager: PaymentManagerDep = None,
) -> VerifyPaymentResponse:
    """Check the checkout signature and mark the order paid.

    Raises:
        ValidationError: If the signature does not match.
    """
    if not payment_service.verify_payment_signature(
        req.razorpay_order_id, req.razorpay_payment_id, req.razorpay_signature
    ):
        logger.warning("Payment signature mismatch for order %s", req.razorpay_order_id)
        raise ValidationError("Payment verification failed")

    payment_manager.mark_paid(req.razorpay_order_id, req.razorpay_payment_id)
    return VerifyPaymentResponse(
        success=True,
        message="Payment verified successfully",
        payment_id=req.razorpay_payment_id,
        order_id=req.razorpay_order_id,
    )


async def read_raw_body(request: Request) -> bytes:
    """Return the unparsed request body, as signed by Razorpay."""
    return await request.body()


@router.post("/webhook", summary="Razorpay webhook")
def payment_webhook(
    body: bytes = Depends(read_raw_body),
    x_razorpay_signature: Optional[str] = Header(default=None),
    payment_service: PaymentServiceDep = None,
    payment_manager: PaymentManagerDep = None,
) -> dict:
    """Apply a signed Razorpay event.

    Raises:
        ValidationError: If the signature is missing or wrong, or the body
            is not a JSON object.
    """
    if not payment_service.verify_webhook_signature(body, x_razorpay_signature):
        logger.warning("Rejected webhook with invalid signature")
        raise ValidationError("Invalid webhook signature")
    try:
        event = json.loads(body)
    except ValueError as e:
        raise ValidationError("Invalid webhook payload") from e
    if not isinstance(event, dict):
        raise ValidationError("Invalid webhook payload")

    handled = payment_manager.handle_webhook_event(event)
    return {"status": "ok", "event": event.get("event"), "handled": handled is not None}
