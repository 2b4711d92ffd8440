"""Payment order records and webhook event handling."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from core.exceptions import ValidationError
from models.payment import PaymentModel

logger = logging.getLogger(__name__)

STATUS_CREATED = "created"
STATUS_PAID = "paid"
STATUS_FAILED = "failed"


def _entity(payload: Any, kind: str) -> Dict[str, Any]:
    """Return ``payload[kind]["entity"]``, or an empty dict if malformed."""
    wrapper = payload.get(kind) if isinstance(payload, dict) else None
    entity = wrapper.get("entity") if isinstance(wrapper, dict) else None
    return entity if isinstance(entity, dict) else {}


def validate_amount(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Amount must be a positive integer in paise")
    return amount


class PaymentManager:
    """Tracks Razorpay orders and QR codes using SQLAlchemy."""

    def __init__(self, db: Session):
        """Initialize PaymentManager.

        Args:
            db: SQLAlchemy Session.
        """
        self.db = db

    def record_order(
        self, order: Dict[str, Any], user_id: Optional[str] = None
    ) -> PaymentModel:
        model = PaymentModel(
            order_id=order["id"],
            user_id=user_id,
            amount=order["amount"],
            currency=order.get("currency", "INR"),
            receipt=order.get("receipt"),
            status=STATUS_CREATED,
        )
        self.db.add(model)
        self.db.commit()
        self.db.refresh(model)
        return model

    def record_qr_code(
        self, qr: Dict[str, Any], amount: int, user_id: Optional[str] = None
    ) -> PaymentModel:
        model = PaymentModel(
            qr_code_id=qr["id"],
            qr_image_url=qr.get("image_url"),
            user_id=user_id,
            amount=qr.get("payment_amount", amount),
            currency=qr.get("currency", "INR"),
            status=STATUS_CREATED,
        )
        self.db.add(model)
        self.db.commit()
        self.db.refresh(model)
        return model

    def get_by_order_id(self, order_id: str) -> Optional[PaymentModel]:
        return self.db.query(PaymentModel).filter(PaymentModel.order_id == order_id).first()

    def _set_status(
        self,
        status: str,
        payment_id: Optional[str],
        order_id: Optional[str] = None,
        qr_code_id: Optional[str] = None,
    ) -> Optional[PaymentModel]:
        query = self.db.query(PaymentModel)
        if order_id:
            model = query.filter(PaymentModel.order_id == order_id).first()
        elif qr_code_id:
            model = query.filter(PaymentModel.qr_code_id == qr_code_id).first()
        else:
            model = None
        if model is None:
            logger.warning(
                "No payment record for order=%s qr=%s (status %s)", order_id, qr_code_id, status
            )
            return None
        # A captured payment is never downgraded by a late failure event
        if model.status == STATUS_PAID and status != STATUS_PAID:
            return model
        model.status = status
        model.payment_id = payment_id or model.payment_id
        self.db.commit()
        self.db.refresh(model)
        logger.info("Payment %s is now %s", model.order_id or model.qr_code_id, status)
        return model

    def mark_paid(self, order_id: str, payment_id: str) -> Optional[PaymentModel]:
        return self._set_status(STATUS_PAID, payment_id, order_id=order_id)

    def handle_webhook_event(self, event: Dict[str, Any]) -> Optional[str]:
        """Apply a verified webhook event.

        Args:
            event: Parsed webhook body.

        Returns:
            The event name if it was handled, None if it was ignored.
        """
        name = event.get("event")
        payload = event.get("payload")
        payment = _entity(payload, "payment")
        order = _entity(payload, "order")
        qr_code = _entity(payload, "qr_code")

        if name == "payment.captured":
            self._set_status(STATUS_PAID, payment.get("id"), order_id=payment.get("order_id"))
        elif name == "payment.failed":
            self._set_status(STATUS_FAILED, payment.get("id"), order_id=payment.get("order_id"))
        elif name == "order.paid":
            self._set_status(STATUS_PAID, payment.get("id"), order_id=order.get("id"))
        elif name == "qr_code.credited":
            self._set_status(STATUS_PAID, payment.get("id"), qr_code_id=qr_code.get("id"))
        else:
            logger.info("Ignoring Razorpay webhook event %s", name)
            return None
        return name
