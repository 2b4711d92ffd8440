"""Payment schema definitions."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from config import DEFAULT_CURRENCY


class CreateOrderRequest(BaseModel):
    amount: int = Field(description="Amount in the smallest currency unit (paise)")
    currency: str = DEFAULT_CURRENCY
    receipt: Optional[str] = None


class CreateOrderResponse(BaseModel):
    success: bool
    order: Dict[str, Any]
    key: Optional[str] = None


class CreateQRCodeRequest(BaseModel):
    amount: int = Field(description="Amount in the smallest currency unit (paise)")
    description: Optional[str] = None


class CreateQRCodeResponse(BaseModel):
    success: bool
    qr: Dict[str, Any]


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)


class VerifyPaymentResponse(BaseModel):
    success: bool
    message: str
    payment_id: str
    order_id: str
