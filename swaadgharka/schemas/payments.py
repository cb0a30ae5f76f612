from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from swaadgharka.core.choices import UPI_ID_PATTERN
from swaadgharka.core.config import CURRENCY


class CreateIntentRequest(BaseModel):
    order_id: int = Field(..., ge=1)
    amount: int = Field(..., ge=1)
    currency: str = Field(CURRENCY, min_length=3, max_length=3)


class ConfirmRequest(BaseModel):
    order_id: int = Field(..., ge=1)
    reference: str = Field(..., min_length=1, max_length=120)


class RazorpayVerifyRequest(BaseModel):
    order_id: int = Field(..., ge=1)
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class UpiProcessRequest(BaseModel):
    order_id: int = Field(..., ge=1)
    amount: int = Field(..., ge=1)
    upi_id: Optional[str] = Field(None, pattern=UPI_ID_PATTERN)


class CodConfirmRequest(BaseModel):
    order_id: int = Field(..., ge=1)


class RefundRequest(BaseModel):
    order_id: int = Field(..., ge=1)
    amount: int = Field(..., ge=1)
    reason: str = Field(..., min_length=1, max_length=200)
