from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WidgetSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    inventory_level: int
    price: int
    image: str = ""
    created_at: datetime
    updated_at: datetime

    @field_validator("image", mode="before")
    @classmethod
    def missing_image_is_blank(cls, v):
        return v or ""


class TransactionCreate(BaseModel):
    amount: int
    currency: str
    last_four: str = ""
    bank_return_code: str = ""
    transaction_status_id: int
    expiry_month: int = 0
    expiry_year: int = 0


class OrderCreate(BaseModel):
    widget_id: int
    transaction_id: int
    customer_id: int
    status_id: int
    quantity: int = 1
    amount: int


class CustomerCreate(BaseModel):
    first_name: str
    last_name: str
    email: str


class UserCreate(CustomerCreate):
    password_hash: str


class CheckoutForm(BaseModel):
    """Fields posted by the payment pages, still as raw strings."""

    cardholder_name: str = ""
    email: str = ""
    payment_intent: str = ""
    payment_method: str = ""
    payment_amount: str = ""
    payment_currency: str = ""
    product_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    account_password: Optional[str] = None


class ReceiptData(BaseModel):
    cardholder: str
    email: str
    payment_intent: str
    payment_method: str
    payment_amount: str
    payment_currency: str

    @classmethod
    def from_form(cls, form: CheckoutForm) -> "ReceiptData":
        return cls(
            cardholder=form.cardholder_name,
            email=form.email,
            payment_intent=form.payment_intent,
            payment_method=form.payment_method,
            payment_amount=form.payment_amount,
            payment_currency=form.payment_currency,
        )


class PaymentIntentRequest(BaseModel):
    amount: int = Field(gt=0)
    currency: str = "usd"
