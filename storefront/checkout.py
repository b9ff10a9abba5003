"""The buy-once checkout: charge the card, then record what happened.

Steps run strictly in order and each insert commits on its own. A
declined charge stops before anything is written; a failed insert stops
the flow and leaves earlier rows (and the charge) in place.
"""
from typing import Optional

import bcrypt
import structlog
from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError

from storefront.models import ORDER_STATUS_CLEARED, TRANSACTION_STATUS_CLEARED
from storefront.repository import Repository
from storefront.schemas import (
    CheckoutForm,
    CustomerCreate,
    OrderCreate,
    ReceiptData,
    TransactionCreate,
    UserCreate,
)
from storefront.stripe_service import Card, PaymentError

logger = structlog.get_logger(__name__)


class CheckoutError(Exception):
    pass


class InvalidCheckout(CheckoutError):
    """The submitted form can't be charged."""


class RecordingError(CheckoutError):
    """A database step failed."""

    def __init__(self, step: str, original_error: Exception):
        super().__init__(f"{step} failed: {original_error}")
        self.step = step
        self.original_error = original_error


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def split_name(full_name: str):
    first, _, last = full_name.strip().rpartition(" ")
    if not first:
        return last, ""
    return first, last


class Checkout:
    def __init__(self, card: Card, db: Repository):
        self.card = card
        self.db = db

    def parse_amount(self, form: CheckoutForm) -> int:
        try:
            amount = int(form.payment_amount)
        except (TypeError, ValueError):
            logger.warning("invalid_amount", payment_amount=form.payment_amount)
            raise InvalidCheckout(f"invalid payment amount: {form.payment_amount!r}")
        if amount <= 0:
            logger.warning("invalid_amount", payment_amount=form.payment_amount)
            raise InvalidCheckout("payment amount must be positive")
        return amount

    def parse_widget_id(self, form: CheckoutForm) -> int:
        try:
            return int(form.product_id)
        except (TypeError, ValueError):
            logger.warning("invalid_product_id", product_id=form.product_id)
            raise InvalidCheckout(f"invalid product id: {form.product_id!r}")

    def _record(self, step: str, func, record) -> int:
        try:
            return func(record)
        except SQLAlchemyError as e:
            logger.error(f"{step}_failed", error=str(e))
            raise RecordingError(step, e) from e

    def process(self, form: CheckoutForm) -> ReceiptData:
        amount = self.parse_amount(form)
        widget_id = self.parse_widget_id(form)
        currency = form.payment_currency or self.card.currency
        log = logger.bind(widget_id=widget_id, amount=amount, currency=currency)

        try:
            self.db.get_widget(widget_id)
        except NoResultFound:
            log.warning("unknown_widget")
            raise InvalidCheckout(f"unknown product id: {widget_id}")
        except SQLAlchemyError as e:
            log.error("widget_lookup_failed", error=str(e))
            raise RecordingError("widget_lookup", e) from e

        try:
            intent = self.card.charge(currency, amount)
        except PaymentError as e:
            log.warning("card_declined", code=e.code, message=e.message)
            raise

        # The card is charged from here on; card details are nice to have
        method = None
        if form.payment_method:
            try:
                method = self.card.get_payment_method(form.payment_method)
            except PaymentError as e:
                log.warning("card_details_unavailable", payment_method=form.payment_method, error=str(e.original_error))

        txn_id = self._record("transaction_insert", self.db.insert_transaction, TransactionCreate(
            amount=amount,
            currency=currency,
            last_four=_card_attr(method, "last4", ""),
            expiry_month=_card_attr(method, "exp_month", 0),
            expiry_year=_card_attr(method, "exp_year", 0),
            bank_return_code=getattr(intent, "latest_charge", None) or intent.id,
            transaction_status_id=TRANSACTION_STATUS_CLEARED,
        ))

        first_name, last_name = form.first_name, form.last_name
        if not first_name and not last_name:
            first_name, last_name = split_name(form.cardholder_name)
        customer = CustomerCreate(first_name=first_name or "", last_name=last_name or "", email=form.email)
        customer_id = self._record("customer_insert", self.db.insert_customer, customer)

        order_id = self._record("order_insert", self.db.insert_order, OrderCreate(
            widget_id=widget_id,
            transaction_id=txn_id,
            customer_id=customer_id,
            status_id=ORDER_STATUS_CLEARED,
            quantity=1,
            amount=amount,
        ))

        if form.account_password:
            user = UserCreate(**customer.model_dump(), password_hash=hash_password(form.account_password))
            try:
                self.db.insert_user(user)
            except IntegrityError:
                # Returning buyer: the account already exists, the order stands
                log.info("user_exists", email=user.email)
            except SQLAlchemyError as e:
                log.error("user_insert_failed", error=str(e))
                raise RecordingError("user_insert", e) from e

        log.info("checkout_completed", transaction_id=txn_id, order_id=order_id, customer_id=customer_id)
        return ReceiptData.from_form(form)


def _card_attr(method: Optional[object], name: str, default):
    card = getattr(method, "card", None)
    value = getattr(card, name, None)
    return default if value is None else value
