from typing import Optional

import stripe
import structlog

logger = structlog.get_logger(__name__)

GENERIC_DECLINE_MESSAGE = "Your card was declined."

CARD_ERROR_MESSAGES = {
    "card_declined": "Your card was declined",
    "expired_card": "Your card has expired",
    "incorrect_cvc": "Your card's security code is incorrect",
    "incorrect_zip": "Incorrect zip/postal code",
    "amount_too_large": "The amount is too large to charge to your card",
    "amount_too_small": "The amount is too small to charge to your card",
    "balance_insufficient": "Insufficient balance",
    "postal_code_invalid": "Your postal code was invalid",
}


def card_error_message(code: Optional[str]) -> str:
    return CARD_ERROR_MESSAGES.get(code, GENERIC_DECLINE_MESSAGE)


class PaymentError(Exception):
    """The processor refused or failed a request.

    ``message`` is safe to show to the card holder, ``original_error`` is
    the processor exception for the logs.
    """

    def __init__(self, message: str, code: Optional[str] = None, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.original_error = original_error


class Card:
    """Stripe credentials plus the calls the checkout needs.

    The secret key is sent with each request rather than set on the
    ``stripe`` module, so several instances can coexist.
    """

    def __init__(self, secret: str, key: str = "", currency: str = "usd"):
        self.secret = secret
        self.key = key
        self.currency = currency

    @classmethod
    def from_settings(cls, settings) -> "Card":
        return cls(
            secret=settings.stripe_secret_key,
            key=settings.stripe_publishable_key,
            currency=settings.currency,
        )

    def charge(self, currency: str, amount: int) -> stripe.PaymentIntent:
        return self.create_payment_intent(currency, amount)

    def create_payment_intent(self, currency: str, amount: int) -> stripe.PaymentIntent:
        """Single attempt at creating a payment intent; raises PaymentError."""
        if not isinstance(amount, int) or amount <= 0:
            raise ValueError(f"amount must be a positive integer, got {amount!r}")

        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.secret,
                amount=amount,
                currency=currency,
            )
        except stripe.StripeError as e:
            code = getattr(e, "code", None)
            logger.warning("payment_intent_failed", code=code, amount=amount, currency=currency, error=str(e))
            raise PaymentError(card_error_message(code), code=code, original_error=e) from e

        logger.info("payment_intent_created", payment_intent_id=intent.id, amount=amount, currency=currency)
        return intent

    def get_payment_method(self, payment_method_id: str) -> stripe.PaymentMethod:
        try:
            return stripe.PaymentMethod.retrieve(payment_method_id, api_key=self.secret)
        except stripe.StripeError as e:
            code = getattr(e, "code", None)
            logger.warning("payment_method_lookup_failed", payment_method_id=payment_method_id, error=str(e))
            raise PaymentError(card_error_message(code), code=code, original_error=e) from e
