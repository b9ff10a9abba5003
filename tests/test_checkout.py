from types import SimpleNamespace

import bcrypt
import pytest
import stripe
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from storefront.checkout import Checkout, InvalidCheckout, RecordingError, split_name
from storefront.models import Customer, Order, Transaction, User
from storefront.schemas import CheckoutForm
from storefront.stripe_service import Card, PaymentError


@pytest.fixture
def checkout(db):
    return Checkout(Card(secret="sk_test_123"), db)


@pytest.fixture
def stripe_ok(mocker):
    intent = SimpleNamespace(id="pi_123", latest_charge="ch_123", client_secret="secret_123")
    method = SimpleNamespace(id="pm_123", card=SimpleNamespace(last4="4242", exp_month=12, exp_year=2030))
    return SimpleNamespace(
        create=mocker.patch("stripe.PaymentIntent.create", return_value=intent),
        retrieve=mocker.patch("stripe.PaymentMethod.retrieve", return_value=method),
    )


def make_form(widget_id, **overrides):
    values = dict(
        cardholder_name="Jane Doe",
        email="jane@example.com",
        payment_intent="pi_client",
        payment_method="pm_123",
        payment_amount="1000",
        payment_currency="usd",
        product_id=str(widget_id),
    )
    values.update(overrides)
    return CheckoutForm(**values)


def count(session_factory, model):
    with session_factory() as session:
        return session.execute(select(func.count()).select_from(model)).scalar()


def test_successful_checkout_records_transaction_and_order(checkout, stripe_ok, widget_id, session_factory):
    receipt = checkout.process(make_form(widget_id))

    stripe_ok.create.assert_called_once_with(api_key="sk_test_123", amount=1000, currency="usd")
    assert receipt.cardholder == "Jane Doe"
    assert receipt.payment_amount == "1000"
    assert receipt.payment_currency == "usd"

    with session_factory() as session:
        txn = session.execute(select(Transaction)).scalar_one()
        order = session.execute(select(Order)).scalar_one()
        customer = session.execute(select(Customer)).scalar_one()

        assert txn.amount == 1000
        assert txn.currency == "usd"
        assert txn.last_four == "4242"
        assert (txn.expiry_month, txn.expiry_year) == (12, 2030)
        assert txn.bank_return_code == "ch_123"
        assert order.transaction_id == txn.id
        assert order.customer_id == customer.id
        assert order.widget_id == widget_id
        assert order.quantity == 1
        assert order.amount == 1000
        assert (customer.first_name, customer.last_name) == ("Jane", "Doe")
    assert count(session_factory, User) == 0


def test_declined_card_writes_nothing(checkout, mocker, widget_id, session_factory):
    mocker.patch(
        "stripe.PaymentIntent.create",
        side_effect=stripe.CardError("Your card was declined.", None, "card_declined"),
    )

    with pytest.raises(PaymentError) as exc_info:
        checkout.process(make_form(widget_id))

    assert exc_info.value.message == "Your card was declined"
    for model in (Transaction, Order, Customer, User):
        assert count(session_factory, model) == 0


@pytest.mark.parametrize("amount", ["0", "-5", "ten", ""])
def test_bad_amount_never_reaches_processor(checkout, stripe_ok, widget_id, amount):
    with pytest.raises(InvalidCheckout):
        checkout.process(make_form(widget_id, payment_amount=amount))

    stripe_ok.create.assert_not_called()


def test_unknown_widget_is_not_charged(checkout, stripe_ok):
    with pytest.raises(InvalidCheckout):
        checkout.process(make_form(999))

    stripe_ok.create.assert_not_called()


def test_account_password_creates_user_with_hash(checkout, stripe_ok, widget_id, session_factory):
    checkout.process(make_form(widget_id, account_password="s3cret"))

    with session_factory() as session:
        user = session.execute(select(User)).scalar_one()
        assert user.email == "jane@example.com"
        assert user.password_hash != "s3cret"
        assert bcrypt.checkpw(b"s3cret", user.password_hash.encode("utf-8"))


def test_failed_order_insert_keeps_transaction(checkout, stripe_ok, widget_id, session_factory, mocker):
    mocker.patch.object(
        checkout.db, "insert_order", side_effect=OperationalError("INSERT", {}, Exception("timeout")),
    )

    with pytest.raises(RecordingError) as exc_info:
        checkout.process(make_form(widget_id))

    assert exc_info.value.step == "order_insert"
    assert count(session_factory, Transaction) == 1
    assert count(session_factory, Order) == 0


def test_explicit_names_win_over_cardholder(checkout, stripe_ok, widget_id, session_factory):
    checkout.process(make_form(widget_id, first_name="Janet", last_name="Smith"))

    with session_factory() as session:
        customer = session.execute(select(Customer)).scalar_one()
        assert (customer.first_name, customer.last_name) == ("Janet", "Smith")


@pytest.mark.parametrize("full_name, expected", [
    ("Jane Doe", ("Jane", "Doe")),
    ("Mary Ann Smith", ("Mary Ann", "Smith")),
    ("Cher", ("Cher", "")),
])
def test_split_name(full_name, expected):
    assert split_name(full_name) == expected


def test_card_lookup_failure_still_records_transaction(checkout, stripe_ok, widget_id, session_factory):
    stripe_ok.retrieve.side_effect = stripe.InvalidRequestError("No such PaymentMethod", "id")

    receipt = checkout.process(make_form(widget_id))

    assert receipt.payment_amount == "1000"
    with session_factory() as session:
        txn = session.execute(select(Transaction)).scalar_one()
        assert txn.amount == 1000
        assert txn.last_four == ""
        assert (txn.expiry_month, txn.expiry_year) == (0, 0)
        assert txn.bank_return_code == "ch_123"
    assert count(session_factory, Order) == 1


def test_returning_buyer_with_password_keeps_order(checkout, stripe_ok, widget_id, session_factory):
    checkout.process(make_form(widget_id, account_password="pw"))
    checkout.process(make_form(widget_id, account_password="pw"))

    assert count(session_factory, Transaction) == 2
    assert count(session_factory, Order) == 2
    assert count(session_factory, User) == 1


def test_widget_lookup_store_error(checkout, stripe_ok, widget_id, mocker):
    mocker.patch.object(
        checkout.db, "get_widget", side_effect=OperationalError("SELECT", {}, Exception("interrupted")),
    )

    with pytest.raises(RecordingError) as exc_info:
        checkout.process(make_form(widget_id))

    assert exc_info.value.step == "widget_lookup"
    stripe_ok.create.assert_not_called()
