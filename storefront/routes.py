from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.exc import NoResultFound

from storefront.checkout import InvalidCheckout, RecordingError
from storefront.schemas import CheckoutForm, PaymentIntentRequest, ReceiptData
from storefront.stripe_service import PaymentError

logger = structlog.get_logger(__name__)

router = APIRouter()


def checkout_form(
    cardholder_name: str = Form("", alias="cardholder-name"),
    email: str = Form("", alias="cardholder-email"),
    payment_intent: str = Form("", alias="payment-intent"),
    payment_method: str = Form("", alias="payment-method"),
    payment_amount: str = Form("", alias="payment-amount"),
    payment_currency: str = Form("", alias="payment-currency"),
    product_id: Optional[str] = Form(None, alias="product-id"),
    first_name: Optional[str] = Form(None, alias="first-name"),
    last_name: Optional[str] = Form(None, alias="last-name"),
    account_password: Optional[str] = Form(None, alias="account-password"),
) -> CheckoutForm:
    return CheckoutForm(
        cardholder_name=cardholder_name,
        email=email,
        payment_intent=payment_intent,
        payment_method=payment_method,
        payment_amount=payment_amount,
        payment_currency=payment_currency,
        product_id=product_id,
        first_name=first_name,
        last_name=last_name,
        account_password=account_password,
    )


def render(request: Request, template: str, context: dict, status_code: int = 200):
    templates = request.app.state.templates
    context = {"stripe_key": request.app.state.settings.stripe_publishable_key, **context}
    return templates.TemplateResponse(request, template, context, status_code=status_code)


@router.get("/virtual-terminal", response_class=HTMLResponse)
def virtual_terminal(request: Request):
    return render(request, "terminal.html", {})


@router.post("/virtual-terminal-payment-succeeded", response_class=HTMLResponse)
def virtual_terminal_receipt(request: Request, form: CheckoutForm = Depends(checkout_form)):
    return render(request, "receipt.html", {"receipt": ReceiptData.from_form(form)})


@router.get("/widget/{widget_id}", response_class=HTMLResponse)
def charge_once(request: Request, widget_id: int):
    try:
        widget = request.app.state.db.get_widget(widget_id)
    except NoResultFound:
        logger.info("widget_not_found", widget_id=widget_id)
        raise HTTPException(status_code=404, detail="Widget not found")
    return render(request, "buy-once.html", {"widget": widget})


@router.post("/payment-succeeded", response_class=HTMLResponse)
def payment_succeeded(request: Request, form: CheckoutForm = Depends(checkout_form)):
    try:
        receipt = request.app.state.checkout.process(form)
    except InvalidCheckout as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PaymentError as e:
        raise HTTPException(status_code=402, detail=e.message)
    except RecordingError:
        raise HTTPException(status_code=500, detail="An internal error occurred")
    return render(request, "receipt.html", {"receipt": receipt})


@router.post("/api/payment-intent")
def create_payment_intent(request: Request, payload: PaymentIntentRequest):
    card = request.app.state.card
    try:
        intent = card.charge(payload.currency, payload.amount)
    except PaymentError as e:
        return {"ok": False, "message": e.message}
    return {"ok": True, "id": intent.id, "client_secret": intent.client_secret}
