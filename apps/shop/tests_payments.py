import hashlib
import hmac
import json
import time
from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from .exceptions import Conflict, NotFound, PaymentError
from .gateways import GatewayError, SignatureError, StripeGateway
from .models import Order
from .services import orders, payments

pytestmark = pytest.mark.django_db


@pytest.fixture
def order(user, make_product, fill_cart):
    fill_cart(user, (make_product(price="12.34", stock=5), 2))
    return orders.create_order_from_cart(user=user, shipping_address="addr")


def test_create_payment_intent(user, order, gateway):
    result = payments.create_payment_intent(user=user, order_id=order.pk, gateway=gateway)

    assert result.payment_intent_id == "pi_test_1"
    assert result.client_secret.startswith("pi_test_1_secret")
    assert result.amount == Decimal("24.68")
    assert gateway.intents == [{
        "amount": 2468,
        "currency": "usd",
        "metadata": {"orderId": str(order.pk), "orderNumber": order.order_number},
    }]
    order.refresh_from_db()
    assert order.payment_intent_id == "pi_test_1"


def test_create_payment_intent_for_someone_elses_order(other_user, order, gateway):
    with pytest.raises(NotFound):
        payments.create_payment_intent(user=other_user, order_id=order.pk, gateway=gateway)
    assert gateway.intents == []


def test_paid_order_cannot_be_paid_again(user, order, gateway):
    Order.objects.filter(pk=order.pk).update(payment_status=Order.PaymentStatus.PAID)

    with pytest.raises(Conflict, match="already been paid"):
        payments.create_payment_intent(user=user, order_id=order.pk, gateway=gateway)
    assert gateway.intents == []


def test_processor_failure_surfaces_as_conflict(user, order, gateway):
    gateway.error = "Your card was declined."

    with pytest.raises(PaymentError) as exc:
        payments.create_payment_intent(user=user, order_id=order.pk, gateway=gateway)

    assert isinstance(exc.value, Conflict)
    assert exc.value.message == "Payment processing error: Your card was declined."
    assert isinstance(exc.value.__cause__, GatewayError)
    order.refresh_from_db()
    assert order.payment_intent_id is None


def test_succeeded_callback_marks_order_paid_and_is_idempotent(user, order, gateway, event_payload):
    payments.create_payment_intent(user=user, order_id=order.pk, gateway=gateway)
    payload = event_payload("payment_intent.succeeded", "pi_test_1")

    for _ in range(2):
        assert payments.handle_callback(payload=payload, signature="valid", gateway=gateway) is True
        order.refresh_from_db()
        assert order.payment_status == Order.PaymentStatus.PAID
        assert order.status == Order.Status.PROCESSING


def test_failed_callback_keeps_status(user, order, gateway, event_payload):
    payments.create_payment_intent(user=user, order_id=order.pk, gateway=gateway)
    payload = event_payload("payment_intent.payment_failed", "pi_test_1", status="requires_payment_method")

    assert payments.handle_callback(payload=payload, signature="valid", gateway=gateway) is True

    order.refresh_from_db()
    assert order.payment_status == Order.PaymentStatus.FAILED
    assert order.status == Order.Status.PENDING


def test_callback_without_matching_order_is_handled_and_touches_nothing(order, gateway, event_payload):
    before = list(Order.objects.values())
    payload = event_payload("payment_intent.succeeded", "pi_unknown")

    assert payments.handle_callback(payload=payload, signature="valid", gateway=gateway) is True
    assert list(Order.objects.values()) == before


def test_other_event_types_are_acknowledged(order, gateway):
    payload = json.dumps({"type": "charge.refunded", "data": {"object": {"id": "ch_1"}}}).encode()
    assert payments.handle_callback(payload=payload, signature="valid", gateway=gateway) is True


def test_forged_callback_is_rejected(user, order, gateway, event_payload):
    payments.create_payment_intent(user=user, order_id=order.pk, gateway=gateway)
    payload = event_payload("payment_intent.succeeded", "pi_test_1")

    assert payments.handle_callback(payload=payload, signature="forged", gateway=gateway) is False
    order.refresh_from_db()
    assert order.payment_status == Order.PaymentStatus.PENDING


def test_to_minor_units():
    assert payments.to_minor_units(Decimal("25.00")) == 2500
    assert payments.to_minor_units(Decimal("0.01")) == 1
    assert payments.to_minor_units(Decimal("1234.56")) == 123456


# ---- StripeGateway against Stripe's own signing scheme ----

SECRET = "whsec_test_secret"


def sign(payload: bytes, secret=SECRET, timestamp=None):
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def test_stripe_gateway_decodes_signed_event(event_payload):
    payload = event_payload("payment_intent.succeeded", "pi_123")
    gw = StripeGateway("sk_test_dummy", SECRET)

    event = gw.construct_event(payload, sign(payload))

    assert event.type == "payment_intent.succeeded"
    assert event.intent_id == "pi_123"
    assert event.intent_status == "succeeded"


def test_stripe_gateway_rejects_bad_signature(event_payload):
    payload = event_payload("payment_intent.succeeded", "pi_123")
    gw = StripeGateway("sk_test_dummy", SECRET)

    with pytest.raises(SignatureError):
        gw.construct_event(payload, sign(payload, secret="whsec_other"))


def test_stripe_gateway_create_intent(monkeypatch):
    calls = []

    def fake_create(**params):
        calls.append(params)
        return SimpleNamespace(id="pi_abc", client_secret="pi_abc_secret_x")

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
    handle = StripeGateway("sk_test_dummy", SECRET).create_intent(1500, "usd", {"orderId": "1"})

    assert (handle.intent_id, handle.client_secret) == ("pi_abc", "pi_abc_secret_x")
    assert calls[0]["amount"] == 1500
    assert calls[0]["automatic_payment_methods"] == {"enabled": True}


def test_stripe_gateway_wraps_processor_errors(monkeypatch):
    def fake_create(**params):
        raise stripe.StripeError("card declined")

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)

    with pytest.raises(GatewayError, match="card declined"):
        StripeGateway("sk_test_dummy", SECRET).create_intent(1500, "usd", {})
