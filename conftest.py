import json
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from apps.shop.gateways import GatewayError, IntentHandle, PaymentEvent, SignatureError
from apps.shop.models import Cart, CartItem, Category, Product


class FakeGateway:
    """In-memory processor: accepts signature "valid", everything else is forged."""

    def __init__(self):
        self.intents = []
        self.error = None

    def create_intent(self, amount_minor, currency, metadata):
        if self.error:
            raise GatewayError(self.error)
        n = len(self.intents) + 1
        self.intents.append({"amount": amount_minor, "currency": currency, "metadata": metadata})
        return IntentHandle(intent_id=f"pi_test_{n}", client_secret=f"pi_test_{n}_secret_abc")

    def construct_event(self, payload, signature):
        if signature != "valid":
            raise SignatureError("No signatures found matching the expected signature for payload")
        data = json.loads(payload)
        obj = data["data"]["object"]
        return PaymentEvent(type=data["type"], intent_id=obj.get("id"), intent_status=obj.get("status"))


def _event_payload(event_type, intent_id, status="succeeded"):
    return json.dumps({
        "id": "evt_test",
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": intent_id, "object": "payment_intent", "status": status}},
    }).encode()


@pytest.fixture
def event_payload():
    return _event_payload


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user(
        "john@example.com", "pw-123456", first_name="John", last_name="Doe"
    )


@pytest.fixture
def other_user(db):
    return get_user_model().objects.create_user("jane@example.com", "pw-123456", first_name="Jane")


@pytest.fixture
def admin(db):
    return get_user_model().objects.create_superuser("admin@example.com", "pw-123456", first_name="Ada")


@pytest.fixture
def category(db):
    return Category.objects.create(name="Electronics", description="Electronic devices")


@pytest.fixture
def make_product(category):
    def make(name="Laptop", price="10.00", stock=10, **extra):
        return Product.objects.create(name=name, price=Decimal(price), stock=stock, category=category, **extra)
    return make


@pytest.fixture
def fill_cart():
    def fill(user, *lines):
        """lines: (product, quantity[, price]) with price defaulting to the product's."""
        cart, _ = Cart.objects.get_or_create(user=user)
        for line in lines:
            product, quantity = line[0], line[1]
            price = Decimal(line[2]) if len(line) > 2 else product.price
            CartItem.objects.create(cart=cart, product=product, quantity=quantity, price=price)
        return cart
    return fill


@pytest.fixture
def api():
    return APIClient()


@pytest.fixture
def user_api(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def admin_api(admin):
    client = APIClient()
    client.force_authenticate(user=admin)
    return client
