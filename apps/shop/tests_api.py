import pytest

from .models import CartItem, Order
from .services import payments

pytestmark = pytest.mark.django_db


@pytest.fixture
def stub_gateway(monkeypatch, gateway):
    monkeypatch.setattr(payments, "get_gateway", lambda: gateway)
    return gateway


def test_cart_requires_authentication(api):
    assert api.get("/api/cart").status_code == 401


def test_cart_round_trip(user_api, make_product):
    p = make_product(name="Lamp", price="15.50", stock=3, image_url="/lamp.png")

    res = user_api.post("/api/cart/items", {"product_id": p.pk, "quantity": 2}, format="json")
    assert res.status_code == 200
    body = res.json()
    assert body["total_amount"] == "31.00"
    (item,) = body["items"]
    assert (item["product_name"], item["quantity"], item["subtotal"], item["stock"]) == ("Lamp", 2, "31.00", 3)

    res = user_api.post("/api/cart/items", {"product_id": p.pk, "quantity": 2}, format="json")
    assert res.status_code == 400
    assert res.json() == {"message": "Only 3 items available in stock"}

    res = user_api.put(f"/api/cart/items/{item['id']}", {"quantity": 1}, format="json")
    assert res.json()["items"][0]["quantity"] == 1

    assert user_api.delete(f"/api/cart/items/{item['id']}").status_code == 204
    assert user_api.delete(f"/api/cart/items/{item['id']}").status_code == 404
    assert user_api.delete("/api/cart").status_code == 204


def test_add_to_cart_validation(user_api, make_product):
    p = make_product()
    assert user_api.post("/api/cart/items", {"product_id": p.pk, "quantity": 0}, format="json").status_code == 400
    assert user_api.post("/api/cart/items", {"product_id": 999, "quantity": 1}, format="json").status_code == 404


def test_place_order_and_read_it_back(user_api, user, make_product, fill_cart):
    p = make_product(name="Chair", price="10.00", stock=5)
    fill_cart(user, (p, 2))

    res = user_api.post("/api/orders", {"shipping_address": "1 Main St"}, format="json")

    assert res.status_code == 201
    order = res.json()
    assert res["Location"] == f"/api/orders/{order['id']}"
    assert order["total_amount"] == "20.00"
    assert order["status"] == "Pending"
    assert order["payment_status"] == "Pending"
    assert order["payment_intent_id"] is None
    assert order["items"][0]["product_name"] == "Chair"

    assert user_api.get(f"/api/orders/{order['id']}").json()["order_number"] == order["order_number"]
    assert [o["id"] for o in user_api.get("/api/orders").json()] == [order["id"]]


def test_place_order_with_empty_cart(user_api):
    res = user_api.post("/api/orders", {"shipping_address": "addr"}, format="json")
    assert res.status_code == 400
    assert res.json() == {"message": "Cart is empty"}


def test_place_order_requires_address(user_api):
    assert user_api.post("/api/orders", {"shipping_address": " "}, format="json").status_code == 400


def test_idempotency_key_replays_first_response(user_api, user, make_product, fill_cart):
    fill_cart(user, (make_product(stock=5), 1))
    headers = {"HTTP_IDEMPOTENCY_KEY": "checkout-1"}

    first = user_api.post("/api/orders", {"shipping_address": "addr"}, format="json", **headers)
    second = user_api.post("/api/orders", {"shipping_address": "addr"}, format="json", **headers)

    assert first.status_code == second.status_code == 201
    assert first.json() == second.json()
    assert Order.objects.count() == 1

    conflicting = user_api.post("/api/orders", {"shipping_address": "elsewhere"}, format="json", **headers)
    assert conflicting.status_code == 400


def test_other_users_order_is_not_found(user_api, other_user, make_product, fill_cart):
    from .services import orders

    fill_cart(other_user, (make_product(), 1))
    order = orders.create_order_from_cart(user=other_user, shipping_address="addr")

    assert user_api.get(f"/api/orders/{order.pk}").status_code == 404


def test_admin_only_endpoints(user_api, admin_api, user, make_product, fill_cart):
    fill_cart(user, (make_product(), 1))
    order_id = user_api.post("/api/orders", {"shipping_address": "addr"}, format="json").json()["id"]

    assert user_api.get("/api/orders/admin/all").status_code == 403
    assert user_api.put(f"/api/orders/{order_id}/status", {"status": "Shipped"}, format="json").status_code == 403
    assert user_api.get("/api/admin/analytics").status_code == 403

    assert len(admin_api.get("/api/orders/admin/all").json()) == 1
    res = admin_api.put(f"/api/orders/{order_id}/status", {"status": "Shipped"}, format="json")
    assert res.json()["status"] == "Shipped"
    assert admin_api.put(f"/api/orders/{order_id}/status", {"status": "Lost"}, format="json").status_code == 400
    assert admin_api.put("/api/orders/999/status", {"status": "Shipped"}, format="json").status_code == 404

    stats = admin_api.get("/api/admin/analytics").json()
    assert stats["total_orders"] == 1
    assert stats["orders_by_status"] == {"Shipped": 1}
    assert stats["total_revenue"] == "0.00"


def test_catalog_endpoints(api, admin_api, user_api, category):
    payload = {"name": "Kettle", "price": "25.00", "stock": 4, "category_id": category.pk}
    assert user_api.post("/api/products", payload, format="json").status_code == 403

    res = admin_api.post("/api/products", payload, format="json")
    assert res.status_code == 201
    product_id = res.json()["id"]
    assert res.json()["category_name"] == "Electronics"

    assert api.get("/api/products", {"search": "kett"}).json()[0]["id"] == product_id
    assert api.get("/api/products", {"categoryId": category.pk + 1}).json() == []
    assert len(api.get("/api/products", {"categoryId": ""}).json()) == 1
    res = api.get("/api/products", {"categoryId": "abc"})
    assert res.status_code == 400
    assert "categoryId" in res.json()
    assert api.get(f"/api/products/{product_id}").json()["stock"] == 4
    assert api.get("/api/products/999").status_code == 404

    bad = dict(payload, price="0.00")
    assert admin_api.put(f"/api/products/{product_id}", bad, format="json").status_code == 400

    assert admin_api.delete(f"/api/products/{product_id}").status_code == 204
    assert admin_api.delete(f"/api/products/{product_id}").status_code == 404

    assert admin_api.post("/api/categories", {"name": "electronics"}, format="json").status_code == 400
    res = admin_api.post("/api/categories", {"name": "Garden"}, format="json")
    assert res.status_code == 201
    assert {c["name"] for c in api.get("/api/categories").json()} == {"Electronics", "Garden"}


def test_create_intent_endpoint(user_api, user, make_product, fill_cart, stub_gateway):
    fill_cart(user, (make_product(price="9.99", stock=2), 1))
    order_id = user_api.post("/api/orders", {"shipping_address": "addr"}, format="json").json()["id"]

    res = user_api.post("/api/payment/create-intent", {"order_id": order_id}, format="json")

    assert res.status_code == 200
    assert res.json() == {
        "client_secret": "pi_test_1_secret_abc",
        "payment_intent_id": "pi_test_1",
        "amount": "9.99",
    }

    stub_gateway.error = "boom"
    res = user_api.post("/api/payment/create-intent", {"order_id": order_id}, format="json")
    assert res.status_code == 400
    assert res.json() == {"message": "Payment processing error: boom"}


def test_webhook_endpoint(api, user_api, user, make_product, fill_cart, stub_gateway, event_payload):
    fill_cart(user, (make_product(stock=2), 1))
    order_id = user_api.post("/api/orders", {"shipping_address": "addr"}, format="json").json()["id"]
    user_api.post("/api/payment/create-intent", {"order_id": order_id}, format="json")
    body = event_payload("payment_intent.succeeded", "pi_test_1")

    res = api.post("/api/payment/webhook", body, content_type="application/json")
    assert res.status_code == 400
    assert res.json() == {"message": "Missing Stripe signature"}

    res = api.post("/api/payment/webhook", body, content_type="application/json", HTTP_STRIPE_SIGNATURE="forged")
    assert res.status_code == 400
    assert res.json() == {"message": "Webhook processing failed"}

    res = api.post("/api/payment/webhook", body, content_type="application/json", HTTP_STRIPE_SIGNATURE="valid")
    assert res.status_code == 200
    assert res.json() == {"received": True}

    order = Order.objects.get(pk=order_id)
    assert (order.payment_status, order.status) == ("Paid", "Processing")

    res = user_api.post("/api/payment/create-intent", {"order_id": order_id}, format="json")
    assert res.status_code == 400
    assert res.json() == {"message": "Order has already been paid"}
    assert CartItem.objects.count() == 0
