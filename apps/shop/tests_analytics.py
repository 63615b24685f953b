from decimal import Decimal

import pytest

from .models import Order, OrderItem
from .services.analytics import get_analytics

pytestmark = pytest.mark.django_db


def make_order(user, number, amount, payment_status="Pending", status="Pending"):
    return Order.objects.create(
        user=user,
        order_number=number,
        total_amount=Decimal(amount),
        status=status,
        payment_status=payment_status,
        shipping_address="addr",
    )


def test_empty_store():
    data = get_analytics()

    assert data == {
        "total_revenue": Decimal("0.00"),
        "total_orders": 0,
        "orders_by_status": {},
        "top_products": [],
        "total_customers": 0,
        "total_products": 0,
    }


def test_revenue_counts_paid_orders_only(user):
    make_order(user, "ORD-1", "100", payment_status="Pending")
    make_order(user, "ORD-2", "200", payment_status="Paid", status="Processing")
    make_order(user, "ORD-3", "150", payment_status="Paid", status="Processing")

    data = get_analytics()

    assert data["total_revenue"] == Decimal("350")
    assert data["total_orders"] == 3
    assert data["orders_by_status"] == {"Pending": 1, "Processing": 2}


def test_top_products_ordered_by_quantity(user, make_product):
    a = make_product(name="A", price="1.00")
    b = make_product(name="B", price="2.00")
    c = make_product(name="C", price="3.00")
    first = make_order(user, "ORD-1", "0")
    second = make_order(user, "ORD-2", "0")
    for order, product, qty in [(first, a, 2), (second, a, 3), (first, b, 10), (second, c, 3)]:
        OrderItem.objects.create(
            order=order, product=product, quantity=qty, price=product.price, subtotal=product.price * qty
        )

    top = get_analytics()["top_products"]

    assert [row["product_name"] for row in top] == ["B", "A", "C"]
    assert top[0] == {"product_id": b.pk, "product_name": "B", "total_sold": 10, "total_revenue": Decimal("20.00")}
    assert top[1]["total_sold"] == 5
    assert top[1]["total_revenue"] == Decimal("5.00")


def test_top_products_are_capped_at_ten(user, make_product):
    order = make_order(user, "ORD-1", "0")
    for n in range(12):
        p = make_product(name=f"P{n}", price="1.00")
        OrderItem.objects.create(order=order, product=p, quantity=n + 1, price=p.price, subtotal=p.price * (n + 1))

    top = get_analytics()["top_products"]

    assert len(top) == 10
    assert top[0]["product_name"] == "P11"


def test_counts_customers_and_products(user, other_user, admin, make_product):
    make_product(name="in stock", stock=4)
    make_product(name="sold out", stock=0)

    data = get_analytics()

    assert data["total_customers"] == 2
    assert data["total_products"] == 2
