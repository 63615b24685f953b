import re
from datetime import datetime
from datetime import timezone as dt_timezone
from decimal import Decimal

import pytest
from django.test import override_settings

from . import stock
from .exceptions import Conflict, NotFound
from .models import Cart, CartItem, Order, OrderItem, Product
from .services import orders

pytestmark = pytest.mark.django_db


def snapshot():
    return {
        model.__name__: list(model.objects.order_by("pk").values())
        for model in (Product, Cart, CartItem, Order, OrderItem)
    }


def test_create_order_from_cart(user, make_product, fill_cart):
    p1 = make_product(name="Keyboard", price="10.00", stock=5)
    p2 = make_product(name="Mouse", price="5.00", stock=3)
    fill_cart(user, (p1, 2), (p2, 1))

    order = orders.create_order_from_cart(user=user, shipping_address="1 Main St")

    assert order.total_amount == Decimal("25.00")
    assert order.status == Order.Status.PENDING
    assert order.payment_status == Order.PaymentStatus.PENDING
    assert order.shipping_address == "1 Main St"
    assert re.fullmatch(r"ORD-\d{14}-\d{4}", order.order_number)
    assert [(i.product.name, i.quantity, i.subtotal) for i in order.items.all()] == [
        ("Keyboard", 2, Decimal("20.00")),
        ("Mouse", 1, Decimal("5.00")),
    ]

    p1.refresh_from_db()
    p2.refresh_from_db()
    assert (p1.stock, p2.stock) == (3, 2)
    assert Cart.objects.filter(user=user).exists()
    assert not CartItem.objects.exists()


def test_order_uses_cart_price_snapshot(user, make_product, fill_cart):
    p = make_product(price="12.00", stock=5)
    fill_cart(user, (p, 2, "9.50"))

    order = orders.create_order_from_cart(user=user, shipping_address="addr")

    assert order.total_amount == Decimal("19.00")
    item = order.items.get()
    assert (item.price, item.subtotal) == (Decimal("9.50"), Decimal("19.00"))

    # later catalog changes do not rewrite history
    Product.objects.filter(pk=p.pk).update(price=Decimal("99.00"))
    item.refresh_from_db()
    assert item.price == Decimal("9.50")


@pytest.mark.parametrize("with_cart", [True, False])
def test_empty_or_missing_cart_is_rejected(user, make_product, with_cart):
    make_product()
    if with_cart:
        Cart.objects.create(user=user)
    before = snapshot()

    with pytest.raises(Conflict, match="Cart is empty"):
        orders.create_order_from_cart(user=user, shipping_address="addr")

    assert snapshot() == before


def test_insufficient_stock_changes_nothing(user, make_product, fill_cart):
    ok = make_product(name="Plenty", stock=10)
    short = make_product(name="Scarce", stock=1)
    fill_cart(user, (ok, 2), (short, 2))
    before = snapshot()

    with pytest.raises(Conflict) as exc:
        orders.create_order_from_cart(user=user, shipping_address="addr")

    assert exc.value.message == "Insufficient stock for product 'Scarce'. Available: 1, Requested: 2"
    assert snapshot() == before


def test_stock_guard_rolls_back_whole_order(user, make_product, fill_cart, monkeypatch):
    first = make_product(name="First", stock=5)
    second = make_product(name="Second", stock=5)
    fill_cart(user, (first, 1), (second, 3))

    # another checkout drains "Second" between the check and the decrement
    real_lock = stock.lock_products

    def lock_then_drain(ids):
        locked = real_lock(ids)
        Product.objects.filter(pk=second.pk).update(stock=1)
        return locked

    monkeypatch.setattr(orders, "lock_products", lock_then_drain)

    with pytest.raises(Conflict, match="Available: 1, Requested: 3"):
        orders.create_order_from_cart(user=user, shipping_address="addr")

    first.refresh_from_db()
    assert first.stock == 5
    assert not Order.objects.exists()
    assert CartItem.objects.count() == 2


def test_product_deleted_before_locking_drops_its_line(user, make_product, fill_cart, monkeypatch):
    kept = make_product(name="Kept", price="4.00", stock=5)
    gone = make_product(name="Gone", price="9.00", stock=5)
    fill_cart(user, (kept, 2), (gone, 1))

    # an admin deletes "Gone" after the cart was read but before the rows are locked
    real_lock = stock.lock_products

    def delete_then_lock(ids):
        ids = list(ids)
        Product.objects.filter(pk=gone.pk).delete()
        return real_lock(ids)

    monkeypatch.setattr(orders, "lock_products", delete_then_lock)

    order = orders.create_order_from_cart(user=user, shipping_address="addr")

    assert [(i.product_id, i.quantity) for i in order.items.all()] == [(kept.pk, 2)]
    assert order.total_amount == Decimal("8.00")
    assert CartItem.objects.count() == 0


def test_order_number_suffix_is_rerolled_on_collision(user, make_product, fill_cart, monkeypatch):
    p = make_product(stock=10)
    fill_cart(user, (p, 1))
    first = orders.create_order_from_cart(user=user, shipping_address="addr")
    taken = int(first.order_number.rsplit("-", 1)[1])
    stamp = first.order_number.split("-")[1]

    fresh = 4242 if taken != 4242 else 4243
    rolls = iter([taken, taken, fresh])
    frozen = datetime.strptime(stamp, "%Y%m%d%H%M%S").replace(tzinfo=dt_timezone.utc)
    monkeypatch.setattr(orders.random, "randint", lambda a, b: next(rolls))
    monkeypatch.setattr(orders.timezone, "now", lambda: frozen)

    assert orders.generate_order_number() == f"ORD-{stamp}-{fresh}"


def test_get_order_is_owner_scoped(user, other_user, make_product, fill_cart):
    fill_cart(user, (make_product(), 1))
    order = orders.create_order_from_cart(user=user, shipping_address="addr")

    assert orders.get_order(user=user, order_id=order.pk).pk == order.pk
    with pytest.raises(NotFound):
        orders.get_order(user=other_user, order_id=order.pk)


def test_list_orders(user, other_user, make_product, fill_cart):
    p = make_product(stock=10)
    fill_cart(user, (p, 1))
    mine = orders.create_order_from_cart(user=user, shipping_address="a")
    fill_cart(other_user, (p, 1))
    theirs = orders.create_order_from_cart(user=other_user, shipping_address="b")

    assert [o.pk for o in orders.list_user_orders(user=user)] == [mine.pk]
    assert {o.pk for o in orders.list_all_orders()} == {mine.pk, theirs.pk}


def test_update_status_is_unconstrained_by_default(user, make_product, fill_cart):
    fill_cart(user, (make_product(), 1))
    order = orders.create_order_from_cart(user=user, shipping_address="addr")

    updated = orders.update_status(order_id=order.pk, status="Cancelled")
    assert updated.status == "Cancelled"
    updated = orders.update_status(order_id=order.pk, status="Shipped")
    assert updated.status == "Shipped"


@override_settings(SHOP_ENFORCE_STATUS_TRANSITIONS=True)
def test_update_status_with_transition_table(user, make_product, fill_cart):
    fill_cart(user, (make_product(), 1))
    order = orders.create_order_from_cart(user=user, shipping_address="addr")

    orders.update_status(order_id=order.pk, status="Cancelled")
    with pytest.raises(Conflict, match="from Cancelled to Shipped"):
        orders.update_status(order_id=order.pk, status="Shipped")


def test_update_status_unknown_order():
    with pytest.raises(NotFound):
        orders.update_status(order_id=12345, status="Shipped")


def test_update_status_rejects_unknown_value(user, make_product, fill_cart):
    fill_cart(user, (make_product(), 1))
    order = orders.create_order_from_cart(user=user, shipping_address="addr")

    with pytest.raises(Conflict):
        orders.update_status(order_id=order.pk, status="Lost")


def test_reserve_stock_is_conditional(make_product):
    p = make_product(stock=2)

    assert stock.reserve_stock(product_id=p.pk, quantity=2) is True
    assert stock.reserve_stock(product_id=p.pk, quantity=1) is False

    p.refresh_from_db()
    assert p.stock == 0
