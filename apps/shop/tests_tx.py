import logging

import pytest
from django.db import transaction

from .exceptions import Conflict
from .models import CartItem, Order, Product
from .services import orders

pytestmark = pytest.mark.django_db(transaction=True)


def test_create_order_rolls_back_on_stock_failure(user, make_product, fill_cart):
    make_product(name="A", stock=5)
    scarce = make_product(name="B", stock=1)
    fill_cart(user, (Product.objects.get(name="A"), 1), (scarce, 2))

    with pytest.raises(Conflict):
        orders.create_order_from_cart(user=user, shipping_address="addr")

    assert Order.objects.count() == 0
    assert CartItem.objects.count() == 2
    assert list(Product.objects.order_by("name").values_list("stock", flat=True)) == [5, 1]


def test_created_log_is_emitted_after_commit_only(user, make_product, fill_cart, caplog):
    fill_cart(user, (make_product(stock=3), 1))
    caplog.set_level(logging.INFO, logger="apps.shop.services.orders")

    with pytest.raises(RuntimeError):
        with transaction.atomic():
            orders.create_order_from_cart(user=user, shipping_address="addr")
            raise RuntimeError("outer failure")

    assert not any("created for user" in r.getMessage() for r in caplog.records)
    assert Order.objects.count() == 0
    assert CartItem.objects.count() == 1

    order = orders.create_order_from_cart(user=user, shipping_address="addr")
    assert any(f"order {order.order_number} created" in r.getMessage() for r in caplog.records)
