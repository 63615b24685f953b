from decimal import Decimal

import pytest

from .exceptions import Conflict, NotFound
from .models import Cart, CartItem
from .services import cart as cart_service

pytestmark = pytest.mark.django_db


def test_get_or_create_cart_creates_empty_cart_once(user):
    first = cart_service.get_or_create_cart(user=user)
    second = cart_service.get_or_create_cart(user=user)

    assert first.pk == second.pk
    assert list(first.items.all()) == []
    assert first.total_amount() == Decimal("0.00")
    assert Cart.objects.filter(user=user).count() == 1


def test_add_item_snapshots_current_price(user, make_product):
    p = make_product(price="999.99", stock=10)

    cart = cart_service.add_item(user=user, product_id=p.pk, quantity=2)

    (item,) = cart.items.all()
    assert item.product_id == p.pk
    assert item.quantity == 2
    assert item.price == Decimal("999.99")

    p.price = Decimal("1.00")
    p.save()
    item.refresh_from_db()
    assert item.price == Decimal("999.99")


def test_repeated_adds_merge_into_one_line(user, make_product):
    p = make_product(stock=10)

    for qty in (1, 2, 3):
        cart = cart_service.add_item(user=user, product_id=p.pk, quantity=qty)

    assert CartItem.objects.filter(cart=cart).count() == 1
    assert cart.items.get().quantity == 6


def test_add_item_rejects_more_than_stock(user, make_product):
    p = make_product(stock=3)

    with pytest.raises(Conflict) as exc:
        cart_service.add_item(user=user, product_id=p.pk, quantity=4)

    assert "Only 3 items available" in exc.value.message
    assert not CartItem.objects.exists()


def test_merge_is_checked_against_stock(user, make_product):
    p = make_product(stock=5)
    cart_service.add_item(user=user, product_id=p.pk, quantity=3)

    with pytest.raises(Conflict, match="Only 5 items available"):
        cart_service.add_item(user=user, product_id=p.pk, quantity=3)

    assert CartItem.objects.get().quantity == 3


def test_add_unknown_product(user):
    with pytest.raises(NotFound):
        cart_service.add_item(user=user, product_id=999, quantity=1)


def test_add_non_positive_quantity(user, make_product):
    p = make_product()
    with pytest.raises(Conflict):
        cart_service.add_item(user=user, product_id=p.pk, quantity=0)


def test_update_item_overwrites_quantity(user, make_product, fill_cart):
    p = make_product(stock=10)
    fill_cart(user, (p, 2))
    item = CartItem.objects.get()

    cart = cart_service.update_item(user=user, cart_item_id=item.pk, quantity=7)

    assert cart.items.get().quantity == 7


def test_update_item_checks_stock(user, make_product, fill_cart):
    p = make_product(stock=4)
    fill_cart(user, (p, 2))
    item = CartItem.objects.get()

    with pytest.raises(Conflict, match="Only 4 items available"):
        cart_service.update_item(user=user, cart_item_id=item.pk, quantity=5)

    item.refresh_from_db()
    assert item.quantity == 2


def test_update_item_of_another_users_cart(user, other_user, make_product, fill_cart):
    p = make_product()
    fill_cart(other_user, (p, 1))
    cart_service.get_or_create_cart(user=user)
    foreign = CartItem.objects.get()

    with pytest.raises(NotFound):
        cart_service.update_item(user=user, cart_item_id=foreign.pk, quantity=1)


def test_remove_item(user, make_product, fill_cart):
    p = make_product()
    fill_cart(user, (p, 1))
    item = CartItem.objects.get()

    assert cart_service.remove_item(user=user, cart_item_id=item.pk) is True
    assert cart_service.remove_item(user=user, cart_item_id=item.pk) is False
    assert not CartItem.objects.exists()


def test_remove_item_without_cart(user):
    assert cart_service.remove_item(user=user, cart_item_id=1) is False


def test_clear_keeps_empty_cart(user, make_product, fill_cart):
    fill_cart(user, (make_product(name="A"), 1), (make_product(name="B"), 2))

    assert cart_service.clear(user=user) is True
    assert cart_service.clear(user=user) is True

    assert Cart.objects.filter(user=user).exists()
    assert not CartItem.objects.exists()


def test_clear_without_cart(user):
    assert cart_service.clear(user=user) is False
