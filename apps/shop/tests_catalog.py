from decimal import Decimal

import pytest

from .exceptions import Conflict, NotFound
from .models import Category, Product
from .services import catalog, orders

pytestmark = pytest.mark.django_db


def test_list_categories_with_product_counts(category, make_product):
    Category.objects.create(name="Books")
    make_product(name="Laptop")
    make_product(name="Phone")

    result = {c.name: c.product_count for c in catalog.list_categories()}

    assert result == {"Books": 0, "Electronics": 2}


def test_create_category_rejects_duplicate_name_case_insensitively(category):
    with pytest.raises(Conflict, match="already exists"):
        catalog.create_category(name="ELECTRONICS")

    created = catalog.create_category(name="Garden", description="Outdoor")
    assert (created.name, created.product_count) == ("Garden", 0)


def test_get_category_missing():
    with pytest.raises(NotFound):
        catalog.get_category(category_id=1)


def test_category_with_products_cannot_be_deleted(category, make_product):
    make_product()

    with pytest.raises(Conflict):
        catalog.delete_category(category_id=category.pk)
    assert Category.objects.filter(pk=category.pk).exists()

    empty = Category.objects.create(name="Empty")
    catalog.delete_category(category_id=empty.pk)
    assert not Category.objects.filter(pk=empty.pk).exists()


def test_list_products_filters(category, make_product):
    other = Category.objects.create(name="Books")
    make_product(name="Gaming Laptop", description="fast")
    make_product(name="Phone", description="has a great camera")
    Product.objects.create(name="Novel", price=Decimal("9.99"), stock=1, category=other)

    assert {p.name for p in catalog.list_products(category_id=other.pk)} == {"Novel"}
    assert {p.name for p in catalog.list_products(search="laptop")} == {"Gaming Laptop"}
    assert {p.name for p in catalog.list_products(search="CAMERA")} == {"Phone"}
    assert len(catalog.list_products()) == 3


def test_create_product_requires_category():
    with pytest.raises(NotFound, match="Category not found"):
        catalog.create_product(name="X", price=Decimal("1.00"), stock=1, category_id=999)


def test_create_and_update_product(category):
    product = catalog.create_product(name="Desk", price=Decimal("120.00"), stock=4, category_id=category.pk)
    assert product.category.name == "Electronics"

    books = Category.objects.create(name="Books")
    updated = catalog.update_product(
        product_id=product.pk, name="Desk XL", price=Decimal("150.00"), stock=2, category_id=books.pk,
    )

    assert (updated.name, updated.price, updated.stock, updated.category.name) == (
        "Desk XL", Decimal("150.00"), 2, "Books",
    )


def test_update_missing_product(category):
    with pytest.raises(NotFound):
        catalog.update_product(product_id=5, name="X", price=Decimal("1.00"), stock=1, category_id=category.pk)


def test_delete_product(make_product):
    p = make_product()
    assert catalog.delete_product(product_id=p.pk) is True
    assert catalog.delete_product(product_id=p.pk) is False


def test_product_in_past_orders_cannot_be_deleted(user, make_product, fill_cart):
    p = make_product()
    fill_cart(user, (p, 1))
    orders.create_order_from_cart(user=user, shipping_address="addr")

    with pytest.raises(Conflict):
        catalog.delete_product(product_id=p.pk)
    assert Product.objects.filter(pk=p.pk).exists()
