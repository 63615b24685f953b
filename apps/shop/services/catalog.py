import logging

from django.db.models import Count, ProtectedError, Q

from ..exceptions import Conflict, NotFound
from ..models import Category, Product

logger = logging.getLogger(__name__)


def list_categories():
    return list(Category.objects.annotate(product_count=Count("products")).order_by("name"))


def get_category(*, category_id: int) -> Category:
    category = Category.objects.annotate(product_count=Count("products")).filter(pk=category_id).first()
    if category is None:
        raise NotFound("Category not found")
    return category


def create_category(*, name: str, description: str = None) -> Category:
    if Category.objects.filter(name__iexact=name).exists():
        raise Conflict("A category with this name already exists")

    category = Category.objects.create(name=name, description=description)
    category.product_count = 0
    logger.info(f"category created: {category.pk} - {category.name}")
    return category


def delete_category(*, category_id: int) -> None:
    category = Category.objects.filter(pk=category_id).first()
    if category is None:
        raise NotFound("Category not found")
    try:
        category.delete()
    except ProtectedError:
        raise Conflict("Category still has products")
    logger.info(f"category deleted: {category_id}")


def list_products(*, category_id: int = None, search: str = None):
    qs = Product.objects.select_related("category")
    if category_id is not None:
        qs = qs.filter(category_id=category_id)
    if search and search.strip():
        term = search.strip()
        qs = qs.filter(Q(name__icontains=term) | Q(description__icontains=term))
    return list(qs.order_by("-created_at", "-id"))


def get_product(*, product_id: int) -> Product:
    product = Product.objects.select_related("category").filter(pk=product_id).first()
    if product is None:
        raise NotFound("Product not found")
    return product


def _require_category(category_id):
    if not Category.objects.filter(pk=category_id).exists():
        raise NotFound("Category not found")


def create_product(*, name, price, stock, category_id, description=None, image_url=None) -> Product:
    _require_category(category_id)
    product = Product.objects.create(
        name=name,
        description=description,
        price=price,
        stock=stock,
        image_url=image_url,
        category_id=category_id,
    )
    logger.info(f"product created: {product.pk} - {product.name}")
    return get_product(product_id=product.pk)


def update_product(*, product_id, name, price, stock, category_id, description=None, image_url=None) -> Product:
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise NotFound("Product not found")
    if product.category_id != category_id:
        _require_category(category_id)

    product.name = name
    product.description = description
    product.price = price
    product.stock = stock
    product.image_url = image_url
    product.category_id = category_id
    product.save()
    logger.info(f"product updated: {product.pk} - {product.name}")
    return get_product(product_id=product.pk)


def delete_product(*, product_id: int) -> bool:
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        return False
    try:
        product.delete()
    except ProtectedError:
        raise Conflict("Product is referenced by existing orders")
    logger.info(f"product deleted: {product_id} - {product.name}")
    return True
