from django.db.models import F
from django.utils import timezone

from .models import Product


def lock_products(product_ids) -> dict:
    """Row-lock the given products inside the caller's transaction.

    Locks are taken in ascending id order so two orders touching the same
    products cannot deadlock each other.
    """
    ids = sorted(set(product_ids))
    return {p.pk: p for p in Product.objects.select_for_update().filter(pk__in=ids).order_by("pk")}


def reserve_stock(*, product_id: int, quantity: int) -> bool:
    """Atomically take `quantity` units off a product's stock.

    Returns False, leaving the row untouched, if fewer units are available.
    """
    if quantity <= 0:
        raise ValueError("quantity must be positive")
    updated = (
        Product.objects
        .filter(pk=product_id, stock__gte=quantity)
        .update(stock=F("stock") - quantity, updated_at=timezone.now())
    )
    return updated == 1
