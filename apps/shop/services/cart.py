import logging

from django.db import transaction
from django.db.models import Prefetch

from ..exceptions import Conflict, NotFound
from ..models import Cart, CartItem, Product

logger = logging.getLogger(__name__)


def _with_items():
    return Cart.objects.prefetch_related(
        Prefetch("items", queryset=CartItem.objects.select_related("product"))
    )


def _locked_cart(user) -> Cart:
    # Serializes concurrent mutations of the same user's cart
    Cart.objects.get_or_create(user=user)
    return Cart.objects.select_for_update().get(user=user)


def get_or_create_cart(*, user) -> Cart:
    cart, created = Cart.objects.get_or_create(user=user)
    if created:
        logger.info(f"cart created for user {user.pk}")
    return _with_items().get(pk=cart.pk)


@transaction.atomic
def add_item(*, user, product_id: int, quantity: int) -> Cart:
    if quantity < 1:
        raise Conflict("Quantity must be at least 1")

    cart = _locked_cart(user)
    try:
        product = Product.objects.get(pk=product_id)
    except Product.DoesNotExist:
        raise NotFound("Product not found")

    if product.stock < quantity:
        raise Conflict(f"Only {product.stock} items available in stock")

    item = cart.items.filter(product=product).first()
    if item is not None:
        new_quantity = item.quantity + quantity
        if product.stock < new_quantity:
            raise Conflict(f"Only {product.stock} items available in stock")
        item.quantity = new_quantity
        item.save(update_fields=["quantity", "updated_at"])
    else:
        CartItem.objects.create(cart=cart, product=product, quantity=quantity, price=product.price)

    cart.save(update_fields=["updated_at"])
    logger.info(f"product {product_id} x{quantity} added to cart for user {user.pk}")
    return _with_items().get(pk=cart.pk)


@transaction.atomic
def update_item(*, user, cart_item_id: int, quantity: int) -> Cart:
    if quantity < 1:
        raise Conflict("Quantity must be at least 1")

    cart = Cart.objects.select_for_update().filter(user=user).first()
    if cart is None:
        raise NotFound("Cart not found")

    item = cart.items.select_related("product").filter(pk=cart_item_id).first()
    if item is None:
        raise NotFound("Cart item not found")

    if item.product.stock < quantity:
        raise Conflict(f"Only {item.product.stock} items available in stock")

    item.quantity = quantity
    item.save(update_fields=["quantity", "updated_at"])
    cart.save(update_fields=["updated_at"])
    logger.info(f"cart item {cart_item_id} set to {quantity} for user {user.pk}")
    return _with_items().get(pk=cart.pk)


@transaction.atomic
def remove_item(*, user, cart_item_id: int) -> bool:
    cart = Cart.objects.select_for_update().filter(user=user).first()
    if cart is None:
        return False

    deleted, _ = cart.items.filter(pk=cart_item_id).delete()
    if not deleted:
        return False

    cart.save(update_fields=["updated_at"])
    logger.info(f"cart item {cart_item_id} removed for user {user.pk}")
    return True


@transaction.atomic
def clear(*, user) -> bool:
    cart = Cart.objects.select_for_update().filter(user=user).first()
    if cart is None:
        return False

    cart.items.all().delete()
    cart.save(update_fields=["updated_at"])
    logger.info(f"cart cleared for user {user.pk}")
    return True
