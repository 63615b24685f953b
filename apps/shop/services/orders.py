import logging
import random
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Prefetch
from django.utils import timezone

from ..exceptions import Conflict, NotFound
from ..models import Cart, Order, OrderItem
from ..stock import lock_products, reserve_stock

logger = logging.getLogger(__name__)

Status = Order.Status

# Only consulted when SHOP_ENFORCE_STATUS_TRANSITIONS is on
ALLOWED_TRANSITIONS = {
    Status.PENDING: {Status.PROCESSING, Status.CANCELLED},
    Status.PROCESSING: {Status.SHIPPED, Status.CANCELLED},
    Status.SHIPPED: {Status.DELIVERED},
    Status.DELIVERED: set(),
    Status.CANCELLED: set(),
}


def _with_items():
    return Order.objects.prefetch_related(
        Prefetch("items", queryset=OrderItem.objects.select_related("product"))
    )


def generate_order_number() -> str:
    """ORD-<UTC yyyyMMddHHmmss>-<4 digits>, re-rolling the suffix until unused."""
    stamp = timezone.now().strftime("%Y%m%d%H%M%S")
    while True:
        number = f"ORD-{stamp}-{random.randint(1000, 9999)}"
        if not Order.objects.filter(order_number=number).exists():
            return number


def create_order_from_cart(*, user, shipping_address: str) -> Order:
    logger.info(f"creating order for user {user.pk}")

    with transaction.atomic():
        cart = Cart.objects.select_for_update().filter(user=user).first()
        if cart is None or not cart.items.exists():
            raise Conflict("Cart is empty")

        # Stock may have moved since the lines were added
        products = lock_products(cart.items.values_list("product_id", flat=True))

        # Deleting a product cascades to its cart lines, so read them under the locks
        lines = list(cart.items.order_by("id"))
        if not lines:
            raise Conflict("Cart is empty")
        for line in lines:
            product = products.get(line.product_id)
            if product is None:
                raise Conflict("A product in the cart is no longer available")
            if product.stock < line.quantity:
                raise Conflict(
                    f"Insufficient stock for product '{product.name}'. "
                    f"Available: {product.stock}, Requested: {line.quantity}"
                )

        total = sum((line.price * line.quantity for line in lines), Decimal("0.00"))
        order = Order.objects.create(
            user=user,
            order_number=generate_order_number(),
            total_amount=total,
            status=Order.Status.PENDING,
            payment_status=Order.PaymentStatus.PENDING,
            shipping_address=shipping_address,
        )
        OrderItem.objects.bulk_create([
            OrderItem(
                order=order,
                product_id=line.product_id,
                quantity=line.quantity,
                price=line.price,
                subtotal=line.price * line.quantity,
            )
            for line in lines
        ])

        for line in lines:
            if not reserve_stock(product_id=line.product_id, quantity=line.quantity):
                product = products[line.product_id]
                product.refresh_from_db(fields=["stock"])
                raise Conflict(
                    f"Insufficient stock for product '{product.name}'. "
                    f"Available: {product.stock}, Requested: {line.quantity}"
                )

        cart.items.all().delete()
        cart.save(update_fields=["updated_at"])

        number = order.order_number
        transaction.on_commit(lambda: logger.info(f"order {number} created for user {user.pk}"))

    return _with_items().get(pk=order.pk)


def get_order(*, user, order_id: int) -> Order:
    order = _with_items().filter(pk=order_id, user=user).first()
    if order is None:
        raise NotFound("Order not found")
    return order


def list_user_orders(*, user):
    return list(_with_items().filter(user=user))


def list_all_orders():
    return list(_with_items().all())


@transaction.atomic
def update_status(*, order_id: int, status: str) -> Order:
    if status not in Status.values:
        raise Conflict(f"Status must be one of: {', '.join(Status.values)}")

    order = Order.objects.select_for_update().filter(pk=order_id).first()
    if order is None:
        raise NotFound(f"Order with ID {order_id} not found")

    if settings.SHOP_ENFORCE_STATUS_TRANSITIONS and status != order.status:
        if status not in ALLOWED_TRANSITIONS[Status(order.status)]:
            raise Conflict(f"Cannot change order status from {order.status} to {status}")

    order.status = status
    order.save(update_fields=["status", "updated_at"])
    logger.info(f"order {order_id} status set to {status}")
    return _with_items().get(pk=order.pk)
