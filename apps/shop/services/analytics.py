import logging
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import Count, Sum

from ..models import Order, OrderItem, Product

logger = logging.getLogger(__name__)


def get_analytics() -> dict:
    """Dashboard figures, computed fresh on every call."""
    User = get_user_model()

    revenue = (
        Order.objects
        .filter(payment_status=Order.PaymentStatus.PAID)
        .aggregate(total=Sum("total_amount"))["total"]
    )

    by_status = {
        row["status"]: row["count"]
        for row in Order.objects.order_by().values("status").annotate(count=Count("id"))
    }

    top_products = [
        {
            "product_id": row["product_id"],
            "product_name": row["product__name"],
            "total_sold": row["total_sold"],
            "total_revenue": row["total_revenue"],
        }
        for row in (
            OrderItem.objects
            .values("product_id", "product__name")
            .annotate(total_sold=Sum("quantity"), total_revenue=Sum("subtotal"))
            .order_by("-total_sold", "product_id")[: settings.SHOP_TOP_PRODUCTS_LIMIT]
        )
    ]

    data = {
        "total_revenue": revenue if revenue is not None else Decimal("0.00"),
        "total_orders": Order.objects.count(),
        "orders_by_status": by_status,
        "top_products": top_products,
        "total_customers": User.objects.filter(role=User.Role.CUSTOMER).count(),
        "total_products": Product.objects.count(),
    }
    logger.info("analytics computed")
    return data
