import hashlib
import json
import logging

from django.db import transaction
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from apps.users.permissions import IsAdmin, IsAdminOrReadOnly

from .models import IdempotencyKey
from .serializers import (
    AddToCartIn,
    AnalyticsOut,
    CartOut,
    CategoryIn,
    CategoryOut,
    OrderCreateIn,
    OrderOut,
    OrderStatusIn,
    PaymentIntentIn,
    PaymentIntentOut,
    ProductIn,
    ProductOut,
    ProductQueryIn,
    UpdateCartItemIn,
)
from .services import analytics, cart, catalog, orders, payments

logger = logging.getLogger(__name__)


# ---------------------- Catalog ----------------------

@api_view(["GET", "POST"])
@permission_classes([IsAdminOrReadOnly])
def categories_view(request):
    if request.method == "GET":
        return Response(CategoryOut(catalog.list_categories(), many=True).data)

    ser = CategoryIn(data=request.data)
    ser.is_valid(raise_exception=True)
    category = catalog.create_category(**ser.validated_data)
    headers = {"Location": f"/api/categories/{category.pk}"}
    return Response(CategoryOut(category).data, status=status.HTTP_201_CREATED, headers=headers)


@api_view(["GET", "DELETE"])
@permission_classes([IsAdminOrReadOnly])
def category_detail_view(request, category_id):
    if request.method == "GET":
        return Response(CategoryOut(catalog.get_category(category_id=category_id)).data)

    catalog.delete_category(category_id=category_id)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(["GET", "POST"])
@permission_classes([IsAdminOrReadOnly])
def products_view(request):
    if request.method == "GET":
        query = ProductQueryIn(data=request.query_params)
        query.is_valid(raise_exception=True)
        products = catalog.list_products(**query.validated_data)
        return Response(ProductOut(products, many=True).data)

    ser = ProductIn(data=request.data)
    ser.is_valid(raise_exception=True)
    product = catalog.create_product(**ser.validated_data)
    headers = {"Location": f"/api/products/{product.pk}"}
    return Response(ProductOut(product).data, status=status.HTTP_201_CREATED, headers=headers)


@api_view(["GET", "PUT", "DELETE"])
@permission_classes([IsAdminOrReadOnly])
def product_detail_view(request, product_id):
    if request.method == "GET":
        return Response(ProductOut(catalog.get_product(product_id=product_id)).data)

    if request.method == "PUT":
        ser = ProductIn(data=request.data)
        ser.is_valid(raise_exception=True)
        product = catalog.update_product(product_id=product_id, **ser.validated_data)
        return Response(ProductOut(product).data)

    if not catalog.delete_product(product_id=product_id):
        return Response({"message": "Product not found"}, status=status.HTTP_404_NOT_FOUND)
    return Response(status=status.HTTP_204_NO_CONTENT)


# ---------------------- Cart ----------------------

@api_view(["GET", "DELETE"])
@permission_classes([IsAuthenticated])
def cart_view(request):
    if request.method == "GET":
        return Response(CartOut(cart.get_or_create_cart(user=request.user)).data)

    cart.clear(user=request.user)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def cart_items_view(request):
    ser = AddToCartIn(data=request.data)
    ser.is_valid(raise_exception=True)
    updated = cart.add_item(user=request.user, **ser.validated_data)
    return Response(CartOut(updated).data)


@api_view(["PUT", "DELETE"])
@permission_classes([IsAuthenticated])
def cart_item_detail_view(request, cart_item_id):
    if request.method == "PUT":
        ser = UpdateCartItemIn(data=request.data)
        ser.is_valid(raise_exception=True)
        updated = cart.update_item(user=request.user, cart_item_id=cart_item_id, **ser.validated_data)
        return Response(CartOut(updated).data)

    if not cart.remove_item(user=request.user, cart_item_id=cart_item_id):
        return Response({"message": "Cart item not found"}, status=status.HTTP_404_NOT_FOUND)
    return Response(status=status.HTTP_204_NO_CONTENT)


# ---------------------- Orders ----------------------

def _place_order(user, data):
    order = orders.create_order_from_cart(user=user, shipping_address=data["shipping_address"])
    return order, OrderOut(order).data


@api_view(["GET", "POST"])
@permission_classes([IsAuthenticated])
def orders_view(request):
    if request.method == "GET":
        return Response(OrderOut(orders.list_user_orders(user=request.user), many=True).data)

    ser = OrderCreateIn(data=request.data)
    ser.is_valid(raise_exception=True)

    idem = request.headers.get("Idempotency-Key")
    body_hash = hashlib.sha256(json.dumps(ser.validated_data, sort_keys=True).encode()).hexdigest()

    if idem:
        with transaction.atomic():
            rec, created = IdempotencyKey.objects.select_for_update().get_or_create(
                key=idem, user=request.user,
                defaults={"request_hash": body_hash, "status_code": 0, "response_body": {}},
            )
            if not created and rec.status_code:
                if rec.request_hash != body_hash:
                    return Response(
                        {"message": "Idempotency-Key was already used with a different request"},
                        status=status.HTTP_400_BAD_REQUEST,
                    )
                logger.info(f"replaying order response for idempotency key {idem}")
                return Response(rec.response_body, status=rec.status_code)

            order, payload = _place_order(request.user, ser.validated_data)
            rec.request_hash, rec.response_body, rec.status_code = body_hash, payload, status.HTTP_201_CREATED
            rec.save(update_fields=["request_hash", "response_body", "status_code"])
    else:
        order, payload = _place_order(request.user, ser.validated_data)

    headers = {"Location": f"/api/orders/{order.pk}"}
    return Response(payload, status=status.HTTP_201_CREATED, headers=headers)


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def order_detail_view(request, order_id):
    return Response(OrderOut(orders.get_order(user=request.user, order_id=order_id)).data)


@api_view(["GET"])
@permission_classes([IsAdmin])
def all_orders_view(request):
    return Response(OrderOut(orders.list_all_orders(), many=True).data)


@api_view(["PUT"])
@permission_classes([IsAdmin])
def order_status_view(request, order_id):
    ser = OrderStatusIn(data=request.data)
    ser.is_valid(raise_exception=True)
    order = orders.update_status(order_id=order_id, status=ser.validated_data["status"])
    return Response(OrderOut(order).data)


# ---------------------- Payment ----------------------

@api_view(["POST"])
@permission_classes([IsAuthenticated])
def create_intent_view(request):
    ser = PaymentIntentIn(data=request.data)
    ser.is_valid(raise_exception=True)
    result = payments.create_payment_intent(user=request.user, order_id=ser.validated_data["order_id"])
    return Response(PaymentIntentOut(result).data)


@api_view(["POST"])
@permission_classes([AllowAny])
def webhook_view(request):
    signature = request.headers.get("Stripe-Signature")
    if not signature:
        logger.warning("payment callback without signature header")
        return Response({"message": "Missing Stripe signature"}, status=status.HTTP_400_BAD_REQUEST)

    if not payments.handle_callback(payload=request.body, signature=signature):
        return Response({"message": "Webhook processing failed"}, status=status.HTTP_400_BAD_REQUEST)
    return Response({"received": True})


# ---------------------- Admin ----------------------

@api_view(["GET"])
@permission_classes([IsAdmin])
def analytics_view(request):
    return Response(AnalyticsOut(analytics.get_analytics()).data)
