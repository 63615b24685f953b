from decimal import Decimal

from rest_framework import serializers

from .models import Order

# ---- input ----


class CategoryIn(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True, allow_null=True)


class ProductIn(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    description = serializers.CharField(max_length=2000, required=False, allow_blank=True, allow_null=True)
    price = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=Decimal("0.01"))
    stock = serializers.IntegerField(min_value=0)
    image_url = serializers.CharField(max_length=500, required=False, allow_blank=True, allow_null=True)
    category_id = serializers.IntegerField()


class ProductQueryIn(serializers.Serializer):
    categoryId = serializers.IntegerField(required=False, allow_null=True, source="category_id")
    search = serializers.CharField(required=False, allow_blank=True)


class AddToCartIn(serializers.Serializer):
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)


class UpdateCartItemIn(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)


class OrderCreateIn(serializers.Serializer):
    shipping_address = serializers.CharField(max_length=500)

    def validate_shipping_address(self, value):
        if not value.strip():
            raise serializers.ValidationError("Shipping address is required.")
        return value


class OrderStatusIn(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.Status.choices)


class PaymentIntentIn(serializers.Serializer):
    order_id = serializers.IntegerField()


# ---- output ----


class CategoryOut(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()
    description = serializers.CharField(allow_null=True)
    product_count = serializers.IntegerField(default=0)
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()


class ProductOut(serializers.Serializer):
    id = serializers.IntegerField()
    name = serializers.CharField()
    description = serializers.CharField(allow_null=True)
    price = serializers.DecimalField(max_digits=18, decimal_places=2)
    stock = serializers.IntegerField()
    image_url = serializers.CharField(allow_null=True)
    category_id = serializers.IntegerField()
    category_name = serializers.CharField(source="category.name")
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()


class CartItemOut(serializers.Serializer):
    id = serializers.IntegerField()
    product_id = serializers.IntegerField()
    product_name = serializers.CharField(source="product.name")
    product_image_url = serializers.CharField(source="product.image_url", allow_null=True)
    quantity = serializers.IntegerField()
    price = serializers.DecimalField(max_digits=18, decimal_places=2)
    subtotal = serializers.DecimalField(max_digits=18, decimal_places=2)
    stock = serializers.IntegerField(source="product.stock")


class CartOut(serializers.Serializer):
    id = serializers.IntegerField()
    user_id = serializers.IntegerField()
    items = CartItemOut(many=True)
    total_amount = serializers.DecimalField(max_digits=18, decimal_places=2)
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()


class OrderItemOut(serializers.Serializer):
    id = serializers.IntegerField()
    product_id = serializers.IntegerField()
    product_name = serializers.CharField(source="product.name")
    product_image_url = serializers.CharField(source="product.image_url", allow_null=True)
    quantity = serializers.IntegerField()
    price = serializers.DecimalField(max_digits=18, decimal_places=2)
    subtotal = serializers.DecimalField(max_digits=18, decimal_places=2)


class OrderOut(serializers.Serializer):
    id = serializers.IntegerField()
    order_number = serializers.CharField()
    order_date = serializers.DateTimeField(source="created_at")
    total_amount = serializers.DecimalField(max_digits=18, decimal_places=2)
    status = serializers.CharField()
    payment_status = serializers.CharField()
    payment_intent_id = serializers.CharField(allow_null=True)
    shipping_address = serializers.CharField()
    items = OrderItemOut(many=True)


class PaymentIntentOut(serializers.Serializer):
    client_secret = serializers.CharField()
    payment_intent_id = serializers.CharField()
    amount = serializers.DecimalField(max_digits=18, decimal_places=2)


class TopProductOut(serializers.Serializer):
    product_id = serializers.IntegerField()
    product_name = serializers.CharField()
    total_sold = serializers.IntegerField()
    total_revenue = serializers.DecimalField(max_digits=18, decimal_places=2)


class AnalyticsOut(serializers.Serializer):
    total_revenue = serializers.DecimalField(max_digits=18, decimal_places=2)
    total_orders = serializers.IntegerField()
    orders_by_status = serializers.DictField(child=serializers.IntegerField())
    top_products = TopProductOut(many=True)
    total_customers = serializers.IntegerField()
    total_products = serializers.IntegerField()
