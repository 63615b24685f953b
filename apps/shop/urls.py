from django.urls import path

from . import views

urlpatterns = [
    path("categories", views.categories_view, name="categories"),
    path("categories/<int:category_id>", views.category_detail_view, name="category-detail"),
    path("products", views.products_view, name="products"),
    path("products/<int:product_id>", views.product_detail_view, name="product-detail"),
    path("cart", views.cart_view, name="cart"),
    path("cart/items", views.cart_items_view, name="cart-items"),
    path("cart/items/<int:cart_item_id>", views.cart_item_detail_view, name="cart-item-detail"),
    path("orders", views.orders_view, name="orders"),
    path("orders/admin/all", views.all_orders_view, name="orders-all"),
    path("orders/<int:order_id>", views.order_detail_view, name="order-detail"),
    path("orders/<int:order_id>/status", views.order_status_view, name="order-status"),
    path("payment/create-intent", views.create_intent_view, name="payment-create-intent"),
    path("payment/webhook", views.webhook_view, name="payment-webhook"),
    path("admin/analytics", views.analytics_view, name="admin-analytics"),
]
