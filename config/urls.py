from django.urls import include, path

urlpatterns = [
    path("api/auth/", include("apps.users.urls")),
    path("api/", include("apps.shop.urls")),
]
