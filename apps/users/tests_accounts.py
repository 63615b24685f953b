import pytest
from rest_framework.authtoken.models import Token

from .models import User

pytestmark = pytest.mark.django_db

REGISTER = {"first_name": "Mia", "last_name": "Kim", "email": "mia@example.com", "password": "secret-1"}


def test_register_returns_token_and_customer(api):
    res = api.post("/api/auth/register", REGISTER, format="json")

    assert res.status_code == 201
    body = res.json()
    assert body["user"]["email"] == "mia@example.com"
    assert body["user"]["role"] == "Customer"
    assert "password" not in body["user"]
    assert Token.objects.get(user__email="mia@example.com").key == body["token"]


def test_register_duplicate_email_is_rejected(api):
    api.post("/api/auth/register", REGISTER, format="json")

    res = api.post("/api/auth/register", dict(REGISTER, email="MIA@example.com"), format="json")

    assert res.status_code == 400
    assert res.json() == {"message": "User with this email already exists"}
    assert User.objects.count() == 1


def test_register_validates_input(api):
    res = api.post("/api/auth/register", dict(REGISTER, email="not-an-email", password="123"), format="json")

    assert res.status_code == 400
    assert set(res.json()) == {"email", "password"}


def test_login_and_use_token(api, user, make_product):
    res = api.post("/api/auth/login", {"email": "john@example.com", "password": "pw-123456"}, format="json")

    assert res.status_code == 200
    token = res.json()["token"]

    api.credentials(HTTP_AUTHORIZATION=f"Token {token}")
    assert api.get("/api/cart").status_code == 200


def test_login_ignores_email_case(api):
    api.post("/api/auth/register", dict(REGISTER, email="Mia@Example.com"), format="json")

    res = api.post("/api/auth/login", {"email": "mia@example.com", "password": "secret-1"}, format="json")

    assert res.status_code == 200
    assert res.json()["user"]["email"] == "Mia@example.com"

    res = api.post("/api/auth/login", {"email": "MIA@EXAMPLE.COM", "password": "wrong"}, format="json")
    assert res.status_code == 401


def test_login_with_wrong_password(api, user):
    res = api.post("/api/auth/login", {"email": "john@example.com", "password": "nope"}, format="json")
    assert res.status_code == 401


def test_inactive_user_cannot_login(api, user):
    user.is_active = False
    user.save()

    res = api.post("/api/auth/login", {"email": "john@example.com", "password": "pw-123456"}, format="json")
    assert res.status_code == 401


def test_superuser_is_admin(admin, user):
    assert admin.is_admin
    assert not user.is_admin
