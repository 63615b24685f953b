import logging

from django.contrib.auth import authenticate, get_user_model
from django.db import transaction
from rest_framework.authtoken.models import Token
from rest_framework.exceptions import AuthenticationFailed

from apps.shop.exceptions import Conflict

logger = logging.getLogger(__name__)


@transaction.atomic
def register(*, first_name: str, last_name: str, email: str, password: str):
    User = get_user_model()
    email = User.objects.normalize_email(email)
    if User.objects.filter(email__iexact=email).exists():
        raise Conflict("User with this email already exists")

    user = User.objects.create_user(
        email, password, first_name=first_name, last_name=last_name, role=User.Role.CUSTOMER
    )
    token, _ = Token.objects.get_or_create(user=user)
    logger.info(f"user registered: {user.pk}")
    return user, token.key


def login(*, email: str, password: str):
    # emails are unique case-insensitively, same as at register
    stored = get_user_model().objects.filter(email__iexact=email).values_list("email", flat=True).first()
    user = authenticate(username=stored, password=password) if stored else None
    if user is None:
        raise AuthenticationFailed("Invalid email or password")

    token, _ = Token.objects.get_or_create(user=user)
    logger.info(f"user logged in: {user.pk}")
    return user, token.key
