from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from . import services
from .serializers import LoginIn, RegisterIn, auth_payload


@api_view(["POST"])
def register_view(request):
    ser = RegisterIn(data=request.data)
    ser.is_valid(raise_exception=True)
    user, token = services.register(**ser.validated_data)
    return Response(auth_payload(user, token), status=status.HTTP_201_CREATED)


@api_view(["POST"])
def login_view(request):
    ser = LoginIn(data=request.data)
    ser.is_valid(raise_exception=True)
    user, token = services.login(**ser.validated_data)
    return Response(auth_payload(user, token))
