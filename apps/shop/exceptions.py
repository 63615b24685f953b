import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ShopError(Exception):
    """Business failure raised by the service layer."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class NotFound(ShopError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(ShopError):
    """Business rule violation (empty cart, stock, already paid, duplicates)."""


class PaymentError(Conflict):
    """The payment processor rejected or failed a request."""


def shop_exception_handler(exc, context):
    if isinstance(exc, ShopError):
        logger.warning(f"{type(exc).__name__}: {exc.message}")
        return Response({"message": exc.message}, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    logger.exception(f"unhandled error in {type(view).__name__ if view else 'view'}")
    return Response(
        {"message": "An unexpected error occurred"},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
