import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.utils import timezone

from ..exceptions import Conflict, NotFound, PaymentError
from ..gateways import GatewayError, PaymentGateway, SignatureError, get_gateway
from ..models import Order

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


@dataclass(frozen=True)
class PaymentIntentResult:
    client_secret: str
    payment_intent_id: str
    amount: Decimal


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def create_payment_intent(*, user, order_id: int, gateway: PaymentGateway = None) -> PaymentIntentResult:
    logger.info(f"creating payment intent for user {user.pk}, order {order_id}")

    order = Order.objects.filter(pk=order_id, user=user).first()
    if order is None:
        raise NotFound("Order not found")
    if order.payment_status == Order.PaymentStatus.PAID:
        raise Conflict("Order has already been paid")

    gateway = gateway or get_gateway()
    try:
        handle = gateway.create_intent(
            to_minor_units(order.total_amount),
            settings.STRIPE_CURRENCY,
            {"orderId": str(order.pk), "orderNumber": order.order_number},
        )
    except GatewayError as e:
        logger.exception(f"processor error creating payment intent for order {order_id}")
        raise PaymentError(f"Payment processing error: {e}") from e

    Order.objects.filter(pk=order.pk).update(payment_intent_id=handle.intent_id, updated_at=timezone.now())
    logger.info(f"payment intent {handle.intent_id} created for order {order.order_number}")
    return PaymentIntentResult(
        client_secret=handle.client_secret,
        payment_intent_id=handle.intent_id,
        amount=order.total_amount,
    )


def handle_callback(*, payload: bytes, signature: str, gateway: PaymentGateway = None) -> bool:
    """Apply a processor callback to the order store.

    Returns False only when the payload cannot be authenticated. Events with
    no matching order, and event types we do not act on, still count as
    handled so the processor stops redelivering them. Replays are harmless:
    each branch writes fixed values.
    """
    gateway = gateway or get_gateway()
    try:
        event = gateway.construct_event(payload, signature)
    except SignatureError as e:
        logger.warning(f"rejected payment callback: {e}")
        return False

    logger.info(f"payment callback {event.type}")

    if event.type == PAYMENT_SUCCEEDED:
        _apply(event.intent_id, payment_status=Order.PaymentStatus.PAID, status=Order.Status.PROCESSING)
    elif event.type == PAYMENT_FAILED:
        _apply(event.intent_id, payment_status=Order.PaymentStatus.FAILED)
    else:
        logger.info(f"ignoring payment callback type {event.type}")
    return True


def _apply(intent_id, **fields):
    order = Order.objects.filter(payment_intent_id=intent_id).first() if intent_id else None
    if order is None:
        logger.warning(f"no order for payment intent {intent_id}")
        return

    Order.objects.filter(pk=order.pk).update(updated_at=timezone.now(), **fields)
    logger.info(f"order {order.order_number} payment_status={fields['payment_status']}")
