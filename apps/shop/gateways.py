from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Protocol

import stripe
from django.conf import settings


class GatewayError(Exception):
    """The processor could not complete an outbound call."""


class SignatureError(Exception):
    """A callback payload failed authenticity checks."""


@dataclass(frozen=True)
class IntentHandle:
    intent_id: str
    client_secret: str


@dataclass(frozen=True)
class PaymentEvent:
    type: str
    intent_id: Optional[str] = None
    intent_status: Optional[str] = None


class PaymentGateway(Protocol):
    def create_intent(self, amount_minor: int, currency: str, metadata: Dict[str, str]) -> IntentHandle: ...
    def construct_event(self, payload: bytes, signature: str) -> PaymentEvent: ...


class StripeGateway:
    def __init__(self, api_key: str, webhook_secret: str):
        self._api_key = api_key
        self._webhook_secret = webhook_secret

    def create_intent(self, amount_minor: int, currency: str, metadata: Dict[str, str]) -> IntentHandle:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self._api_key,
                amount=amount_minor,
                currency=currency,
                automatic_payment_methods={"enabled": True},
                metadata=metadata,
            )
        except stripe.StripeError as e:
            raise GatewayError(e.user_message or str(e)) from e
        return IntentHandle(intent_id=intent.id, client_secret=intent.client_secret)

    def construct_event(self, payload: bytes, signature: str) -> PaymentEvent:
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise SignatureError(str(e)) from e

        obj = event.data.object
        if event.type.startswith("payment_intent."):
            return PaymentEvent(type=event.type, intent_id=obj.id, intent_status=getattr(obj, "status", None))
        return PaymentEvent(type=event.type)


def get_gateway() -> PaymentGateway:
    return StripeGateway(settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET)
