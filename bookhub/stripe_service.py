import logging
from decimal import ROUND_HALF_UP, Decimal

import stripe

from bookhub.config import Settings
from bookhub.errors import GatewayError, InvalidSignature

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeGateway:
    """Thin wrapper over the hosted checkout calls this service makes."""

    def __init__(self, settings: Settings):
        self.api_key = settings.stripe_secret_key
        self.webhook_secret = settings.stripe_webhook_secret
        self.currency = settings.stripe_currency
        self.success_url = settings.checkout_success_url
        self.cancel_url = settings.checkout_cancel_url
        stripe.max_network_retries = settings.stripe_max_network_retries

    def create_checkout_session(self, lines, metadata: dict, customer_email: str = None):
        line_items = [
            {
                "price_data": {
                    "currency": self.currency,
                    "product_data": {"name": line.title},
                    "unit_amount": to_minor_units(line.unit_price),
                },
                "quantity": line.quantity,
            }
            for line in lines
        ]
        try:
            return stripe.checkout.Session.create(
                api_key=self.api_key,
                payment_method_types=["card"],
                line_items=line_items,
                mode="payment",
                success_url=self.success_url,
                cancel_url=self.cancel_url,
                customer_email=customer_email,
                metadata=metadata,
                idempotency_key=f"checkout-{metadata['orderId']}",
            )
        except stripe.StripeError as exc:
            logger.error("Checkout session creation failed for order %s: %s", metadata.get("orderId"), exc)
            raise GatewayError("Server error creating checkout session") from exc

    def retrieve_session(self, session_id: str):
        try:
            return stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.error("Could not retrieve checkout session %s: %s", session_id, exc)
            raise GatewayError("Could not retrieve checkout session") from exc

    def construct_event(self, payload: bytes, signature: str):
        if not signature:
            raise InvalidSignature()
        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError:
            raise InvalidSignature("Invalid payload")
        except stripe.SignatureVerificationError:
            raise InvalidSignature()
