import logging
from typing import Optional

from fastapi import Depends
from pydantic import ValidationError as MetadataError
from sqlalchemy.orm import Session

from bookhub import ledger, notifications
from bookhub.checkout import get_gateway, get_mailer
from bookhub.database import get_db
from bookhub.errors import StoreError
from bookhub.mailer import Mailer
from bookhub.models import PAYMENT_COMPLETED, PAYMENT_FAILED, User
from bookhub.schemas import CorrelationMetadata
from bookhub.stripe_service import StripeGateway

logger = logging.getLogger(__name__)

COMPLETED_EVENTS = {
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
}
FAILED_EVENTS = {
    "checkout.session.expired",
    "checkout.session.async_payment_failed",
}
# the customer may retry inside the same open session
DECLINED_ATTEMPT_EVENTS = {
    "payment_intent.payment_failed",
}


def _field(obj, name):
    # gateway objects and plain dicts both support item access
    try:
        return obj[name]
    except (KeyError, TypeError):
        return None


def read_metadata(obj) -> Optional[CorrelationMetadata]:
    raw = _field(obj, "metadata")
    if not raw:
        return None
    try:
        return CorrelationMetadata.model_validate(dict(raw.items()))
    except MetadataError:
        return None


class WebhookReconciler:
    """Applies gateway payment outcomes to the ledger."""

    def __init__(self, db: Session, gateway: StripeGateway, mailer: Mailer):
        self.db = db
        self.gateway = gateway
        self.mailer = mailer

    def handle(self, payload: bytes, signature: str) -> dict:
        event = self.gateway.construct_event(payload, signature)
        event_type = event["type"]
        obj = event["data"]["object"]

        if event_type in COMPLETED_EVENTS:
            if _field(obj, "payment_status") == "paid":
                self.apply(obj, PAYMENT_COMPLETED, event_type)
            else:
                # delayed methods settle later via async_payment_succeeded or _failed
                logger.info("Session %s completed but not yet paid", _field(obj, "id"))
        elif event_type in FAILED_EVENTS:
            self.apply(obj, PAYMENT_FAILED, event_type)
        elif event_type in DECLINED_ATTEMPT_EVENTS:
            logger.info("Declined payment attempt %s, session stays open", _field(obj, "id"))
        else:
            logger.debug("Ignoring webhook event %s", event_type)

        return {"success": True, "message": "Webhook received"}

    def apply(self, obj, payment_status: str, event_type: str = None) -> bool:
        metadata = read_metadata(obj)
        if metadata is None:
            logger.warning("Webhook event %s has no usable correlation metadata", event_type)
            return False

        reference = _field(obj, "payment_intent") or _field(obj, "id")
        if payment_status == PAYMENT_FAILED:
            reference = None

        try:
            applied = ledger.transition_payment_and_order(
                self.db,
                payment_id=metadata.payment_id,
                order_id=metadata.order_id,
                payment_status=payment_status,
                transaction_reference=reference,
                user_id=metadata.user_id,
            )
        except StoreError:
            # acknowledged anyway; the gateway's redelivery is not ours to drive
            logger.error("Could not apply %s to order %s", event_type, metadata.order_id)
            return False

        if applied:
            self.notify(metadata, payment_status)
        return applied

    def reconcile_session(self, session_id: str):
        """Fetch a checkout session and settle its order if the gateway says it is paid.

        Covers the return-from-checkout redirect arriving before the webhook.
        """
        session = self.gateway.retrieve_session(session_id)
        if _field(session, "payment_status") == "paid":
            self.apply(session, PAYMENT_COMPLETED, "checkout.session.verified")
        return session, read_metadata(session)

    def notify(self, metadata: CorrelationMetadata, payment_status: str):
        user = self.db.get(User, metadata.user_id)
        order = ledger.get_order(self.db, metadata.order_id)
        if user is None or order is None:
            logger.warning("Cannot notify about order %s: user or order missing", metadata.order_id)
            return

        if payment_status == PAYMENT_COMPLETED:
            notifications.send_payment_confirmed(self.mailer, user, order)
        else:
            notifications.send_payment_failed(self.mailer, user, order)


def get_reconciler(db: Session = Depends(get_db),
                   gateway: StripeGateway = Depends(get_gateway),
                   mailer: Mailer = Depends(get_mailer)) -> WebhookReconciler:
    return WebhookReconciler(db, gateway, mailer)
