"""Best-effort customer emails. Failures are logged and never raised."""
import logging

from bookhub.mailer import Mailer
from bookhub.models import Order, User

logger = logging.getLogger(__name__)


def _order_lines(order: Order) -> str:
    lines = []
    for item in order.items:
        title = item.book.title if item.book else f"Book #{item.book_id}"
        lines.append(f"  - {title} x{item.quantity} @ {item.price}")
    return "\n".join(lines)


def _send(mailer: Mailer, user: User, subject: str, body: str):
    if user is None or not user.email:
        logger.warning("No recipient for '%s', skipping", subject)
        return
    try:
        mailer.send(user.email, subject, body)
    except Exception:
        logger.exception("Failed to send '%s' to user %s", subject, user.id)


def send_order_placed(mailer: Mailer, user: User, order: Order):
    body = (
        f"Hi {user.full_name},\n\n"
        f"We received your order #{order.id} and are waiting for your payment.\n\n"
        f"{_order_lines(order)}\n\n"
        f"Total: {order.total_amount}\n"
    )
    _send(mailer, user, f"Order #{order.id} placed - pending payment", body)


def send_payment_confirmed(mailer: Mailer, user: User, order: Order):
    body = (
        f"Hi {user.full_name},\n\n"
        f"Your payment for order #{order.id} was received. Thank you!\n\n"
        f"{_order_lines(order)}\n\n"
        f"Total paid: {order.total_amount}\n"
    )
    _send(mailer, user, f"Payment confirmed for order #{order.id}", body)


def send_payment_failed(mailer: Mailer, user: User, order: Order):
    body = (
        f"Hi {user.full_name},\n\n"
        f"The payment for order #{order.id} did not go through and the order was cancelled.\n"
        f"You can place the order again from your cart.\n"
    )
    _send(mailer, user, f"Payment failed for order #{order.id}", body)
