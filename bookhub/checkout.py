import logging
from decimal import Decimal
from typing import List

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from bookhub import catalog, ledger, notifications
from bookhub.database import get_db
from bookhub.errors import EmptyCart, ValidationError
from bookhub.mailer import Mailer
from bookhub.models import User
from bookhub.schemas import CartItem, CorrelationMetadata
from bookhub.stripe_service import StripeGateway

logger = logging.getLogger(__name__)


class CheckoutOrchestrator:
    """Turns a cart into a pending order and a hosted checkout session."""

    def __init__(self, db: Session, gateway: StripeGateway, mailer: Mailer):
        self.db = db
        self.gateway = gateway
        self.mailer = mailer

    def price_cart(self, items: List[CartItem]) -> List[ledger.LineItem]:
        books = catalog.get_books_by_ids(self.db, [item.id for item in items])
        lines = []
        for item in items:
            book = books.get(item.id)
            if book is None:
                raise ValidationError(f"Book {item.id} does not exist")
            if item.price is not None and Decimal(str(item.price)) != book.price:
                logger.warning("Cart price %s for book %s differs from catalog price %s",
                               item.price, book.id, book.price)
            lines.append(ledger.LineItem(
                book_id=book.id,
                title=book.title,
                unit_price=book.price,
                quantity=item.quantity,
            ))
        return lines

    def checkout(self, user: User, items: List[CartItem], payment_method: str) -> dict:
        if not items:
            raise EmptyCart()

        lines = self.price_cart(items)
        order, payment = ledger.create_order_with_payment(self.db, user.id, lines, payment_method)

        metadata = CorrelationMetadata(order_id=order.id, payment_id=payment.id, user_id=user.id)
        # order and payment stay pending if this fails
        session = self.gateway.create_checkout_session(lines, metadata.as_gateway_metadata(), user.email)

        notifications.send_order_placed(self.mailer, user, ledger.get_order(self.db, order.id))

        return {"url": session.url, "sessionId": session.id}


def get_gateway(request: Request) -> StripeGateway:
    return request.app.state.gateway


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def get_checkout(db: Session = Depends(get_db),
                 gateway: StripeGateway = Depends(get_gateway),
                 mailer: Mailer = Depends(get_mailer)) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(db, gateway, mailer)
