"""Order, order item, payment and audit log writes.

Every write to those tables goes through this module. Each public write
either commits as a whole or is rolled back and re-raised as StoreError.
"""
import logging
import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from bookhub.errors import NotFound, StoreError, ValidationError
from bookhub.models import (
    ORDER_CANCELLED,
    ORDER_PAID,
    ORDER_PENDING,
    PAYMENT_COMPLETED,
    PAYMENT_FAILED,
    PAYMENT_PENDING,
    Log,
    Order,
    OrderItem,
    Payment,
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# payment status -> order status, for the two terminal transitions
TRANSITIONS = {
    PAYMENT_COMPLETED: ORDER_PAID,
    PAYMENT_FAILED: ORDER_CANCELLED,
}


@dataclass
class LineItem:
    book_id: int
    title: str
    unit_price: Decimal
    quantity: int


def order_total(lines: List[LineItem]) -> Decimal:
    total = sum((line.unit_price * line.quantity for line in lines), Decimal("0"))
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


def create_order_with_payment(db: Session, user_id: int, lines: List[LineItem], method: str):
    """Insert the order, its items, a pending payment and a log row in one transaction."""
    total = order_total(lines)
    try:
        order = Order(user_id=user_id, total_amount=total, status=ORDER_PENDING)
        db.add(order)
        db.flush()

        db.add_all([
            OrderItem(order_id=order.id, book_id=line.book_id, quantity=line.quantity, price=line.unit_price)
            for line in lines
        ])

        payment = Payment(
            user_id=user_id,
            order_id=order.id,
            amount=total,
            method=method,
            status=PAYMENT_PENDING,
            transaction_reference=str(uuid.uuid4()),
        )
        db.add(payment)
        db.flush()

        db.add(Log(
            user_id=user_id,
            action="Order Created",
            details=f"Order {order.id} created with payment {payment.id} for {total}",
        ))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to create order for user %s: %s", user_id, exc)
        raise StoreError() from exc

    logger.info("Created order %s (payment %s, total %s) for user %s", order.id, payment.id, total, user_id)
    return order, payment


def transition_payment_and_order(db: Session, payment_id: int, order_id: int, payment_status: str,
                                 transaction_reference: Optional[str] = None, user_id: Optional[int] = None) -> bool:
    """Move a pending payment and its order to a terminal status.

    Returns False without writing anything when the payment is no longer
    pending, so redelivered events are no-ops.
    """
    if payment_status not in TRANSITIONS:
        raise ValueError(f"Unsupported payment status: {payment_status}")
    order_status = TRANSITIONS[payment_status]

    values = {"status": payment_status}
    if transaction_reference:
        values["transaction_reference"] = transaction_reference

    try:
        result = db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.order_id == order_id, Payment.status == PAYMENT_PENDING)
            .values(**values)
        )
        if result.rowcount == 0:
            db.rollback()
            logger.info("Payment %s for order %s is not pending, ignoring %s", payment_id, order_id, payment_status)
            return False

        db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == ORDER_PENDING)
            .values(status=order_status)
        )

        if payment_status == PAYMENT_COMPLETED:
            action, details = "Payment Completed", f"Payment {payment_id} for order {order_id} completed via Stripe"
        else:
            action, details = "Payment Failed", f"Payment {payment_id} for order {order_id} failed"
        db.add(Log(user_id=user_id, action=action, details=details))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to move payment %s to %s: %s", payment_id, payment_status, exc)
        raise StoreError() from exc

    db.expire_all()
    logger.info("Payment %s -> %s, order %s -> %s", payment_id, payment_status, order_id, order_status)
    return True


def get_order(db: Session, order_id: int) -> Optional[Order]:
    return (
        db.query(Order)
        .options(selectinload(Order.items).selectinload(OrderItem.book), selectinload(Order.payment))
        .filter(Order.id == order_id)
        .first()
    )


def list_user_orders(db: Session, user_id: int) -> List[Order]:
    return (
        db.query(Order)
        .options(selectinload(Order.items).selectinload(OrderItem.book), selectinload(Order.payment))
        .filter(Order.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def delete_user_order(db: Session, user_id: int, order_id: int):
    order = db.query(Order).filter_by(id=order_id, user_id=user_id).first()
    if order is None:
        raise NotFound("Order not found or not yours")
    if order.status == ORDER_PAID:
        raise ValidationError("Paid orders cannot be deleted")

    try:
        db.delete(order)
        db.add(Log(user_id=user_id, action="Order Deleted", details=f"Order {order_id} deleted by user {user_id}"))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError() from exc
    logger.info("Deleted order %s for user %s", order_id, user_id)


def serialize_order(order: Order) -> dict:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "total_amount": float(order.total_amount),
        "status": order.status,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "payment_status": order.payment.status if order.payment else None,
        "items": [
            {
                "book_id": item.book_id,
                "title": item.book.title if item.book else None,
                "quantity": item.quantity,
                "price": float(item.price),
            }
            for item in order.items
        ],
    }
