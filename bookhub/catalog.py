"""Read-only queries over the books table."""
import math
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from bookhub.errors import NotFound
from bookhub.models import Book, OrderItem

DEFAULT_PAGE_SIZE = 8
SEARCH_LIMIT = 10
BEST_SELLERS_LIMIT = 5


def serialize_book(book: Book) -> dict:
    return {
        "id": book.id,
        "title": book.title,
        "author": book.author,
        "description": book.description,
        "category": book.category,
        "price": float(book.price) if book.price is not None else None,
        "image_url": book.image_url,
        "created_at": book.created_at.isoformat() if book.created_at else None,
    }


def list_books(
    db: Session,
    search: Optional[str] = None,
    category: Optional[str] = None,
    author: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    price_min: Optional[Decimal] = None,
    price_max: Optional[Decimal] = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> dict:
    """Filter with AND semantics and return one page, newest first."""
    query = db.query(Book)

    if search:
        keyword = f"%{search}%"
        query = query.filter(or_(
            Book.title.ilike(keyword),
            Book.author.ilike(keyword),
            Book.description.ilike(keyword),
        ))
    if category:
        query = query.filter(Book.category == category)
    if author:
        query = query.filter(Book.author == author)
    if start_date:
        query = query.filter(Book.created_at >= datetime.combine(start_date, time.min))
    if end_date:
        # inclusive of the whole end day
        query = query.filter(Book.created_at < datetime.combine(end_date + timedelta(days=1), time.min))
    if price_min is not None:
        query = query.filter(Book.price >= price_min)
    if price_max is not None:
        query = query.filter(Book.price <= price_max)

    total = query.count()
    rows = (
        query.order_by(Book.created_at.desc(), Book.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit),
        "data": rows,
    }


def get_book(db: Session, book_id: int) -> Book:
    book = db.get(Book, book_id)
    if book is None:
        raise NotFound("Book not found")
    return book


def search_books(db: Session, q: str) -> List[Book]:
    """Every term must match title, author or description; title hits rank highest."""
    terms = (q or "").split()
    if not terms:
        return []

    query = db.query(Book)
    relevance = 0
    for term in terms:
        keyword = f"%{term}%"
        query = query.filter(or_(
            Book.title.ilike(keyword),
            Book.author.ilike(keyword),
            Book.description.ilike(keyword),
        ))
        relevance = (
            relevance
            + case((Book.title.ilike(keyword), 3), else_=0)
            + case((Book.author.ilike(keyword), 2), else_=0)
            + case((Book.description.ilike(keyword), 1), else_=0)
        )

    return (
        query.order_by(relevance.desc(), Book.created_at.desc(), Book.id.desc())
        .limit(SEARCH_LIMIT)
        .all()
    )


def best_sellers(db: Session):
    """Return (books, fallback); fallback is True when nothing has sold yet."""
    sales = func.count(OrderItem.id)
    rows = (
        db.query(Book)
        .join(OrderItem, OrderItem.book_id == Book.id)
        .group_by(Book.id)
        .order_by(sales.desc(), Book.id)
        .limit(BEST_SELLERS_LIMIT)
        .all()
    )
    if rows:
        return rows, False

    shuffle = func.rand() if db.get_bind().dialect.name == "mysql" else func.random()
    sample = db.query(Book).order_by(shuffle).limit(BEST_SELLERS_LIMIT).all()
    return sample, True


def get_books_by_ids(db: Session, book_ids) -> dict:
    ids = set(book_ids)
    if not ids:
        return {}
    return {book.id: book for book in db.query(Book).filter(Book.id.in_(ids)).all()}
