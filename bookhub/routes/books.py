from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from bookhub import catalog
from bookhub.catalog import serialize_book
from bookhub.database import get_db

router = APIRouter(tags=["books"])


@router.get("")
def list_books(
    search: Optional[str] = None,
    category: Optional[str] = None,
    author: Optional[str] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    price_min: Optional[float] = Query(None, alias="priceMin", ge=0),
    price_max: Optional[float] = Query(None, alias="priceMax", ge=0),
    page: int = Query(1, ge=1),
    limit: int = Query(catalog.DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: Session = Depends(get_db),
):
    result = catalog.list_books(
        db,
        search=search,
        category=category,
        author=author,
        start_date=start_date,
        end_date=end_date,
        price_min=price_min,
        price_max=price_max,
        page=page,
        limit=limit,
    )
    result["data"] = [serialize_book(book) for book in result["data"]]
    return {"success": True, **result}


@router.get("/search")
def search_books(q: str = "", db: Session = Depends(get_db)):
    return {"success": True, "data": [serialize_book(book) for book in catalog.search_books(db, q.strip())]}


@router.get("/best-sellers")
def best_sellers(db: Session = Depends(get_db)):
    books, fallback = catalog.best_sellers(db)
    response = {"success": True, "data": [serialize_book(book) for book in books]}
    if fallback:
        response["fallback"] = True
    return response


@router.get("/{book_id}")
def get_book(book_id: int, db: Session = Depends(get_db)):
    return {"success": True, "data": serialize_book(catalog.get_book(db, book_id))}
