import logging

from fastapi import Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from bookhub.auth import check_password, create_token, hash_password, verify_token
from bookhub.database import get_db
from bookhub.errors import DuplicateEmail, InvalidCredentials, NotFound, StoreError
from bookhub.models import User

logger = logging.getLogger(__name__)


def public_user(user: User) -> dict:
    return {
        "id": user.id,
        "full_name": user.full_name,
        "email": user.email,
        "phone": user.phone,
        "address": user.address,
    }


def register_user(db: Session, full_name: str, email: str, password: str,
                  phone: str = None, address: str = None) -> User:
    if db.query(User).filter_by(email=email).first():
        raise DuplicateEmail()

    user = User(
        full_name=full_name,
        email=email,
        password_hash=hash_password(password),
        phone=phone or None,
        address=address or None,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race against a concurrent registration
        db.rollback()
        raise DuplicateEmail()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError() from exc

    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate(db: Session, email: str, password: str, secret: str, expires_days: int = 7):
    """Return (token, user) or raise the same InvalidCredentials for any mismatch."""
    user = db.query(User).filter_by(email=email).first()
    if user is None or not check_password(password, user.password_hash):
        raise InvalidCredentials()

    token = create_token(user.id, user.email, secret, expires_days)
    return token, user


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def get_current_user(claims: dict = Depends(verify_token), db: Session = Depends(get_db)) -> User:
    return get_user(db, claims["id"])


def change_password(db: Session, user_id: int, old_password: str, new_password: str):
    user = get_user(db, user_id)
    if not check_password(old_password, user.password_hash):
        raise InvalidCredentials("Incorrect old password")

    user.password_hash = hash_password(new_password)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError() from exc
    logger.info("Password changed for user %s", user_id)
