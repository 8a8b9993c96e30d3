from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from bookhub.auth import create_token, hash_password
from bookhub.config import Settings
from bookhub.main import create_app
from bookhub.models import Book, User

JWT_SECRET = "test-secret"


class RecordingMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, body):
        if self.fail:
            raise ConnectionError("SMTP down")
        self.sent.append({"to": to, "subject": subject, "body": body})


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test_bookhub.db'}",
        jwt_secret=JWT_SECRET,
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret="whsec_test",
    )


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def fastapi_app(settings, mailer):
    app = create_app(settings, mailer=mailer)
    yield app
    app.state.engine.dispose()


@pytest.fixture
def client(fastapi_app):
    with TestClient(fastapi_app) as c:
        yield c


@pytest.fixture
def session_factory(fastapi_app):
    return fastapi_app.state.session_factory


@pytest.fixture
def add_book(session_factory):
    created = {"n": 0}

    def _add_book(title="Book", author="Author", price="10.00", category="fiction",
                  description="", created_at=None):
        created["n"] += 1
        db = session_factory()
        book = Book(
            title=title,
            author=author,
            description=description,
            category=category,
            price=Decimal(price),
            image_url=f"/img/{created['n']}.jpg",
            created_at=created_at or datetime(2024, 1, 1) + timedelta(days=created["n"]),
        )
        db.add(book)
        db.commit()
        book_id = book.id
        db.close()
        return book_id

    return _add_book


@pytest.fixture
def add_user(session_factory):
    def _add_user(email="reader@example.com", password="secret123", full_name="Ada Reader"):
        db = session_factory()
        user = User(full_name=full_name, email=email, password_hash=hash_password(password))
        db.add(user)
        db.commit()
        user_id = user.id
        db.close()
        return user_id

    return _add_user


@pytest.fixture
def auth_headers():
    def _headers(user_id, email="reader@example.com"):
        return {"Authorization": f"Bearer {create_token(user_id, email, JWT_SECRET)}"}

    return _headers
