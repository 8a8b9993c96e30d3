from datetime import datetime, timedelta, timezone
from decimal import Decimal

from jose import jwt

from bookhub.models import Log, Order, OrderItem, Payment, User


def register(client, email="new@example.com", password="pa55word"):
    return client.post("/users/register", json={
        "full_name": "New Reader",
        "email": email,
        "password": password,
        "phone": "555-0100",
    })


def test_register_stores_hash_not_password(client, session_factory):
    response = register(client)

    assert response.status_code == 201
    assert response.json()["message"] == "User registered successfully"

    db = session_factory()
    user = db.query(User).filter_by(email="new@example.com").one()
    assert user.password_hash != "pa55word"
    assert user.password_hash.startswith("$2")
    assert user.phone == "555-0100"
    assert user.address is None
    db.close()


def test_register_duplicate_email(client):
    register(client)

    response = register(client)

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Email already registered"}


def test_register_missing_fields(client):
    response = client.post("/users/register", json={"email": "x@example.com"})

    assert response.status_code == 400
    assert response.json()["success"] is False


def test_login_returns_token_and_user(client, settings):
    register(client)

    response = client.post("/users/login", json={"email": "new@example.com", "password": "pa55word"})

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["email"] == "new@example.com"
    assert "password_hash" not in body["user"]
    claims = jwt.decode(body["token"], settings.jwt_secret, algorithms=["HS256"])
    assert int(claims["sub"]) == body["user"]["id"]


def test_login_failures_are_indistinguishable(client):
    register(client)

    wrong_password = client.post("/users/login", json={"email": "new@example.com", "password": "nope"})
    unknown_email = client.post("/users/login", json={"email": "ghost@example.com", "password": "pa55word"})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"success": False, "message": "Invalid credentials"}


def test_profile_requires_token(client):
    missing = client.get("/users/profile")
    malformed = client.get("/users/profile", headers={"Authorization": "Token abc"})
    garbage = client.get("/users/profile", headers={"Authorization": "Bearer not.a.jwt"})

    for response in (missing, malformed, garbage):
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid or missing token"}


def test_expired_token_rejected(client, add_user, settings):
    user_id = add_user()
    past = datetime.now(timezone.utc) - timedelta(days=1)
    token = jwt.encode({"sub": str(user_id), "exp": past}, settings.jwt_secret, algorithm="HS256")

    response = client.get("/users/profile", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_token_signed_with_other_secret_rejected(client, add_user):
    user_id = add_user()
    token = jwt.encode({"sub": str(user_id)}, "someone-else", algorithm="HS256")

    response = client.get("/users/profile", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_profile(client, add_user, auth_headers):
    user_id = add_user(full_name="Ada Reader")

    response = client.get("/users/profile", headers=auth_headers(user_id))

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == user_id
    assert body["full_name"] == "Ada Reader"
    assert "password_hash" not in body


def test_change_password(client, add_user, auth_headers):
    user_id = add_user(password="old-pass")
    headers = auth_headers(user_id)

    bad = client.put("/users/change-password", headers=headers,
                     json={"oldPassword": "wrong", "newPassword": "new-pass"})
    assert bad.status_code == 401
    assert bad.json()["message"] == "Incorrect old password"

    good = client.put("/users/change-password", headers=headers,
                      json={"oldPassword": "old-pass", "newPassword": "new-pass"})
    assert good.status_code == 200

    login = client.post("/users/login", json={"email": "reader@example.com", "password": "new-pass"})
    assert login.status_code == 200


def _seed_order(session_factory, user_id, book_id, status="pending"):
    db = session_factory()
    order = Order(user_id=user_id, total_amount=Decimal("20.00"), status=status)
    db.add(order)
    db.flush()
    db.add(OrderItem(order_id=order.id, book_id=book_id, quantity=2, price=Decimal("10.00")))
    db.add(Payment(user_id=user_id, order_id=order.id, amount=Decimal("20.00"), method="card",
                   status="completed" if status == "paid" else "pending", transaction_reference=f"ref-{order.id}"))
    db.commit()
    order_id = order.id
    db.close()
    return order_id


def test_orders_lists_only_own_orders(client, add_user, add_book, auth_headers, session_factory):
    me = add_user()
    other = add_user(email="other@example.com")
    book_id = add_book(title="Dune")
    mine = _seed_order(session_factory, me, book_id)
    _seed_order(session_factory, other, book_id)

    response = client.get("/users/orders", headers=auth_headers(me))

    assert response.status_code == 200
    orders = response.json()
    assert [o["id"] for o in orders] == [mine]
    assert orders[0]["total_amount"] == 20.0
    assert orders[0]["payment_status"] == "pending"
    assert orders[0]["items"] == [{"book_id": book_id, "title": "Dune", "quantity": 2, "price": 10.0}]


def test_delete_order(client, add_user, add_book, auth_headers, session_factory):
    me = add_user()
    order_id = _seed_order(session_factory, me, add_book())

    response = client.delete(f"/users/orders/{order_id}", headers=auth_headers(me))

    assert response.status_code == 200
    db = session_factory()
    assert db.get(Order, order_id) is None
    assert db.query(OrderItem).filter_by(order_id=order_id).count() == 0
    assert db.query(Payment).filter_by(order_id=order_id).count() == 0
    assert db.query(Log).filter_by(action="Order Deleted").count() == 1
    db.close()


def test_delete_someone_elses_order(client, add_user, add_book, auth_headers, session_factory):
    me = add_user()
    other = add_user(email="other@example.com")
    order_id = _seed_order(session_factory, other, add_book())

    response = client.delete(f"/users/orders/{order_id}", headers=auth_headers(me))

    assert response.status_code == 404
    assert response.json()["message"] == "Order not found or not yours"


def test_delete_paid_order_refused(client, add_user, add_book, auth_headers, session_factory):
    me = add_user()
    order_id = _seed_order(session_factory, me, add_book(), status="paid")

    response = client.delete(f"/users/orders/{order_id}", headers=auth_headers(me))

    assert response.status_code == 400
    db = session_factory()
    assert db.get(Order, order_id) is not None
    db.close()
