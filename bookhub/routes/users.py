from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from bookhub import identity, ledger
from bookhub.database import get_db
from bookhub.errors import Unauthorized
from bookhub.models import User
from bookhub.schemas import ChangePasswordRequest, LoginRequest, RegisterRequest

router = APIRouter(tags=["users"])


@router.post("/register", status_code=201)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    identity.register_user(
        db,
        full_name=request.full_name,
        email=request.email,
        password=request.password,
        phone=request.phone,
        address=request.address,
    )
    return {"success": True, "message": "User registered successfully"}


@router.post("/login")
def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    settings = request.app.state.settings
    if not settings.jwt_secret:
        raise Unauthorized("Authentication is not configured")

    token, user = identity.authenticate(db, body.email, body.password, settings.jwt_secret, settings.jwt_expires_days)
    return {
        "success": True,
        "message": "Login successful",
        "token": token,
        "user": identity.public_user(user),
    }


@router.get("/profile")
def profile(user: User = Depends(identity.get_current_user)):
    data = identity.public_user(user)
    data["created_at"] = user.created_at.isoformat() if user.created_at else None
    return data


@router.get("/orders")
def orders(user: User = Depends(identity.get_current_user), db: Session = Depends(get_db)):
    return [ledger.serialize_order(order) for order in ledger.list_user_orders(db, user.id)]


@router.put("/change-password")
def change_password(body: ChangePasswordRequest,
                    user: User = Depends(identity.get_current_user),
                    db: Session = Depends(get_db)):
    identity.change_password(db, user.id, body.oldPassword, body.newPassword)
    return {"success": True, "message": "Password changed successfully"}


@router.delete("/orders/{order_id}")
def delete_order(order_id: int,
                 user: User = Depends(identity.get_current_user),
                 db: Session = Depends(get_db)):
    ledger.delete_user_order(db, user.id, order_id)
    return {"success": True, "message": "Order deleted successfully"}
