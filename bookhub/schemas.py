from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    full_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    phone: Optional[str] = None
    address: Optional[str] = None


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ChangePasswordRequest(BaseModel):
    oldPassword: str = Field(..., min_length=1)
    newPassword: str = Field(..., min_length=1)


class CartItem(BaseModel):
    id: int
    quantity: int = Field(..., gt=0)
    # display-only; the stored catalog values are charged
    title: Optional[str] = None
    price: Optional[float] = None


class CheckoutUser(BaseModel):
    id: Optional[int] = None
    full_name: Optional[str] = None
    email: Optional[str] = None


class CheckoutRequest(BaseModel):
    cartItems: List[CartItem] = []
    paymentMethod: str = "card"
    user: Optional[CheckoutUser] = None


class CorrelationMetadata(BaseModel):
    """Identifiers attached to a checkout session and echoed back in its events."""

    model_config = ConfigDict(populate_by_name=True)

    order_id: int = Field(..., alias="orderId")
    payment_id: int = Field(..., alias="paymentId")
    user_id: int = Field(..., alias="userId")

    def as_gateway_metadata(self) -> dict:
        return {
            "orderId": str(self.order_id),
            "paymentId": str(self.payment_id),
            "userId": str(self.user_id),
        }
