from fastapi import APIRouter, Depends, Header, Request
from starlette.concurrency import run_in_threadpool

from bookhub import identity
from bookhub.checkout import CheckoutOrchestrator, get_checkout, get_gateway
from bookhub.errors import Unauthorized, ValidationError
from bookhub.models import User
from bookhub.schemas import CheckoutRequest
from bookhub.stripe_service import StripeGateway
from bookhub.webhook import WebhookReconciler, get_reconciler

router = APIRouter(tags=["payments"])


@router.post("/create-checkout-session")
def create_checkout_session(
    request: CheckoutRequest,
    user: User = Depends(identity.get_current_user),
    orchestrator: CheckoutOrchestrator = Depends(get_checkout),
):
    if request.user and request.user.id is not None and request.user.id != user.id:
        raise Unauthorized("User does not match token")

    data = orchestrator.checkout(user, request.cartItems, request.paymentMethod)
    return {"success": True, "data": data}


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    reconciler: WebhookReconciler = Depends(get_reconciler),
):
    # signature is computed over the raw bytes, never parse the body first
    payload = await request.body()
    # ledger writes and the notification mail block, keep them off the event loop
    return await run_in_threadpool(reconciler.handle, payload, stripe_signature)


@router.get("/verify-session")
def verify_session(session_id: str = None, reconciler: WebhookReconciler = Depends(get_reconciler)):
    if not session_id:
        raise ValidationError("session_id is required")

    session, metadata = reconciler.reconcile_session(session_id)
    return {
        "success": True,
        "session_payment_status": session["payment_status"],
        "order_id": metadata.order_id if metadata else None,
    }


@router.get("/check-session")
def check_session(session_id: str = None, gateway: StripeGateway = Depends(get_gateway)):
    if not session_id:
        raise ValidationError("session_id is required")

    session = gateway.retrieve_session(session_id)
    metadata = session["metadata"]
    return {
        "success": True,
        "session": {
            "id": session["id"],
            "status": session["status"],
            "payment_status": session["payment_status"],
            "metadata": dict(metadata.items()) if metadata else {},
        },
    }
