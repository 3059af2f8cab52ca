from typing import Optional
from urllib.parse import urlencode
from fastapi import APIRouter, Depends, Query
from app.api.dependencies import get_backend_client
from app.api.errors import FlowStateError
from app.api.schemas import CartSummaryResponse, CheckoutRequest, CheckoutResponse
from app.services.backend_client import BackendClient
from app.services.checkout_service import create_checkout_session, get_cart_session

router = APIRouter(prefix="/step3", tags=["confirmation"])

@router.get("", response_model=CartSummaryResponse)
async def get_cart_summary(
    cart: Optional[str] = Query(None),
    client: BackendClient = Depends(get_backend_client),
):
    """
    Order summary for review. The back link returns to step 2 with the
    upload session token the cart was created from.
    """
    if not cart:
        raise FlowStateError("カート情報が見つかりません", back="/")

    result = await get_cart_session(client, cart)
    if not result.success:
        return CartSummaryResponse(success=False, cart_token=cart, error=result.error, back="/")

    session_token = (result.cart.get("upload_session") or {}).get("token")
    back = f"/step2?{urlencode({'token': session_token})}" if session_token else "/step2"
    return CartSummaryResponse(success=True, cart_token=cart, cart=result.cart, back=back)

@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    request: CheckoutRequest,
    client: BackendClient = Depends(get_backend_client),
):
    """
    Create the payment session; the caller sends the visitor to `checkout_url`.
    """
    result = await create_checkout_session(client, request.cart_token)
    return CheckoutResponse(**result.model_dump())
