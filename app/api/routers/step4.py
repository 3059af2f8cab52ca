import logging
from typing import Optional
from urllib.parse import urlencode
from fastapi import APIRouter, Depends, Query
from app.api.dependencies import get_backend_client, get_flow
from app.api.errors import FlowStateError
from app.api.schemas import PaymentCompleteRequest, PaymentCompleteResponse, ThanksResponse
from app.services.backend_client import BackendClient
from app.services.checkout_service import process_payment_success
from app.services.flow_registry import CheckoutFlow

logger = logging.getLogger("step4")

router = APIRouter(tags=["payment"])

@router.post("/step4/complete", response_model=PaymentCompleteResponse)
async def complete_payment(
    request: PaymentCompleteRequest,
    flow: CheckoutFlow = Depends(get_flow),
    client: BackendClient = Depends(get_backend_client),
):
    """
    Finalize the order after the payment provider redirected back.
    """
    if not request.session_id or not request.cart_token:
        raise FlowStateError("決済情報が見つかりません", back="/")

    result = await process_payment_success(client, request.session_id, request.cart_token)
    if not result.success:
        return PaymentCompleteResponse(success=False, error=result.error)

    await flow.customer.clear()
    order_number = result.order.get("order_number") or result.order.get("id")
    logger.info(f"Order {order_number} completed")
    return PaymentCompleteResponse(
        success=True,
        order=result.order,
        redirect=f"/thanks?{urlencode({'order': order_number})}",
    )

@router.get("/thanks", response_model=ThanksResponse)
async def thanks(order: Optional[str] = Query(None)):
    if not order:
        raise FlowStateError("注文番号が見つかりません", back="/")
    return ThanksResponse(order_number=order)
