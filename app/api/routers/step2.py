import logging
from typing import Optional
from urllib.parse import urlencode
from fastapi import APIRouter, Depends, Query
from app.api.dependencies import get_backend_client, get_flow
from app.api.errors import FlowStateError
from app.api.schemas import CartCreateRequest, CartCreateResponse, Step2Response
from app.services.backend_client import BackendClient
from app.services.checkout_service import create_cart_session
from app.services.customer_data import PREFECTURES, CustomerData, validate_address, validate_customer_data
from app.services.flow_registry import CheckoutFlow

logger = logging.getLogger("step2")

router = APIRouter(prefix="/step2", tags=["customer-info"])

@router.get("", response_model=Step2Response)
async def get_step2(
    token: Optional[str] = Query(None),
    flow: CheckoutFlow = Depends(get_flow),
):
    """
    Customer information step: the uploaded images and the saved form.
    """
    if not token:
        raise FlowStateError("セッショントークンが指定されていません。", back="/step1")

    if token == flow.active_token:
        await flow.reconciler.refresh()
    else:
        await flow.reconciler.set_active_token(token)
    if flow.reconciler.error:
        raise FlowStateError(flow.reconciler.error, back="/step1")

    return Step2Response(
        token=token,
        images=flow.reconciler.images,
        customer=await flow.customer.load(),
        prefectures=PREFECTURES,
        back=f"/step1?{urlencode({'token': token})}",
    )

@router.get("/customer", response_model=CustomerData)
async def load_customer(flow: CheckoutFlow = Depends(get_flow)):
    return await flow.customer.load()

@router.put("/customer", response_model=CustomerData)
async def save_customer(data: CustomerData, flow: CheckoutFlow = Depends(get_flow)):
    await flow.customer.save(data)
    return data

@router.delete("/customer", response_model=CustomerData)
async def clear_customer(flow: CheckoutFlow = Depends(get_flow)):
    await flow.customer.clear()
    return CustomerData()

@router.post("/cart", response_model=CartCreateResponse)
async def create_cart(
    request: CartCreateRequest,
    flow: CheckoutFlow = Depends(get_flow),
    client: BackendClient = Depends(get_backend_client),
):
    """
    Validate the customer form, then create the cart for the upload session.
    """
    if not request.token:
        raise FlowStateError("セッショントークンが指定されていません。", back="/step1")

    customer_validation = validate_customer_data(request.customer)
    delivery_errors = {}
    if not request.use_same_address:
        if request.delivery is None:
            raise FlowStateError("配送先住所が指定されていません。", back=f"/step2?{urlencode({'token': request.token})}")
        delivery_errors = validate_address(request.delivery).errors

    if not customer_validation.is_valid or delivery_errors:
        return CartCreateResponse(
            success=False,
            error="入力内容に誤りがあります",
            field_errors=customer_validation.errors,
            delivery_errors=delivery_errors,
        )

    await flow.customer.save(request.customer)
    result = await create_cart_session(
        client,
        request.token,
        request.customer,
        request.delivery,
        request.use_same_address,
    )
    if not result.success:
        return CartCreateResponse(success=False, error=result.error or "注文情報の作成に失敗しました")

    logger.info(f"Created cart {result.cart_token} for session {request.token}")
    return CartCreateResponse(
        success=True,
        cart_token=result.cart_token,
        redirect=f"/step3?{urlencode({'cart': result.cart_token})}",
    )
