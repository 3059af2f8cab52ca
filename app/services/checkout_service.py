import logging
from typing import Any, Dict, Optional
from pydantic import BaseModel
from app.services.backend_client import BackendClient, BackendError
from app.services.customer_data import AddressData, CustomerData

logger = logging.getLogger("checkout_service")

class CartResult(BaseModel):
    success: bool
    cart_token: Optional[str] = None
    cart: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

class CheckoutResult(BaseModel):
    success: bool
    checkout_url: Optional[str] = None
    session_id: Optional[str] = None
    error: Optional[str] = None

class PaymentResult(BaseModel):
    success: bool
    order: Optional[Dict[str, Any]] = None
    session_id: Optional[str] = None
    error: Optional[str] = None

def build_cart_request(
    session_token: str,
    customer: CustomerData,
    delivery: Optional[AddressData],
    use_same_address: bool,
) -> Dict[str, Any]:
    """
    Request body for /api/cart/create. Empty optional fields are omitted.
    """
    payload: Dict[str, Any] = {
        "session_token": session_token,
        "customer_name": customer.customer_name,
        "customer_email": customer.customer_email,
        "customer_phone": customer.customer_phone,
        "postal_code": customer.postal_code,
        "prefecture": customer.prefecture,
        "city": customer.city,
        "address_line1": customer.address_line1,
        "use_same_address": use_same_address,
    }
    if customer.address_line2:
        payload["address_line2"] = customer.address_line2
    if customer.notes:
        payload["notes"] = customer.notes

    if not use_same_address and delivery:
        payload["delivery_postal_code"] = delivery.postal_code
        payload["delivery_prefecture"] = delivery.prefecture
        payload["delivery_city"] = delivery.city
        payload["delivery_address_line1"] = delivery.address_line1
        if delivery.address_line2:
            payload["delivery_address_line2"] = delivery.address_line2
    return payload

async def create_cart_session(
    client: BackendClient,
    session_token: str,
    customer: CustomerData,
    delivery: Optional[AddressData],
    use_same_address: bool,
) -> CartResult:
    try:
        result = await client.create_cart(build_cart_request(session_token, customer, delivery, use_same_address))
    except BackendError as e:
        logger.error(f"Cart session creation error: {str(e)}")
        return CartResult(success=False, error="カートセッション作成中にエラーが発生しました")

    if result.get("success") and result.get("cart_token"):
        return CartResult(success=True, cart_token=result["cart_token"], cart=result.get("cart"))
    return CartResult(success=False, error=result.get("error") or "カートセッションの作成に失敗しました")

async def get_cart_session(client: BackendClient, cart_token: str) -> CartResult:
    try:
        result = await client.get_cart(cart_token)
    except BackendError as e:
        logger.error(f"Cart session fetch error: {str(e)}")
        return CartResult(success=False, error="カートセッション取得中にエラーが発生しました")

    if result.get("success") and result.get("cart"):
        return CartResult(success=True, cart_token=cart_token, cart=result["cart"])
    return CartResult(success=False, error=result.get("error") or "カートセッションの取得に失敗しました")

async def create_checkout_session(client: BackendClient, cart_token: str) -> CheckoutResult:
    try:
        result = await client.create_checkout(cart_token)
    except BackendError as e:
        logger.error(f"Checkout session creation error: {str(e)}")
        return CheckoutResult(success=False, error="決済セッション作成中にエラーが発生しました")

    if result.get("success") and result.get("checkout_url"):
        return CheckoutResult(
            success=True,
            checkout_url=result["checkout_url"],
            session_id=result.get("session_id"),
        )
    return CheckoutResult(success=False, error=result.get("error") or "決済セッションの作成に失敗しました")

async def process_payment_success(client: BackendClient, session_id: str, cart_token: str) -> PaymentResult:
    try:
        result = await client.complete_payment(session_id, cart_token)
    except BackendError as e:
        logger.error(f"Payment success processing error: {str(e)}")
        return PaymentResult(success=False, error="決済処理中にエラーが発生しました")

    if result.get("success") and result.get("order"):
        return PaymentResult(success=True, order=result["order"], session_id=result.get("session_id"))
    return PaymentResult(success=False, error=result.get("error") or "決済処理に失敗しました")
