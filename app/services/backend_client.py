import logging
import httpx
from typing import Any, Dict, List, Optional, Tuple
from app.core.config import settings

logger = logging.getLogger("backend_client")

# (field name, (filename, content, content type))
MultipartFile = Tuple[str, Tuple[str, bytes, str]]

class BackendError(Exception):
    """
    Raised for non-2xx responses, transport failures and unparsable bodies.
    """

class BackendClient:
    """
    Thin async client for the backend API (images, cart, payment).

    Every method returns the decoded JSON body; callers decide what counts
    as success from its `success` flag.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            transport=transport,
            timeout=timeout or settings.BACKEND_TIMEOUT_SECONDS,
            headers={
                "Accept": "application/json",
                "X-Requested-With": "XMLHttpRequest",
            },
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, endpoint, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"API call failed to {self.base_url}{endpoint}: {str(e)}")
            raise BackendError(str(e)) from e

        if response.is_error:
            logger.error(f"API call failed to {self.base_url}{endpoint}: {response.status_code}")
            raise BackendError(f"API call failed: {response.status_code} {response.reason_phrase}")

        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"Invalid JSON response from {endpoint}") from e

    # Images

    async def upload_images(self, files: List[MultipartFile], existing_token: Optional[str] = None) -> Dict[str, Any]:
        data = {"existing_token": existing_token} if existing_token else None
        return await self._request("POST", "/api/images/upload", files=files, data=data)

    async def get_session(self, token: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/images/session/{token}")

    async def delete_session(self, token: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/api/images/session/{token}")

    async def delete_image(self, token: str, filename: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/api/images/file/{token}/{filename}")

    # Cart and payment

    async def create_cart(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/api/cart/create", json=payload)

    async def get_cart(self, cart_token: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/cart/{cart_token}")

    async def create_checkout(self, cart_token: str) -> Dict[str, Any]:
        return await self._request("POST", "/api/payment/checkout/create", json={"cart_token": cart_token})

    async def complete_payment(self, session_id: str, cart_token: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/payment/success",
            json={"session_id": session_id, "cart_token": cart_token},
        )

def public_image_url(token: str, stored_filename: str) -> str:
    """
    Browser-reachable URL of a stored session image.
    """
    return f"{settings.PUBLIC_API_BASE_URL.rstrip('/')}/api/images/file/{token}/{stored_filename}"
