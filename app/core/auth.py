import logging
from typing import Optional
from fastapi import Cookie, Response
from jose import JWTError
from app.core.config import settings
from app.core.security import create_flow_token, verify_token

logger = logging.getLogger("flow_auth")

async def get_current_flow(
    response: Response,
    flow_token: Optional[str] = Cookie(None, alias=settings.FLOW_COOKIE_NAME),
) -> str:
    """
    Dependency to verify and extract the checkout flow id from the signed flow cookie.
    A fresh flow is issued when the cookie is missing, expired or tampered with.
    """
    if flow_token:
        try:
            payload = verify_token(flow_token)
            flow_id: Optional[str] = payload.get("sub")
            if flow_id:
                return flow_id
        except JWTError:
            logger.info("Discarding invalid flow cookie")

    token = create_flow_token()
    response.set_cookie(
        key=settings.FLOW_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        max_age=settings.FLOW_TOKEN_EXPIRE_MINUTES * 60,
    )
    return verify_token(token)["sub"]
