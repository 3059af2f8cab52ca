import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt
from app.core.config import settings

def create_flow_token(flow_id: Optional[str] = None, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed flow token whose subject is the checkout flow id.
    A new random flow id is generated when none is given.
    """
    to_encode = {"sub": flow_id or uuid.uuid4().hex}
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.FLOW_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def verify_token(token: str) -> dict:
    """
    Decode and verify a JWT token, returning the payload if valid.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
