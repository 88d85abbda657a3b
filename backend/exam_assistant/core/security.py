from datetime import datetime, timedelta, timezone
import uuid

from jose import jwt, JWTError
from pydantic import BaseModel

from exam_assistant.core.config import get_settings

settings = get_settings()


class TokenPayload(BaseModel):
    sub: str
    exp: datetime
    type: str  # only "access" tokens are issued here


def create_access_token(user_id: uuid.UUID, expires_minutes: int | None = None) -> str:
    """Create an access token for a user."""
    minutes = expires_minutes or settings.access_token_expire_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload = {
        "sub": str(user_id),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def verify_token(token: str, token_type: str = "access") -> TokenPayload | None:
    """Verify a JWT token and return the payload."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        if payload.get("type") != token_type:
            return None
        return TokenPayload(**payload)
    except JWTError:
        return None
