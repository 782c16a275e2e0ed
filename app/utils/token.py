from datetime import timedelta
from typing import Optional

from jose import JWTError, jwt

from app.config import settings
from app.utils.clock import utcnow


def create_access_token(user_id: int, role: str = "user", expires_delta: Optional[timedelta] = None) -> str:
    """Tokens are issued by the storefront login; this mirrors its claims."""
    expire = utcnow() + (
        expires_delta
        if expires_delta
        else timedelta(minutes=settings.access_token_expire_minutes)
    )

    return jwt.encode(
        {"sub": str(user_id), "role": role, "exp": expire},
        settings.secret_key,
        algorithm=settings.algorithm,
    )


def decode_access_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
