"""
Bearer token handling.

Tokens are issued by the external auth provider and carry the user id in
"sub". create_access_token exists for tooling and tests.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from simplr.core.config import settings
from simplr.helpers.dates import utcnow

SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    """Return the subject of a valid token, None otherwise"""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    user_id = payload.get("sub")
    if not user_id:
        return None
    return str(user_id)
