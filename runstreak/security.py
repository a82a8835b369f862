# runstreak/security.py
import hashlib
import hmac

from fastapi import Header, HTTPException, status
from .config import settings

def _signature(user_id: str) -> str:
    return hmac.new(settings.SECRET_KEY.encode(), user_id.encode(), hashlib.sha256).hexdigest()

def sign_user_token(user_id: str) -> str:
    return f"{user_id}.{_signature(user_id)}"

def require_user(authorization: str | None = Header(None)) -> str:
    """Resolve the caller's user id from `Authorization: Bearer <user_id>.<hmac>`."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    user_id, _, sig = authorization[len("Bearer "):].rpartition(".")
    if not user_id or not hmac.compare_digest(sig, _signature(user_id)):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user_id
