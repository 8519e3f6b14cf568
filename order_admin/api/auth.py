from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from order_admin.config import get_settings
from order_admin.models.admin import AdminPrincipal
from order_admin.models.errors import AuthorizationError

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def create_admin_token(admin_id: int, email: str = "", ttl_minutes: int = 120) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(admin_id),
        "admin_id": admin_id,
        "email": email,
        "role": "admin",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl_minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def require_admin(creds: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> AdminPrincipal:
    """Resolve the bearer token into the admin principal every admin route receives."""
    if creds is None:
        raise AuthorizationError("Missing authorization header")

    settings = get_settings()
    try:
        payload = jwt.decode(creds.credentials, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthorizationError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected admin token: {e}")
        raise AuthorizationError("Invalid token")

    if payload.get("role") != "admin":
        raise AuthorizationError("Access denied. Admin privileges required.", forbidden=True)

    admin_id = payload.get("admin_id")
    if isinstance(admin_id, bool) or not isinstance(admin_id, int) or admin_id <= 0:
        raise AuthorizationError("Token does not identify an admin", forbidden=True)

    return AdminPrincipal(admin_id=admin_id, email=payload.get("email") or "")
