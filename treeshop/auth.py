import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import ADMIN_JWT_ALGORITHM, ADMIN_JWT_SECRET

logger = logging.getLogger(__name__)

security = HTTPBearer()


@dataclass(frozen=True)
class AdminIdentity:
    uid: str
    email: Optional[str] = None


def create_admin_token(
    uid: str,
    email: Optional[str] = None,
    secret: Optional[str] = None,
    expires_in: timedelta = timedelta(hours=12),
) -> str:
    """Mint an admin bearer token (dashboard login and tests)"""
    secret = secret or ADMIN_JWT_SECRET
    if not secret:
        raise ValueError("ADMIN_JWT_SECRET not configured")
    claims = {
        "sub": uid,
        "email": email,
        "role": "admin",
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(claims, secret, algorithm=ADMIN_JWT_ALGORITHM)


def verify_admin_token(token: str, secret: Optional[str] = None) -> AdminIdentity:
    """Verify an admin bearer token and return the identity it carries"""
    secret = secret or ADMIN_JWT_SECRET
    if not secret:
        logger.error("❌ ADMIN_JWT_SECRET not configured")
        raise HTTPException(status_code=500, detail="Admin auth not configured")

    try:
        claims = jwt.decode(token, secret, algorithms=[ADMIN_JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"🚫 Admin token rejected: {type(e).__name__}")
        raise HTTPException(status_code=401, detail="Invalid authentication token") from e

    if claims.get("role") != "admin" or not claims.get("sub"):
        logger.warning("🚫 Token without admin role presented to admin API")
        raise HTTPException(status_code=403, detail="Admin access required")

    return AdminIdentity(uid=str(claims["sub"]), email=claims.get("email"))


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> AdminIdentity:
    admin = verify_admin_token(credentials.credentials)
    logger.debug(f"✅ Admin authenticated: {admin.uid}")
    return admin
