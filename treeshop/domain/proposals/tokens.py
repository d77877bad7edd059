"""
Approval token manager

Approval tokens are compact HS256 JWS strings (header.payload.signature,
base64url) carrying {pid, v, exp, jti}. Verification needs only the server
secret. The manager is stateless: single-use tracking lives on the proposal
record, and only hash_unique_id(jti) is ever persisted.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError
from jose import jwt as jose_jwt
from pydantic import ValidationError

from .schemas import ApproveTokenClaims, IssuedToken

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ("pid", "v", "exp", "jti")


class ProposalTokenManager:
    def __init__(self, secret: str, default_ttl: timedelta = timedelta(days=14)):
        if not secret:
            raise ValueError("Approval token secret is required")
        self._secret = secret
        self.default_ttl = default_ttl

    def issue(
        self, proposal_id: str, document_version: int, ttl: Optional[timedelta] = None
    ) -> IssuedToken:
        """Mint a signed approval token for one proposal version"""
        unique_id = secrets.token_urlsafe(24)
        expires_at = datetime.now(timezone.utc) + (ttl if ttl is not None else self.default_ttl)

        claims = {
            "pid": proposal_id,
            "v": int(document_version),
            "exp": int(expires_at.timestamp()),
            "jti": unique_id,
        }
        token = jose_jwt.encode(claims, self._secret, algorithm=ALGORITHM)
        return IssuedToken(token=token, unique_id=unique_id, expires_at=expires_at)

    def verify(self, token: Optional[str]) -> Optional[ApproveTokenClaims]:
        """
        Return the claims of a valid token, else None.

        Malformed, forged and expired tokens are indistinguishable to the caller.
        """
        if not token or not isinstance(token, str) or token.count(".") != 2:
            return None

        try:
            payload = jose_jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                options={"require_exp": True, "require_jti": True},
            )
        except JWTError as e:
            logger.warning(f"🚫 Approval token rejected: {type(e).__name__}")
            return None

        if any(claim not in payload for claim in REQUIRED_CLAIMS):
            logger.warning("🚫 Approval token rejected: missing claims")
            return None
        if not isinstance(payload["v"], int) or isinstance(payload["v"], bool):
            logger.warning("🚫 Approval token rejected: bad version claim")
            return None

        try:
            return ApproveTokenClaims(
                pid=str(payload["pid"]),
                v=payload["v"],
                exp=int(payload["exp"]),
                jti=str(payload["jti"]),
            )
        except (ValidationError, TypeError, ValueError):
            logger.warning("🚫 Approval token rejected: malformed claims")
            return None

    def verify_for(self, token: Optional[str], proposal_id: str) -> Optional[ApproveTokenClaims]:
        """verify() plus the binding check against the proposal id the caller supplied"""
        claims = self.verify(token)
        if claims is None or claims.pid != proposal_id:
            return None
        return claims

    @staticmethod
    def hash_unique_id(unique_id: str) -> str:
        """One-way SHA-256 of the token's jti - the only token-derived value stored"""
        return hashlib.sha256(unique_id.encode("utf-8")).hexdigest()
