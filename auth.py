"""
Password hashing, signed auth tokens and the authorization gate.

Tokens are HS256 JWTs carrying only the user id (``sub``) and ``role``. They
travel in the HttpOnly ``authToken`` cookie and expire one hour after issue.
"""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request, Response
from jose import ExpiredSignatureError, JWTError, jwt

from errors import AuthError

logger = logging.getLogger(__name__)

AUTH_COOKIE = "authToken"
TOKEN_LIFETIME = timedelta(hours=1)
ALGORITHM = "HS256"


# Passwords

def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(8)
    return salt + "$" + hashlib.sha256((salt + password).encode()).hexdigest()


def verify_password(password: str, stored: str) -> bool:
    salt, sep, _ = (stored or "").partition("$")
    if not sep:
        return False
    return hmac.compare_digest(hash_password(password, salt), stored)


# Tokens

@dataclass(frozen=True)
class Identity:
    """Claims of an authenticated caller, attached to ``request.state.identity``."""
    user_id: str
    role: str


class TokenService:
    def __init__(self, secret: str, lifetime: timedelta = TOKEN_LIFETIME):
        if not secret:
            raise ValueError("A signing secret is required")
        self._secret = secret
        self.lifetime = lifetime

    def issue(self, identity: Identity, now: Optional[datetime] = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        claims = {
            "sub": identity.user_id,
            "role": identity.role,
            "iat": issued_at,
            "exp": issued_at + self.lifetime,
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Identity:
        """Decode ``token`` or raise AuthError with reason malformed, signature-invalid or expired."""
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            raise AuthError("malformed") from None
        if not isinstance(claims.get("sub"), str) or not isinstance(claims.get("role"), str):
            raise AuthError("malformed")

        try:
            jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            raise AuthError("expired") from None
        except JWTError:
            raise AuthError("signature-invalid") from None
        return Identity(user_id=claims["sub"], role=claims["role"])


def set_auth_cookie(response: Response, token: str, secure: bool = False) -> None:
    response.set_cookie(
        AUTH_COOKIE,
        token,
        max_age=int(TOKEN_LIFETIME.total_seconds()),
        httponly=True,
        samesite="lax",
        secure=secure,
    )


def issue_auth_cookie(request: Request, response: Response, user: dict) -> None:
    identity = Identity(user_id=str(user["_id"]), role=user.get("role", ""))
    token = request.app.state.tokens.issue(identity)
    set_auth_cookie(response, token, secure=request.app.state.settings.cookie_secure)


# Gate

def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def require_identity(request: Request, tokens: TokenService = Depends(get_token_service)) -> Identity:
    token = request.cookies.get(AUTH_COOKIE)
    if not token:
        logger.info("Rejected %s %s: no auth cookie", request.method, request.url.path)
        raise AuthError("missing")
    try:
        identity = tokens.verify(token)
    except AuthError as exc:
        logger.info("Rejected %s %s: %s token", request.method, request.url.path, exc.reason)
        raise
    request.state.identity = identity
    return identity
