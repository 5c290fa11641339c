"""
Bearer-token guard and PIN hashing.

Tokens are compact JWTs (``header.payload.signature``) signed with
HMAC-SHA256 using ``settings.secret_key``; payloads carry an ``exp``
claim as a UNIX timestamp.  Issuing tokens to end users (login) is not
part of this service; ``create_access_token`` exists for operators and
tests.

PINs are stored as Argon2id hashes in PHC format (``$argon2id$v=19$...``).
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import time
from typing import Any, Dict, Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from farmhub.config import settings

logger = logging.getLogger(__name__)


def _b64_url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def create_access_token(claims: Dict[str, Any], expires_in: Optional[int] = None) -> str:
    """Sign ``claims`` plus an ``exp`` claim ``expires_in`` seconds from now."""
    payload = dict(claims)
    payload["exp"] = int(time.time()) + (expires_in or settings.access_token_expire_minutes * 60)
    header = {"alg": "HS256", "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    signature_b64 = _b64_url_encode(_sign(signing_input, settings.secret_key))
    return f"{header_b64}.{payload_b64}.{signature_b64}"


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the payload of a valid, unexpired token, else None."""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    header_b64, payload_b64, signature_b64 = parts
    try:
        expected = _sign(f"{header_b64}.{payload_b64}".encode("utf-8"), settings.secret_key)
        if not hmac.compare_digest(expected, _b64_url_decode(signature_b64)):
            return None
        data = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        # binascii.Error and JSONDecodeError are ValueErrors
        return None
    if not isinstance(data, dict):
        return None
    exp = data.get("exp")
    if not isinstance(exp, (int, float)) or exp < time.time():
        return None
    return data


bearer_scheme = HTTPBearer(auto_error=False)


def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """Dependency guarding every resource route; returns the token claims."""
    if credentials is None:
        logger.warning("Rejected request without bearer credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    claims = decode_access_token(credentials.credentials)
    if claims is None:
        logger.warning("Rejected request with invalid or expired token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims


_pin_hasher = PasswordHasher()


def hash_pin(pin: str) -> str:
    return _pin_hasher.hash(pin)


def verify_pin(pin: str, hashed: str) -> bool:
    try:
        return _pin_hasher.verify(hashed, pin)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False
