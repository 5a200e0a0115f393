"""Pure functions for signing access tokens and object URLs.

No classes, no state: encode, decode, sign, verify. Access tokens are compact
HS256 JWTs; object URL signatures are a bare HMAC over the URL's fields.
"""

import hashlib
import hmac
import base64
import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

_ISSUER = "filevault"


@dataclass(frozen=True)
class TokenPayload:
    """Decoded access token. Immutable."""
    sub: str
    email: str
    exp: datetime


def create_token(
    subject: str,
    email: str,
    secret: str,
    algorithm: str = "HS256",
    expires_hours: int = 24,
) -> str:
    """Create a signed access token for user *subject*.

    Raises:
        ValueError: for any algorithm other than HS256.
    """
    if algorithm != "HS256":
        raise ValueError(f"Unsupported algorithm: {algorithm}")

    now = time.time()
    payload = {
        "sub": subject,
        "email": email,
        "iat": int(now),
        "exp": int(now + expires_hours * 3600),
        "iss": _ISSUER,
    }

    header = {"alg": "HS256", "typ": "JWT"}
    segments = [
        _b64encode(json.dumps(header).encode()),
        _b64encode(json.dumps(payload).encode()),
    ]
    signing_input = b".".join(segments)
    signature = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
    segments.append(_b64encode(signature))
    return b".".join(segments).decode()


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[TokenPayload]:
    """Decode and validate an access token.

    Returns ``None`` on any validation failure (bad signature, expired, wrong
    issuer, malformed) rather than raising; callers decide what absence means.
    """
    if algorithm != "HS256":
        return None
    try:
        parts = token.encode().split(b".")
        if len(parts) != 3:
            return None

        signing_input = parts[0] + b"." + parts[1]
        expected_sig = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
        actual_sig = _b64decode(parts[2])

        if not hmac.compare_digest(expected_sig, actual_sig):
            return None

        payload = json.loads(_b64decode(parts[1]))
        if payload.get("iss") != _ISSUER:
            return None

        exp = payload.get("exp", 0)
        if time.time() > exp:
            return None

        return TokenPayload(
            sub=payload.get("sub", ""),
            email=payload.get("email", ""),
            exp=datetime.fromtimestamp(exp, tz=timezone.utc),
        )
    except (json.JSONDecodeError, KeyError, ValueError, IndexError, TypeError):
        return None


def sign_value(value: str, secret: str) -> str:
    """URL-safe HMAC-SHA256 signature of *value*."""
    digest = hmac.new(secret.encode(), value.encode(), hashlib.sha256).digest()
    return _b64encode(digest).decode()


def verify_signature(value: str, signature: str, secret: str) -> bool:
    return hmac.compare_digest(sign_value(value, secret).encode(), signature.encode())


# --- base64url helpers (no padding, URL-safe) ---

def _b64encode(data: bytes) -> bytes:
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64decode(data: bytes) -> bytes:
    padding = 4 - len(data) % 4
    if padding != 4:
        data += b"=" * padding
    return base64.urlsafe_b64decode(data)
