"""
Access token issuing and validation.

Access tokens are HS256-signed JWTs carrying the user id and role. The
server keeps no session state: a token is valid when its signature checks
out against the process signing secret and it has not expired.

Validation reports one of three failure kinds:
- malformed: not a JWT, wrong algorithm, wrong issuer/type, bad claims
- signature_invalid: well-formed but signed with another key or tampered
- expired: correctly signed but past its `exp`

Refresh and reset tokens are opaque random strings; only their SHA-256
digest is ever stored.
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jws, jwt
from jose.exceptions import JWSError
from pydantic import BaseModel, ValidationError as PydanticValidationError

from authcore.core.config import Settings
from authcore.models.user import UserRole

JWT_ALGORITHM = "HS256"
TOKEN_TYPE_ACCESS = "access"

REFRESH_TOKEN_BYTES = 32  # 256 bits
RESET_TOKEN_BYTES = 16


class TokenErrorKind(str, Enum):
    MALFORMED = "malformed"
    SIGNATURE_INVALID = "signature_invalid"
    EXPIRED = "expired"


class TokenError(Exception):
    """Raised when an access token cannot be accepted."""

    messages = {
        TokenErrorKind.MALFORMED: "Token is malformed",
        TokenErrorKind.SIGNATURE_INVALID: "Token signature is invalid",
        TokenErrorKind.EXPIRED: "Token has expired",
    }

    def __init__(self, kind: TokenErrorKind):
        self.kind = kind
        super().__init__(self.messages[kind])


class TokenClaims(BaseModel):
    """JWT token payload structure."""
    sub: str                          # User ID (subject)
    role: UserRole                    # User role
    iat: datetime                     # Issued at
    exp: datetime                     # Expiration
    iss: str                          # Issuer
    type: str = TOKEN_TYPE_ACCESS     # Always "access"
    jti: Optional[str] = None         # Unique token id

    @property
    def user_id(self) -> int:
        return int(self.sub)


def issue_token(
    user_id: int,
    role: UserRole,
    secret: str,
    ttl: timedelta,
    issuer: str,
) -> str:
    """
    Create a signed access token.

    Args:
        user_id: The user's database ID
        role: User's role for RBAC
        secret: HMAC signing secret
        ttl: Lifetime; a negative value yields an already-expired token
        issuer: Value of the `iss` claim

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": UserRole(role).value,
        "type": TOKEN_TYPE_ACCESS,
        "iat": now,
        "exp": now + ttl,
        "iss": issuer,
        "jti": secrets.token_urlsafe(16),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def validate_token(token: str, secret: str, issuer: str) -> TokenClaims:
    """
    Verify and decode an access token.

    The signature is checked before any claim, so an expired token signed
    with the wrong key is reported as signature_invalid.

    Raises:
        TokenError: With the failure kind
    """
    if not token or token.count(".") != 2:
        raise TokenError(TokenErrorKind.MALFORMED)

    # Structure first: once header and claims decode and the algorithm is
    # ours, any verification failure is down to the signature.
    try:
        header = jwt.get_unverified_header(token)
        jwt.get_unverified_claims(token)
    except JWTError:
        raise TokenError(TokenErrorKind.MALFORMED)
    if header.get("alg") != JWT_ALGORITHM:
        raise TokenError(TokenErrorKind.MALFORMED)

    try:
        jws.verify(token, secret, algorithms=[JWT_ALGORITHM])
    except JWSError:
        raise TokenError(TokenErrorKind.SIGNATURE_INVALID)

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            issuer=issuer,
            options={
                "verify_aud": False,
                "require_exp": True,
                "require_iat": True,
                "require_sub": True,
                "require_iss": True,
            },
        )
    except ExpiredSignatureError:
        raise TokenError(TokenErrorKind.EXPIRED)
    except JWTError:
        raise TokenError(TokenErrorKind.MALFORMED)

    if payload.get("type") != TOKEN_TYPE_ACCESS:
        raise TokenError(TokenErrorKind.MALFORMED)

    if not str(payload.get("sub", "")).isdigit():
        raise TokenError(TokenErrorKind.MALFORMED)

    try:
        claims = TokenClaims(
            sub=payload["sub"],
            role=payload.get("role"),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iss=payload["iss"],
            type=payload["type"],
            jti=payload.get("jti"),
        )
    except (KeyError, TypeError, ValueError, PydanticValidationError):
        raise TokenError(TokenErrorKind.MALFORMED)

    return claims


class TokenIssuer:
    """Access token issuer bound to the process signing configuration."""

    def __init__(self, secret: str, ttl: timedelta, issuer: str):
        if not secret:
            raise ValueError("signing secret must not be empty")
        self._secret = secret
        self.ttl = ttl
        self.issuer = issuer

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenIssuer":
        return cls(
            secret=settings.jwt_secret,
            ttl=settings.access_token_ttl,
            issuer=settings.token_issuer,
        )

    @property
    def expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return int(self.ttl.total_seconds())

    def issue(self, user_id: int, role: UserRole) -> str:
        return issue_token(user_id, role, self._secret, self.ttl, self.issuer)

    def validate(self, token: str) -> TokenClaims:
        return validate_token(token, self._secret, self.issuer)


def generate_opaque_token(nbytes: int = REFRESH_TOKEN_BYTES) -> str:
    """Random hex token for refresh/reset flows."""
    return secrets.token_hex(nbytes)


def hash_opaque_token(token: str) -> str:
    """SHA-256 digest used to store opaque tokens (fine for tokens, not passwords)."""
    return hashlib.sha256(token.encode()).hexdigest()
