"""
Access token issuance and verification.

Tokens are HS256 JWTs carrying ``sub`` (the identity, mirrored in ``username``),
``iat`` and ``exp``. Nothing is stored server-side: a token is valid while its
signature matches the configured secret and ``exp`` lies strictly in the future.
"""
from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from jose import JWTError, jwt

from kubegate.config import Settings
from kubegate.exceptions import InternalError

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class TokenFailure(str, Enum):
    """Why a presented credential was refused. Logged, never shown to gated callers."""

    MISSING_HEADER = "missing_header"
    EMPTY_TOKEN = "empty_token"
    MALFORMED = "malformed_token"
    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"


class TokenError(Exception):
    def __init__(self, reason: TokenFailure) -> None:
        super().__init__(reason.value)
        self.reason = reason


def extract_token(authorization: str | None) -> str:
    """Pull the raw token out of an ``Authorization`` header value.

    The ``Bearer`` scheme prefix is optional; without it the whole value is the token.
    """
    if authorization is None:
        raise TokenError(TokenFailure.MISSING_HEADER)
    value = authorization.strip()
    scheme, _, rest = value.partition(" ")
    if scheme.lower() == "bearer":
        value = rest.strip()
    if not value:
        raise TokenError(TokenFailure.EMPTY_TOKEN)
    return value


def constant_time_equals(left: str, right: str) -> bool:
    return secrets.compare_digest(left.encode("utf-8"), right.encode("utf-8"))


class TokenService:
    def __init__(self, settings: Settings, clock: Clock | None = None) -> None:
        self._secret = settings.jwt_secret.get_secret_value()
        self._algorithm = settings.jwt_algorithm
        self._lifetime = timedelta(minutes=settings.access_token_exp_minutes)
        self._admin_username = settings.admin_username
        self._admin_password = settings.admin_password.get_secret_value()
        self._clock = clock or utc_now

    @property
    def lifetime(self) -> timedelta:
        return self._lifetime

    def check_credentials(self, username: str, password: str) -> bool:
        # Both comparisons always run so timing does not reveal which field was wrong.
        user_ok = constant_time_equals(username, self._admin_username)
        password_ok = constant_time_equals(password, self._admin_password)
        return user_ok and password_ok

    def issue(self, identity: str) -> str:
        now = self._clock()
        claims: dict[str, Any] = {
            "sub": identity,
            "username": identity,
            "iat": int(now.timestamp()),
            "exp": int((now + self._lifetime).timestamp()),
        }
        try:
            return jwt.encode(claims, self._secret, algorithm=self._algorithm)
        except JWTError as exc:
            raise InternalError("Failed to generate token") from exc

    def verify(self, token: str) -> str:
        """Return the identity carried by ``token`` or raise :class:`TokenError`."""
        try:
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise TokenError(TokenFailure.MALFORMED) from exc

        try:
            # Expiry is checked below against the injected clock, without leeway.
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_aud": False},
            )
        except JWTError as exc:
            raise TokenError(TokenFailure.BAD_SIGNATURE) from exc

        exp = claims.get("exp")
        identity = claims.get("sub")
        if not isinstance(exp, (int, float)) or isinstance(exp, bool) or not isinstance(identity, str):
            raise TokenError(TokenFailure.MALFORMED)
        if exp <= self._clock().timestamp():
            raise TokenError(TokenFailure.EXPIRED)
        return identity

    def verify_header(self, authorization: str | None) -> str:
        return self.verify(extract_token(authorization))
