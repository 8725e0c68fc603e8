"""Issue and verify the signed identity assertions accepted as bearer credentials."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import jwt

from ..config import Settings
from ..domain.errors import InvalidAssertionError
from ..domain.identity import IdentityClaims, Role

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ("iss", "sub", "tenant_id", "role", "iat", "exp")


@dataclass(frozen=True, slots=True)
class IssuedToken:
    """Encoded assertion plus its lifetime in seconds, as returned to API consumers."""

    access_token: str
    expires_in: int


class TokenIssuer:
    """Mint and check HS256 JWTs carrying subject, tenant and role.

    The signing secret is loaded once; replacing it invalidates every token
    issued under the previous one.
    """

    def __init__(self, *, secret: str, issuer: str, ttl_seconds: int) -> None:
        if not secret:
            raise ValueError("token signing secret must not be empty")
        if ttl_seconds <= 0:
            raise ValueError("token ttl must be positive")
        self._secret = secret
        self._issuer = issuer
        self._ttl = ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenIssuer":
        return cls(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            ttl_seconds=settings.jwt_ttl_seconds,
        )

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def issue(self, user_id: str, tenant_id: str, role: Role, now: datetime | None = None) -> IssuedToken:
        """Create a signed assertion for ``user_id`` acting in ``tenant_id``.

        Parameters
        ----------
        user_id:
            Identifier placed in the ``sub`` claim.
        tenant_id:
            Tenant the bearer is scoped to; the gateway binds it per request.
        role:
            Role at issuance time.
        now:
            Issuance instant, defaults to the current UTC time.
        """
        issued = int(_timestamp(now))
        expires = issued + self._ttl
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "sub": user_id,
            "tenant_id": tenant_id,
            "role": Role(role).value,
            "iat": issued,
            "exp": expires,
        }
        token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        return IssuedToken(access_token=token, expires_in=self._ttl)

    def verify(self, token: str, now: datetime | None = None) -> IdentityClaims:
        """Return the claims of a valid assertion.

        Raises
        ------
        InvalidAssertionError
            When the signature or issuer does not match, a required claim is
            missing or malformed, or ``now`` is at or past ``exp``.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                options={
                    "require": list(REQUIRED_CLAIMS),
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.PyJWTError as exc:
            raise InvalidAssertionError("invalid token") from exc

        try:
            issued_at = int(payload["iat"])
            expires_at = int(payload["exp"])
            role = Role(payload["role"])
        except (TypeError, ValueError) as exc:
            raise InvalidAssertionError("invalid token") from exc

        subject = payload["sub"]
        tenant_id = payload["tenant_id"]
        if not isinstance(subject, str) or not subject or not isinstance(tenant_id, str) or not tenant_id:
            raise InvalidAssertionError("invalid token")
        if _timestamp(now) >= expires_at:
            raise InvalidAssertionError("token expired")

        return IdentityClaims(
            subject=subject,
            tenant_id=tenant_id,
            role=role,
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        )


def _timestamp(now: datetime | None) -> float:
    return (now or datetime.now(timezone.utc)).timestamp()
