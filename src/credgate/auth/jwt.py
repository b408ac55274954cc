"""
credgate.auth.jwt

Session token issuing and validation helpers.

Responsibilities:
- Issue short-lived session JWTs after login or password change.
- Project the password validity claim into the token under its configured name.
- Decode and validate JWTs with strict claim requirements (iss/aud/exp/iat/sub).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError

from credgate.settings import Settings

VALIDITY_CLAIM_VALUE = "Yes"


@dataclass(frozen=True, slots=True)
class JwtConfig:
    # Algorithm/issuer/audience are enforced during decoding.
    alg: str
    issuer: str
    audience: str
    secret: str

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtConfig:
        return cls(
            alg=settings.jwt_alg,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            secret=settings.jwt_secret,
        )


class JwtValidationError(Exception):
    pass


def issue_token(
    *,
    cfg: JwtConfig,
    subject: str,
    roles: list[str],
    ttl: timedelta = timedelta(hours=1),
    extra_claims: dict[str, str] | None = None,
) -> str:
    now = datetime.now(tz=UTC)
    payload: dict[str, Any] = {
        **(extra_claims or {}),
        "iss": cfg.issuer,
        "aud": cfg.audience,
        "sub": subject,
        "roles": roles,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, cfg.secret, algorithm=cfg.alg)


def issue_session_token(
    settings: Settings,
    *,
    subject: str,
    roles: set[str] | frozenset[str],
    password_valid: bool,
) -> str:
    # The validity claim is only present while the identity's password is not due for rotation.
    claims = {settings.password_validity_claim: VALIDITY_CLAIM_VALUE} if password_valid else {}
    return issue_token(
        cfg=JwtConfig.from_settings(settings),
        subject=subject,
        roles=sorted(roles),
        ttl=timedelta(minutes=settings.session_ttl_minutes),
        extra_claims=claims,
    )


def decode_and_validate(*, cfg: JwtConfig, token: str) -> dict[str, Any]:
    try:
        # jwt.decode enforces signature + registered claims (issuer/audience/exp, etc.).
        return jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            options={
                "require": ["exp", "iat", "iss", "aud", "sub"],
            },
        )
    except InvalidTokenError as e:
        raise JwtValidationError(str(e)) from e


# --- Module Notes -----------------------------------------------------------
# A password change issues a new token immediately, so the restored claim is
# visible to the very next request rather than after the next login.
