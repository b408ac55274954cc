"""
credgate.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Convert a bearer token into a typed `Principal` (required or optional).
- Enforce named role policies; every policy also requires the validity claim.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.status import HTTP_401_UNAUTHORIZED

from credgate.auth.jwt import (
    VALIDITY_CLAIM_VALUE,
    JwtConfig,
    JwtValidationError,
    decode_and_validate,
)
from credgate.auth.models import Principal
from credgate.auth.policy import role_policies
from credgate.errors import AccessDenied
from credgate.settings import Settings, get_settings

_bearer = HTTPBearer(auto_error=False)


def _principal_from_token(token: str, settings: Settings) -> Principal:
    try:
        # Authn: validate signature and registered claims (iss/aud/exp/sub...).
        payload = decode_and_validate(cfg=JwtConfig.from_settings(settings), token=token)
    except JwtValidationError as e:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}") from e

    subject = str(payload.get("sub", ""))
    roles_raw = payload.get("roles", [])
    if not subject:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid token subject")
    if not isinstance(roles_raw, list):
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid token roles")

    return Principal(
        subject=subject,
        roles=frozenset(str(r) for r in roles_raw),
        password_valid=payload.get(settings.password_validity_claim) == VALIDITY_CLAIM_VALUE,
    )


def get_principal(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> Principal:
    # Authn: require a bearer token.
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    return _principal_from_token(creds.credentials, settings)


def optional_principal(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> Principal | None:
    # Anonymous callers are allowed; a present but invalid token is still rejected.
    if creds is None or not creds.credentials:
        return None
    return _principal_from_token(creds.credentials, settings)


def require_policy(policy_setting: str):
    # `policy_setting` names the Settings field holding the policy name (e.g. "admin_policy").
    def _dep(
        request: Request,
        principal: Principal = Depends(get_principal),
        settings: Settings = Depends(get_settings),
    ) -> Principal:
        policy_name = getattr(settings, policy_setting)
        role = role_policies(settings).get(policy_name)
        if role is None:
            raise AccessDenied(request.url.path, f"unknown policy {policy_name!r}", principal)
        # Authz: role membership AND the password validity claim.
        if not principal.in_role(role):
            raise AccessDenied(request.url.path, "insufficient role", principal)
        if not principal.password_valid:
            raise AccessDenied(request.url.path, "password validity claim missing", principal)
        return principal

    return _dep


# --- Module Notes -----------------------------------------------------------
# `AccessDenied` is not turned into a 403 here: the app's exception handler runs
# the access-denial disambiguator first (rotation redirect vs. true denial).
