"""
credgate.api.routers.account

Account endpoints: login, logout, change password and the forbidden landing page.

Responsibilities:
- Validate request bodies and map service outcomes to HTTP responses.
- Thread `returnUrl` and `forced` through the change-password round trip.
- Resolve denials through the access-denial disambiguator.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field, model_validator
from starlette.status import (
    HTTP_303_SEE_OTHER,
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_423_LOCKED,
)

from credgate.api.deps import (
    access_disambiguator,
    authentication_gate,
    request_context,
    rotation_service,
)
from credgate.auth.deps import get_principal, optional_principal
from credgate.auth.models import Principal
from credgate.services.access import AccessDecision, AccessDenialDisambiguator, DenialKind
from credgate.services.authentication import AuthenticationGate, AuthStatus
from credgate.services.redirects import parse_forced
from credgate.services.rotation import PasswordRotation

router = APIRouter(prefix="/v1/account", tags=["account"])


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1)
    return_url: str | None = Field(default=None, max_length=2048)


class LoginResponse(BaseModel):
    status: str
    redirect: str | None = None
    forced: bool = False
    errors: dict[str, list[str]] = Field(default_factory=dict)
    error_kind: str | None = None
    access_token: str | None = None
    token_type: str = "bearer"


class ChangePasswordForm(BaseModel):
    return_url: str | None
    forced: bool
    fields: list[str]
    requirements: list[str]


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1)
    confirm_password: str | None = None
    return_url: str | None = Field(default=None, max_length=2048)
    forced: bool = False

    @model_validator(mode="after")
    def _confirm_matches(self) -> ChangePasswordRequest:
        if self.confirm_password is not None and self.confirm_password != self.new_password:
            raise ValueError("The new password and confirmation password do not match.")
        return self


class ChangePasswordResponse(BaseModel):
    result: str
    forced: bool
    redirect: str | None = None
    errors: dict[str, list[str]] = Field(default_factory=dict)
    error_kind: str | None = None
    access_token: str | None = None
    token_type: str = "bearer"


_LOGIN_STATUS_CODES = {
    AuthStatus.invalid_credentials: HTTP_401_UNAUTHORIZED,
    AuthStatus.locked_out: HTTP_423_LOCKED,
}


def decision_response(decision: AccessDecision) -> Response:
    # A rotation redirect must never be rendered as "access denied".
    if decision.kind == DenialKind.rotation_required and decision.redirect:
        return RedirectResponse(decision.redirect, status_code=HTTP_303_SEE_OTHER)
    return JSONResponse(
        status_code=HTTP_403_FORBIDDEN,
        content={
            "detail": "Forbidden",
            "kind": str(decision.kind),
            "path": decision.path,
            "redirect": decision.redirect,
        },
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    gate: AuthenticationGate = Depends(authentication_gate),
) -> LoginResponse:
    outcome = await gate.authenticate(
        body.username,
        body.password,
        body.return_url,
        context=request_context(request),
    )
    if outcome.status in _LOGIN_STATUS_CODES:
        response.status_code = _LOGIN_STATUS_CODES[outcome.status]
    return LoginResponse(
        status=str(outcome.status),
        redirect=outcome.redirect,
        forced=outcome.forced,
        errors=outcome.errors,
        error_kind=str(outcome.error_kind) if outcome.error_kind else None,
        access_token=outcome.access_token,
    )


@router.post("/logout")
async def logout(
    request: Request,
    principal: Principal = Depends(get_principal),
    gate: AuthenticationGate = Depends(authentication_gate),
) -> dict[str, str]:
    redirect = await gate.logout(principal, context=request_context(request, principal))
    return {"redirect": redirect}


@router.get("/change-password", response_model=ChangePasswordForm)
async def change_password_form(
    return_url: str | None = Query(default=None, alias="returnUrl"),
    forced: str | None = Query(default=None),
    principal: Principal = Depends(get_principal),
    rotation: PasswordRotation = Depends(rotation_service),
) -> ChangePasswordForm:
    form = await rotation.start(
        principal.subject, return_path=return_url, forced=parse_forced(forced)
    )
    return ChangePasswordForm(
        return_url=form.return_path,
        forced=form.forced,
        fields=list(form.fields),
        requirements=list(form.requirements),
    )


@router.post("/change-password", response_model=ChangePasswordResponse)
async def change_password(
    request: Request,
    response: Response,
    body: ChangePasswordRequest,
    principal: Principal = Depends(get_principal),
    rotation: PasswordRotation = Depends(rotation_service),
) -> ChangePasswordResponse:
    outcome = await rotation.complete(
        principal.subject,
        body.old_password,
        body.new_password,
        return_path=body.return_url,
        forced=body.forced,
        context=request_context(request, principal),
    )
    if not outcome.succeeded:
        response.status_code = HTTP_400_BAD_REQUEST
    return ChangePasswordResponse(
        result=str(outcome.result),
        forced=outcome.forced,
        redirect=outcome.redirect,
        errors=outcome.errors,
        error_kind=str(outcome.error_kind) if outcome.error_kind else None,
        access_token=outcome.access_token,
    )


@router.get("/forbidden")
async def forbidden(
    request: Request,
    return_url: str | None = Query(default=None, alias="returnUrl"),
    principal: Principal | None = Depends(optional_principal),
    disambiguator: AccessDenialDisambiguator = Depends(access_disambiguator),
) -> Response:
    decision = await disambiguator.check(
        return_url, principal, context=request_context(request, principal)
    )
    return decision_response(decision)


# --- Module Notes -----------------------------------------------------------
# Field errors use "" for form-level messages, mirroring the service outcomes.
