"""
credgate.api.routers.users

Identity administration (administrators only).

Responsibilities:
- List identities with their role names, ordered by username.
- Create identities with an initial role; the new identity must change its
  password on first login.
- Audit every creation attempt with the new username as target.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, model_validator
from starlette.status import HTTP_201_CREATED, HTTP_400_BAD_REQUEST

from credgate.api.deps import audit_registry, credential_store, request_context
from credgate.audit.events import AuditLevel, EventCode
from credgate.audit.sink import AuditSinkRegistry
from credgate.auth.deps import require_policy
from credgate.auth.models import Principal
from credgate.identity.store import CredentialStore
from credgate.settings import Settings, get_settings

router = APIRouter(prefix="/v1/users", tags=["users"])


class CreateUserRequest(BaseModel):
    username: str = Field(min_length=1, max_length=50, pattern=r"^[A-Za-z0-9\-._@+]+$")
    new_password: str = Field(min_length=1)
    confirm_password: str | None = None
    role: str | None = Field(default=None, max_length=256)

    @model_validator(mode="after")
    def _confirm_matches(self) -> CreateUserRequest:
        if self.confirm_password is not None and self.confirm_password != self.new_password:
            raise ValueError("The new password and confirmation password do not match.")
        return self


class CreateUserResponse(BaseModel):
    username: str
    roles: list[str]


class UserOut(BaseModel):
    username: str
    roles: list[str]


@router.get("", response_model=list[UserOut])
async def list_users(
    _: Principal = Depends(require_policy("admin_policy")),
    store: CredentialStore = Depends(credential_store),
) -> list[UserOut]:
    # Ordered by username; role names sorted per user.
    return [
        UserOut(username=identity.username, roles=sorted(await store.get_roles(identity)))
        for identity in await store.list_identities()
    ]


@router.post("", response_model=CreateUserResponse, status_code=HTTP_201_CREATED)
async def create_user(
    request: Request,
    body: CreateUserRequest,
    principal: Principal = Depends(require_policy("admin_policy")),
    store: CredentialStore = Depends(credential_store),
    audit: AuditSinkRegistry = Depends(audit_registry),
    settings: Settings = Depends(get_settings),
) -> CreateUserResponse:
    sink = audit.get(__name__)
    ctx = request_context(request, principal)
    params = {"U": body.username}

    try:
        result = await store.create_identity(
            body.username,
            body.new_password,
            email_confirmed=True,
            lockout_enabled=settings.password_lockout_enabled,
        )
        if result.succeeded and body.role:
            identity = await store.find_by_name(body.username)
            if identity is not None:
                result = await store.add_to_role(identity, body.role)
    except Exception as e:
        await sink.record(
            AuditLevel.error,
            EventCode.user_add_fail,
            "Exception occurred creating user {U}",
            params,
            exception=e,
            context=ctx,
        )
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail=[str(e)]) from e

    if not result.succeeded:
        await sink.record(
            AuditLevel.warning,
            EventCode.user_add_fail,
            "Failed to create user {U} ({m})",
            {**params, "m": result.errors[0].description},
            context=ctx,
        )
        raise HTTPException(
            status_code=HTTP_400_BAD_REQUEST,
            detail=[e.description for e in result.errors],
        )

    await sink.record(
        AuditLevel.information, EventCode.user_add_ok, "Created new user {U}", params, context=ctx
    )
    return CreateUserResponse(username=body.username, roles=[body.role] if body.role else [])
