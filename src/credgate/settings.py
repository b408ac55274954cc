"""
credgate.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (JWT secret, initial admin password).
- Fail fast at startup when required bindings are missing.
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from credgate.errors import ConfigurationMissing


class Settings(BaseSettings):
    """
    Enterprise pattern:
    - Strict env-driven configuration
    - Defaults safe for local dev
    - Single settings object injected across layers
    """

    model_config = SettingsConfigDict(env_prefix="CREDGATE_", case_sensitive=False)

    # Environment controls toggle behavior like auto-init DB tables and seeding.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "credgate"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Session tokens
    jwt_alg: str = "HS256"
    jwt_issuer: str = "credgate"
    jwt_audience: str = "credgate-api"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)
    session_ttl_minutes: int = 60

    # Persistence. Audit events live in their own database so an audit write never
    # waits on a business transaction; an empty value shares `database_url`.
    database_url: str = "sqlite+aiosqlite:///./credgate.db"
    audit_database_url: str = "sqlite+aiosqlite:///./credgate-audit.db"

    # Role/policy bindings
    admin_role: str = "Administrator"
    database_role: str = "DatabaseEditor"
    admin_policy: str = "AdministratorOnly"
    database_policy: str = "DatabaseEditorOnly"

    # Initial identity created by the seeder
    initial_user: str = "admin"
    initial_password: str = Field(default="Adm1n!pass", repr=False)
    seed_on_startup: bool = True

    # Password composition (enforced by the credential store)
    password_min_length: int = 8
    password_digit_required: bool = True
    password_lowercase_required: bool = True
    password_uppercase_required: bool = True
    password_symbol_required: bool = True

    # Lockout
    password_lockout_enabled: bool = True
    password_max_failures: int = 5
    password_failure_lockout_hours: int = 0
    password_failure_lockout_mins: int = 15

    # Rotation
    password_max_lifetime_days: int = 90
    password_validity_claim: str = "PasswordValid"

    # Opaque redirect targets
    login_page: str = "/account/login"
    access_denied_page: str = "/account/forbidden"
    default_error_page: str = "/error"
    change_password_page: str = "/account/change-password"
    home_page: str = "/"

    # Audit events from sources outside this namespace are dropped.
    audit_namespace: str = "credgate"

    @property
    def effective_audit_database_url(self) -> str:
        return self.audit_database_url or self.database_url

    def require_startup(self) -> None:
        """
        Validate the bindings the service cannot run without.
        Raises `ConfigurationMissing`, which aborts startup.
        """

        required = {
            "admin_role": self.admin_role,
            "admin_policy": self.admin_policy,
            "database_role": self.database_role,
            "database_policy": self.database_policy,
            "password_validity_claim": self.password_validity_claim,
            "login_page": self.login_page,
            "access_denied_page": self.access_denied_page,
            "default_error_page": self.default_error_page,
            "change_password_page": self.change_password_page,
            "audit_namespace": self.audit_namespace,
        }
        if self.seed_on_startup:
            required["initial_user"] = self.initial_user
            required["initial_password"] = self.initial_password

        missing = sorted(name for name, value in required.items() if not value.strip())
        if missing:
            raise ConfigurationMissing(missing)
        if self.password_max_failures < 1:
            raise ConfigurationMissing(["password_max_failures"])


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Policy objects (password/lockout) are derived from these fields once, in
# `credgate.auth.policy`, and treated as immutable for the process lifetime.
