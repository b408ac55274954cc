"""
credgate.auth.policy

Immutable password, lockout and role policies.

Responsibilities:
- Build policy objects once from `Settings`.
- Describe password composition rules and list violations for a candidate password.
- Map authorization policy names to the role they require.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from credgate.settings import Settings


@dataclass(frozen=True, slots=True)
class PasswordPolicy:
    min_length: int
    require_digit: bool
    require_lower: bool
    require_upper: bool
    require_symbol: bool
    # 0 disables age-based rotation; a missing validity claim still forces it.
    max_lifetime_days: int

    @classmethod
    def from_settings(cls, settings: Settings) -> PasswordPolicy:
        return cls(
            min_length=settings.password_min_length,
            require_digit=settings.password_digit_required,
            require_lower=settings.password_lowercase_required,
            require_upper=settings.password_uppercase_required,
            require_symbol=settings.password_symbol_required,
            max_lifetime_days=settings.password_max_lifetime_days,
        )

    @property
    def max_lifetime(self) -> timedelta | None:
        if self.max_lifetime_days <= 0:
            return None
        return timedelta(days=self.max_lifetime_days)

    def requirements(self) -> list[str]:
        # Human-readable rules, shown on the change-password form.
        rules = [f"At least {self.min_length} characters"]
        if self.require_digit:
            rules.append("At least one digit ('0'-'9')")
        if self.require_lower:
            rules.append("At least one lowercase letter ('a'-'z')")
        if self.require_upper:
            rules.append("At least one uppercase letter ('A'-'Z')")
        if self.require_symbol:
            rules.append("At least one non alphanumeric character")
        return rules

    def violations(self, password: str) -> list[str]:
        errors: list[str] = []
        if len(password) < self.min_length:
            errors.append(f"Passwords must be at least {self.min_length} characters.")
        if self.require_digit and not any(c.isdigit() for c in password):
            errors.append("Passwords must have at least one digit ('0'-'9').")
        if self.require_lower and not any(c.islower() for c in password):
            errors.append("Passwords must have at least one lowercase ('a'-'z').")
        if self.require_upper and not any(c.isupper() for c in password):
            errors.append("Passwords must have at least one uppercase ('A'-'Z').")
        if self.require_symbol and all(c.isalnum() for c in password):
            errors.append("Passwords must have at least one non alphanumeric character.")
        return errors


@dataclass(frozen=True, slots=True)
class LockoutPolicy:
    enabled: bool
    max_failures: int
    duration: timedelta

    @classmethod
    def from_settings(cls, settings: Settings) -> LockoutPolicy:
        return cls(
            enabled=settings.password_lockout_enabled,
            max_failures=settings.password_max_failures,
            duration=timedelta(
                hours=settings.password_failure_lockout_hours,
                minutes=settings.password_failure_lockout_mins,
            ),
        )


def role_policies(settings: Settings) -> dict[str, str]:
    # Policy name -> required role. Every policy also requires the validity claim.
    return {
        settings.admin_policy: settings.admin_role,
        settings.database_policy: settings.database_role,
    }


# --- Module Notes -----------------------------------------------------------
# The credential store enforces composition and lockout timing with these
# objects; the gate and rotation services only consult them.
