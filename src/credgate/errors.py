"""
credgate.errors

Error taxonomy shared by the gate, the rotation flow and the API layer.

Responsibilities:
- Name the expected failure kinds surfaced to callers as field-level messages.
- Define the few exceptions that cross module boundaries.
"""

from __future__ import annotations

import enum
from typing import Any


class ErrorKind(enum.StrEnum):
    # Expected outcomes; surfaced as field errors and audit records, never raised.
    unknown_user = "UNKNOWN_USER"
    bad_credentials = "BAD_CREDENTIALS"
    account_locked = "ACCOUNT_LOCKED"
    policy_violation = "POLICY_VIOLATION"
    same_password_rejected = "SAME_PASSWORD_REJECTED"
    # Infrastructure/configuration failures.
    store_failure = "STORE_FAILURE"
    configuration_missing = "CONFIGURATION_MISSING"


class ConfigurationMissing(Exception):
    """
    Raised at startup when a required setting is empty. Fatal: the app is never built.
    """

    def __init__(self, names: list[str]) -> None:
        self.names = list(names)
        super().__init__(f"missing required settings: {', '.join(self.names)}")


class StoreFailure(Exception):
    """
    The credential store could not complete an operation (database error, etc.).
    """


class AccessDenied(Exception):
    """
    Raised by policy dependencies; the app resolves it through the access-denial
    disambiguator before anything is rendered.
    """

    def __init__(self, path: str, reason: str, principal: Any = None) -> None:
        self.path = path
        self.reason = reason
        # The resolved session principal, when there is one.
        self.principal = principal
        super().__init__(reason)


# --- Module Notes -----------------------------------------------------------
# Keep this module dependency-free: settings, services and the API all import it.
