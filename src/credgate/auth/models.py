"""
credgate.auth.models

Auth domain models.

Responsibilities:
- Define the authenticated session identity (`Principal`) injected into endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated caller identity, as carried by the session token.
    """

    subject: str
    roles: frozenset[str]
    # True when the session carries the password validity claim.
    password_valid: bool = False

    def in_role(self, role: str) -> bool:
        return role in self.roles


# --- Module Notes -----------------------------------------------------------
# Keep this model minimal; it is used across API and services.
