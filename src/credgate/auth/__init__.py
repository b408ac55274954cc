"""
credgate.auth

Authentication/authorization package.

Responsibilities:
- Session token helpers and validation.
- Password, lockout and role policies.
- FastAPI auth dependencies (Principal + policy checks).
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Login and rotation logic live in `credgate.services`; this package only deals
# with who the caller is and what they may access.
