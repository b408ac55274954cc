"""
credgate.services

Service-layer package.

Responsibilities:
- Authentication gate, password rotation state machine, access-denial
  disambiguation and startup seeding.
- Decide outcomes and emit exactly one audit record per decision.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services are pure Python over the credential store protocol and the audit sink,
# so they are testable with in-memory fakes.
