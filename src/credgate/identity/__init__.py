"""
credgate.identity

Credential store boundary.

Responsibilities:
- Define the async credential store contract consumed by the gate, the rotation
  flow and the seeder.
- Provide the SQLAlchemy-backed implementation.
"""

# Package marker.
