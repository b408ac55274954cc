"""
credgate.audit

Security audit trail.

Responsibilities:
- Fixed event-code taxonomy and severity levels.
- A failure-tolerant sink that correlates actor/target/path per event.
- Writers that persist one record per unit of work.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The sink never raises into business code; failures go to the structlog side channel.
