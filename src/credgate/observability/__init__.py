"""
credgate.observability

Observability package.

Responsibilities:
- Structured logging configuration (also the audit sink's failure side channel).
- Request context propagation for consistent log enrichment.
"""

# Package marker.
