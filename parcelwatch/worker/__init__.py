"""
parcelwatch worker

Background reconciliation:
- Interval scheduler driving reconciliation cycles
- Manual task endpoints (cycle, single-session check, pending queue check)
"""

__all__ = []
