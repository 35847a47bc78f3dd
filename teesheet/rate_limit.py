"""
Rate limiting configuration using slowapi.

Two tiers:
  • booking – 20/min (flight creation and changes – bounds lock churn)
  • default – 120/min (tee-sheet reads and admin endpoints)

The limiter keys on client IP by default.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=["120/minute"])

# Named rate strings for use in @limiter.limit() decorators
BOOKING = "20/minute"    # flight mutations
DEFAULT = "120/minute"   # everything else
