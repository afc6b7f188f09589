"""Rate limiting configuration using slowapi.

The limiter is keyed on client IP and wired into the app in main.py; the
report and sync endpoints carry tighter per-route limits.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from attendance_engine.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
)

# Range-wide operations recompute summaries for a whole campus.
HEAVY_OPERATION_LIMIT = "10/minute"
