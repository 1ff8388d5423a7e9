from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings

# Default limit per client IP; credential endpoints add a tighter one
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT],
    enabled=settings.RATE_LIMIT_ENABLED,
)
