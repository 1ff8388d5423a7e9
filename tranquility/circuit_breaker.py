from pybreaker import CircuitBreaker

from .config import settings
from .exceptions import AppError

# Guards the booking write path. Domain errors (conflicts, validation) are
# expected outcomes and must not trip the breaker.
booking_circuit_breaker = CircuitBreaker(
    fail_max=settings.BREAKER_FAIL_MAX,
    reset_timeout=settings.BREAKER_RESET_TIMEOUT,
    exclude=[AppError],
    name="booking_service_breaker",
)
