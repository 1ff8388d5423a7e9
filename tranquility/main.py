import logging

from fastapi import FastAPI, Request
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from . import schemas
from .config import configure_logging, settings
from .database import Base, engine
from .error_handlers import error_response, register_exception_handlers
from .limiter import limiter
from .routers import amenities, auth, bookings, dashboard, room_types, rooms, users

configure_logging()
logger = logging.getLogger(__name__)

# -----------------------------------------
# Create DB tables
# -----------------------------------------
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    description="Hotel booking backend: rooms, room types, amenities, bookings and back-office administration.",
)

# Attach limiter to app and add middleware
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# -----------------------------------------
# Global exception handlers
# -----------------------------------------
register_exception_handlers(app)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    logger.warning("Rate limit exceeded on %s", request.url.path)
    return error_response(
        429,
        "Rate limit exceeded. Please try again later.",
        {"type": "RateLimitExceeded"},
    )


# -----------------------------------------
# Routers (normal + versioned /api/v1)
# -----------------------------------------
ROUTERS = [
    auth.router,
    users.router,
    rooms.router,
    room_types.router,
    amenities.router,
    bookings.router,
    users.admin_router,
    rooms.admin_router,
    room_types.admin_router,
    amenities.admin_router,
    bookings.admin_router,
    dashboard.router,
]

for router in ROUTERS:
    app.include_router(router)

# Versioned API (v1)
for router in ROUTERS:
    app.include_router(router, prefix="/api/v1")


# -----------------------------------------
# Health check endpoint
# -----------------------------------------
@app.get("/health", tags=["health"], response_model=schemas.ApiResponse[dict])
def health_check():
    return {"message": "Service is healthy", "data": {"status": "ok"}}
