# backend/vowmarket/main.py

import logging
import os

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from . import models  # noqa: F401  (registers tables on Base.metadata)
from .api import api_admin, api_booking, api_review, api_vendor, api_wishlist, auth
from .core.config import settings
from .core.observability import setup_logging, setup_tracer
from .database import Base, engine
from .services.exceptions import MarketplaceError
from .services.identity import InMemoryIdentityProvider
from .utils.errors import domain_error_response
from .utils.status_logger import register_status_listeners

# Configure logging before creating any loggers
setup_logging()
logger = logging.getLogger(__name__)

register_status_listeners()

_skip_db_bootstrap = os.getenv("SKIP_DB_BOOTSTRAP", "0").strip().lower() in ("1", "true", "yes")
if not _skip_db_bootstrap:
    Base.metadata.create_all(bind=engine)
logger.info("startup.bootstrap skip_db_bootstrap=%s pid=%s", _skip_db_bootstrap, os.getpid())

# Always use ORJSONResponse for JSON payloads
app = FastAPI(title="Vowmarket API", default_response_class=ORJSONResponse)
setup_tracer(app)

if settings.AUTH_BACKEND == "memory":
    app.state.identity_provider = InMemoryIdentityProvider()
    logger.warning("AUTH_BACKEND=memory: users are kept in process memory only")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("CORS origins set to: %s", settings.CORS_ORIGINS)


@app.get("/healthz", tags=["health"])
async def healthz():
    return {"status": "ok"}


@app.exception_handler(MarketplaceError)
async def marketplace_exception_handler(request: Request, exc: MarketplaceError):
    """Render service errors in the same shape as ``error_response``."""
    http_exc = domain_error_response(exc)
    return ORJSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    field_errors = {}
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field_errors[".".join(loc) or "body"] = err.get("msg", "invalid")
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": {"message": "Invalid request", "field_errors": field_errors}},
    )


api_prefix = settings.API_V1_STR  # "/api/v1"

app.include_router(auth.router, prefix=f"{api_prefix}/auth", tags=["auth"])
app.include_router(api_vendor.router, prefix=api_prefix, tags=["vendors"])
app.include_router(api_review.router, prefix=api_prefix, tags=["reviews"])
app.include_router(api_booking.router, prefix=f"{api_prefix}/bookings", tags=["bookings"])
app.include_router(api_wishlist.router, prefix=f"{api_prefix}/wishlist", tags=["wishlist"])
app.include_router(api_admin.router, prefix=f"{api_prefix}/admin", tags=["admin"])
