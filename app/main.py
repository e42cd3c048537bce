from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.api.v1.router import api_router
from app.core.exceptions import BillingError
from app.api.deps import DB
from app.database import init_db


logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create any missing tables (Alembic owns schema changes in deployed
      environments; create_all only fills gaps for local runs)
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.DEPLOYMENT_NAME})")
    await init_db()

    yield

    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Reference Masters", "description": "Modes, service types, distance/weight slabs, metro cities, state adjacency"},
    {"name": "Distance Classification", "description": "Origin/destination address to distance category"},
    {"name": "Rate Slabs", "description": "Party rate slabs: resolution, audited upsert, audit log"},
    {"name": "Consignments", "description": "Booking row intake and rate application"},
    {"name": "Billing", "description": "Consignment invoicing, invoice reads, party billing status"},
    {"name": "Party Payments", "description": "Payments received and their allocation to invoices"},
]

API_DESCRIPTION = """
## Courier Billing API

Rates consignments against party-specific slab tables and turns them into
exactly-once party invoices.

### Errors

Billing failures return a structured payload:

```json
{"error_kind": "NoRateConfigured", "message": "...", "diagnostics": {...}}
```

| Code | Description |
|------|-------------|
| 401 | Unauthorized - Invalid/expired token |
| 403 | Forbidden - Role not allowed |
| 404 | Not Found - Resource doesn't exist |
| 409 | Conflict - Duplicate mapping, already invoiced, invoice has payments |
| 422 | Unprocessable Entity - Lookup failed or business rule violated |
| 500 | Internal Server Error |

### Authentication

All endpoints under `/api/v1` require a JWT bearer token carrying `sub` and `role` claims.
"""

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    """Render expected billing outcomes as {error_kind, message, diagnostics}."""
    logger.info(f"{request.method} {request.url.path} -> {exc.kind}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "error_kind": "InternalError",
            "message": "Database operation failed",
            "diagnostics": {},
        },
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check(db: DB):
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        health_status["checks"]["database"] = "connected"
    except SQLAlchemyError as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {type(e).__name__}"

    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
