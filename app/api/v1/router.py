from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Reference masters
    reference,
    distance,
    # Rates
    rate_slabs,
    # Consignments & Billing
    consignments,
    billing,
    payments,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Reference Masters ====================
api_router.include_router(
    reference.router,
    prefix="/reference",
    tags=["Reference Masters"]
)
api_router.include_router(
    distance.router,
    prefix="/distance",
    tags=["Distance Classification"]
)

# ==================== Party Rate Slabs ====================
api_router.include_router(
    rate_slabs.router,
    prefix="/rate-slabs",
    tags=["Rate Slabs"]
)

# ==================== Consignments ====================
api_router.include_router(
    consignments.router,
    prefix="/consignments",
    tags=["Consignments"]
)

# ==================== Billing ====================
api_router.include_router(
    billing.router,
    prefix="/billing",
    tags=["Billing"]
)
api_router.include_router(
    payments.router,
    prefix="/payments",
    tags=["Party Payments"]
)
