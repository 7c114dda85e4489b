"""API V1 Router"""

from fastapi import APIRouter

# Import endpoint routers
from settlement.api.v1.endpoints import (
    services, closures, invoices, payments,
    reconciliation, commissions
)

# Create API v1 router
api_router = APIRouter()

# Include endpoint routers with prefixes and tags
api_router.include_router(services.router, prefix="/services", tags=["Services"])
api_router.include_router(closures.router, prefix="/closures", tags=["Billing Closures"])
api_router.include_router(invoices.router, prefix="/invoices", tags=["Invoices"])
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
api_router.include_router(reconciliation.router, prefix="/reconciliation", tags=["Reconciliation"])
api_router.include_router(commissions.router, prefix="/commissions", tags=["Commissions"])
