from fastapi import APIRouter

from spice_ledger.api.v1.endpoints import (
    # Caterers & balances
    caterers,
    # Bills
    distributions,
    # Payments
    caterer_payments,
    # Reminders & notifications
    payment_reminders,
    notifications,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Caterers ====================
api_router.include_router(
    caterers.router,
    prefix="/caterers",
    tags=["Caterers"]
)

# ==================== Distributions (Bills) ====================
api_router.include_router(
    distributions.router,
    prefix="/distributions",
    tags=["Distributions"]
)

# ==================== Caterer Payments ====================
api_router.include_router(
    caterer_payments.router,
    prefix="/caterer-payments",
    tags=["Caterer Payments"]
)

# ==================== Payment Reminders ====================
api_router.include_router(
    payment_reminders.router,
    prefix="/payment-reminders",
    tags=["Payment Reminders"]
)
api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["Notifications"]
)
