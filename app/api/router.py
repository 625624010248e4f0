# app/api/router.py
from fastapi import APIRouter
from app.api import (
    routes_billing,
    routes_pharmacy,
    routes_lab,
    routes_patient_portal,
)

api_router = APIRouter()

# ---- Billing (staff desk)
api_router.include_router(routes_billing.router,
                          prefix="/billing",
                          tags=["billing"])

# ---- Pharmacy
api_router.include_router(routes_pharmacy.router,
                          prefix="/pharmacy",
                          tags=["pharmacy"])

# ---- Lab
api_router.include_router(routes_lab.router, prefix="/lab", tags=["lab"])

# ---- Patient portal
api_router.include_router(routes_patient_portal.router,
                          prefix="/patient",
                          tags=["patient-portal"])
