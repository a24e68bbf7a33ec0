"""API routers for LeaseKeeper."""

from leasekeeper.routers.admin import router as admin_router
from leasekeeper.routers.auth import router as auth_router
from leasekeeper.routers.calendar import router as calendar_router
from leasekeeper.routers.complaints import router as complaints_router
from leasekeeper.routers.leases import router as leases_router
from leasekeeper.routers.maintenance import router as maintenance_router
from leasekeeper.routers.managers import router as managers_router
from leasekeeper.routers.notifications import router as notifications_router
from leasekeeper.routers.notifications import ws_router as notifications_ws_router
from leasekeeper.routers.owners import router as owners_router
from leasekeeper.routers.payments import router as payments_router
from leasekeeper.routers.properties import router as properties_router
from leasekeeper.routers.reports import router as reports_router
from leasekeeper.routers.tenants import router as tenants_router
from leasekeeper.routers.users import router as users_router

__all__ = [
    "admin_router",
    "auth_router",
    "calendar_router",
    "complaints_router",
    "leases_router",
    "maintenance_router",
    "managers_router",
    "notifications_router",
    "notifications_ws_router",
    "owners_router",
    "payments_router",
    "properties_router",
    "reports_router",
    "tenants_router",
    "users_router",
]
