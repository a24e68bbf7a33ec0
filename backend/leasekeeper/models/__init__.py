"""SQLAlchemy models for LeaseKeeper."""

from leasekeeper.models.user import User, Owner, Manager, Tenant, LoginAttempt
from leasekeeper.models.property import Property
from leasekeeper.models.lease import Lease
from leasekeeper.models.payment import Payment, Receipt
from leasekeeper.models.complaint import Complaint
from leasekeeper.models.maintenance import MaintenanceRequest
from leasekeeper.models.notification import Notification
from leasekeeper.models.audit import AuditLog
from leasekeeper.models.jobs import JobsOutbox
from leasekeeper.models.analytics import AnalyticsSnapshot
from leasekeeper.models.feature_flag import FeatureFlag, FeatureFlagOverride
from leasekeeper.models.setting import SystemSetting

__all__ = [
    "User",
    "Owner",
    "Manager",
    "Tenant",
    "LoginAttempt",
    "Property",
    "Lease",
    "Payment",
    "Receipt",
    "Complaint",
    "MaintenanceRequest",
    "Notification",
    "AuditLog",
    "JobsOutbox",
    "AnalyticsSnapshot",
    "FeatureFlag",
    "FeatureFlagOverride",
    "SystemSetting",
]
