"""Services for LeaseKeeper."""

from leasekeeper.services.storage import StorageService, get_storage_service
from leasekeeper.services.audit import AuditService
from leasekeeper.services.jobs import JobsService
from leasekeeper.services.feature_flags import FeatureFlagCache, FeatureFlagService
from leasekeeper.services.notifications import NotificationService
from leasekeeper.services.receipts import ReceiptService
from leasekeeper.services.dispatcher import OutboxDispatcher
from leasekeeper.services.scheduler import SweepScheduler

__all__ = [
    "StorageService",
    "get_storage_service",
    "AuditService",
    "JobsService",
    "FeatureFlagCache",
    "FeatureFlagService",
    "NotificationService",
    "ReceiptService",
    "OutboxDispatcher",
    "SweepScheduler",
]
