"""Enumeration types for the LeaseKeeper domain model."""

from enum import Enum


class UserRole(str, Enum):
    """Role attached to a user account at creation."""
    SUPER_ADMIN = "SUPER_ADMIN"
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    TENANT = "TENANT"


class PropertyType(str, Enum):
    """Type of property."""
    APARTMENT = "APARTMENT"
    HOUSE = "HOUSE"
    CONDO = "CONDO"
    TOWNHOUSE = "TOWNHOUSE"
    COMMERCIAL = "COMMERCIAL"


class PropertyStatus(str, Enum):
    """Availability of a property."""
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    MAINTENANCE = "MAINTENANCE"
    UNAVAILABLE = "UNAVAILABLE"


class LeaseStatus(str, Enum):
    """Status of a lease.

    PENDING -> ACTIVE -> {EXPIRED, TERMINATED}; renewal keeps ACTIVE.
    """
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"


class PaymentStatus(str, Enum):
    """Status of a payment."""
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    """How a payment was settled."""
    CASH = "CASH"
    CHECK = "CHECK"
    BANK_TRANSFER = "BANK_TRANSFER"
    CARD = "CARD"
    ONLINE = "ONLINE"


class ComplaintStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


class ComplaintCategory(str, Enum):
    NOISE = "NOISE"
    MAINTENANCE = "MAINTENANCE"
    NEIGHBOR = "NEIGHBOR"
    SECURITY = "SECURITY"
    BILLING = "BILLING"
    OTHER = "OTHER"


class Priority(str, Enum):
    """Priority shared by complaints and maintenance requests."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class MaintenanceStatus(str, Enum):
    """Status of a maintenance request."""
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class MaintenanceCategory(str, Enum):
    PLUMBING = "PLUMBING"
    ELECTRICAL = "ELECTRICAL"
    HVAC = "HVAC"
    APPLIANCE = "APPLIANCE"
    STRUCTURAL = "STRUCTURAL"
    PEST = "PEST"
    OTHER = "OTHER"


class NotificationType(str, Enum):
    """Kind of in-app notification."""
    LEASE = "LEASE"
    PAYMENT = "PAYMENT"
    PAYMENT_REMINDER = "PAYMENT_REMINDER"
    PAYMENT_OVERDUE = "PAYMENT_OVERDUE"
    COMPLAINT = "COMPLAINT"
    MAINTENANCE = "MAINTENANCE"
    SYSTEM = "SYSTEM"


class AuditAction(str, Enum):
    """Audit log action types."""
    LEASE_CREATED = "LEASE_CREATED"
    LEASE_UPDATED = "LEASE_UPDATED"
    LEASE_RENEWED = "LEASE_RENEWED"
    LEASE_TERMINATED = "LEASE_TERMINATED"
    LEASE_DELETED = "LEASE_DELETED"
    PAYMENT_CREATED = "PAYMENT_CREATED"
    PAYMENT_UPDATED = "PAYMENT_UPDATED"
    PAYMENT_SETTLED = "PAYMENT_SETTLED"
    PAYMENT_CANCELLED = "PAYMENT_CANCELLED"
    PAYMENT_REFUNDED = "PAYMENT_REFUNDED"
    PAYMENT_DELETED = "PAYMENT_DELETED"
    PROPERTY_DELETED = "PROPERTY_DELETED"
    USER_CREATED = "USER_CREATED"
    USER_DELETED = "USER_DELETED"
    MANAGER_PERMISSIONS_CHANGED = "MANAGER_PERMISSIONS_CHANGED"
    FEATURE_FLAG_CHANGED = "FEATURE_FLAG_CHANGED"
    SYSTEM_SETTING_CHANGED = "SYSTEM_SETTING_CHANGED"


class JobStatus(str, Enum):
    """Status of an async job in the outbox."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    DEAD_LETTER = "DEAD_LETTER"


class AnalyticsPeriod(str, Enum):
    MONTHLY = "MONTHLY"


class CalendarEventType(str, Enum):
    """Kinds of dated events shown on the calendar (derived, not stored)."""
    PAYMENT_DUE = "payment_due"
    LEASE_START = "lease_start"
    LEASE_END = "lease_end"
    MAINTENANCE = "maintenance"
