"""Role-scoped authorization.

One decision function and one set of query filters for every resource, so that
handlers never re-derive ownership rules by hand.

The rules, per caller variant:

- SUPER_ADMIN: everything.
- OWNER: resources whose owning property belongs to the owner.
- MANAGER: resources of the manager's owner. Restricted writes also need the
  matching capability in ``manager.permissions``. Managers never delete a
  property and never touch owner records beyond reading them.
- TENANT: reads of their own rows (and of their property while active);
  settlement of their own payments; creating and editing their own complaints
  and maintenance requests; editing their own tenant profile. Never deletes.

Lookups follow a single policy: the target is fetched by id first (miss is
NotFound), then the decision is applied (deny is Forbidden).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import Select, or_

from leasekeeper.core.caller import (
    Caller,
    ManagerCaller,
    OwnerCaller,
    SuperAdminCaller,
    TenantCaller,
)
from leasekeeper.core.errors import Forbidden
from leasekeeper.models.complaint import Complaint
from leasekeeper.models.lease import Lease
from leasekeeper.models.maintenance import MaintenanceRequest
from leasekeeper.models.payment import Payment
from leasekeeper.models.property import Property
from leasekeeper.models.user import Manager, Tenant


class Resource(str, Enum):
    PROPERTY = "property"
    LEASE = "lease"
    PAYMENT = "payment"
    COMPLAINT = "complaint"
    MAINTENANCE = "maintenance_request"
    TENANT = "tenant"
    MANAGER = "manager"
    OWNER = "owner"


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    WRITE = "write"
    DELETE = "delete"
    SETTLE = "settle"


class Capability(str, Enum):
    """Manager permission keys gating restricted writes."""
    APPROVE_PAYMENTS = "approvePayments"
    MANAGE_PAYMENTS = "managePayments"
    MANAGE_LEASES = "manageLeases"


@dataclass(frozen=True)
class OwnershipChain:
    """What the decision needs to know about the target."""

    resource: Resource
    owner_id: Optional[UUID]
    property_id: Optional[UUID] = None
    tenant_id: Optional[UUID] = None
    reporter_user_id: Optional[UUID] = None
    assignee_user_id: Optional[UUID] = None
    manager_id: Optional[UUID] = None


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)

_TENANT_AUTHORED = {Resource.COMPLAINT, Resource.MAINTENANCE}


def _deny(reason: str) -> Decision:
    return Decision(False, reason)


def decide(
    caller: Caller,
    chain: OwnershipChain,
    action: Action,
    capability: Optional[Capability] = None,
) -> Decision:
    """Return ALLOW/DENY for ``caller`` performing ``action`` on ``chain``."""
    if isinstance(caller, SuperAdminCaller):
        return ALLOW

    if isinstance(caller, OwnerCaller):
        if action == Action.SETTLE:
            return _deny("Only the tenant can pay online")
        if chain.owner_id != caller.owner_id:
            return _deny("This resource is outside your ownership scope")
        return ALLOW

    if isinstance(caller, ManagerCaller):
        if action == Action.SETTLE:
            return _deny("Only the tenant can pay online")
        if chain.owner_id != caller.owner_id:
            return _deny("This resource is outside your ownership scope")
        if chain.resource == Resource.PROPERTY and action == Action.DELETE:
            return _deny("Managers cannot delete properties")
        if chain.resource == Resource.OWNER and action != Action.READ:
            return _deny("Managers cannot modify owner records")
        if chain.resource == Resource.MANAGER and action != Action.READ:
            if chain.manager_id != caller.manager_id:
                return _deny("Managers cannot modify other managers")
        if capability is not None and not caller.has_permission(capability.value):
            return _deny(f"Missing permission: {capability.value}")
        return ALLOW

    if isinstance(caller, TenantCaller):
        return _decide_tenant(caller, chain, action)

    return _deny("Unknown caller")


def _decide_tenant(caller: TenantCaller, chain: OwnershipChain, action: Action) -> Decision:
    if action == Action.DELETE:
        return _deny("Tenants cannot delete records")

    own_row = chain.tenant_id is not None and chain.tenant_id == caller.tenant_id
    authored = chain.reporter_user_id is not None and chain.reporter_user_id == caller.user_id

    if action == Action.READ:
        if chain.resource == Resource.PROPERTY:
            if caller.is_active and chain.property_id == caller.property_id:
                return ALLOW
            return _deny("You are not an active tenant of this property")
        if own_row or (chain.resource in _TENANT_AUTHORED and authored):
            return ALLOW
        return _deny("You can only access your own records")

    if action == Action.SETTLE:
        if chain.resource == Resource.PAYMENT and own_row:
            return ALLOW
        return _deny("You can only pay your own payments")

    if action == Action.CREATE:
        if chain.resource in _TENANT_AUTHORED and chain.property_id is not None \
                and chain.property_id == caller.property_id:
            return ALLOW
        return _deny("You can only file requests for the property you rent")

    # WRITE
    if chain.resource in _TENANT_AUTHORED and authored:
        return ALLOW
    if chain.resource == Resource.TENANT and own_row:
        return ALLOW
    return _deny("Tenants cannot modify this resource")


def authorize(
    caller: Caller,
    chain: OwnershipChain,
    action: Action,
    capability: Optional[Capability] = None,
) -> None:
    """Raise Forbidden unless the decision allows the action."""
    decision = decide(caller, chain, action, capability)
    if not decision:
        raise Forbidden(decision.reason)


def scope_owner_id(caller: Caller) -> Optional[UUID]:
    """Owner id every query is narrowed to; None for super admins and tenants."""
    if isinstance(caller, (OwnerCaller, ManagerCaller)):
        return caller.owner_id
    return None


# ---------------------------------------------------------------------------
# Ownership chains
# ---------------------------------------------------------------------------

def property_chain(prop: Property) -> OwnershipChain:
    return OwnershipChain(Resource.PROPERTY, owner_id=prop.owner_id, property_id=prop.id)


def lease_chain(lease: Lease, prop: Property) -> OwnershipChain:
    return OwnershipChain(
        Resource.LEASE, owner_id=prop.owner_id, property_id=prop.id, tenant_id=lease.tenant_id
    )


def payment_chain(payment: Payment, prop: Property) -> OwnershipChain:
    return OwnershipChain(
        Resource.PAYMENT, owner_id=prop.owner_id, property_id=prop.id, tenant_id=payment.tenant_id
    )


def tenant_chain(tenant: Tenant, prop: Optional[Property]) -> OwnershipChain:
    return OwnershipChain(
        Resource.TENANT,
        owner_id=prop.owner_id if prop else None,
        property_id=tenant.property_id,
        tenant_id=tenant.id,
    )


def complaint_chain(complaint: Complaint, prop: Property) -> OwnershipChain:
    return OwnershipChain(
        Resource.COMPLAINT,
        owner_id=prop.owner_id,
        property_id=prop.id,
        tenant_id=complaint.tenant_id,
        reporter_user_id=complaint.reported_by_id,
        assignee_user_id=complaint.assigned_to_id,
    )


def maintenance_chain(request: MaintenanceRequest, prop: Property) -> OwnershipChain:
    return OwnershipChain(
        Resource.MAINTENANCE,
        owner_id=prop.owner_id,
        property_id=prop.id,
        tenant_id=request.tenant_id,
        reporter_user_id=request.requested_by_id,
        assignee_user_id=request.assigned_to_id,
    )


def manager_chain(manager: Manager) -> OwnershipChain:
    return OwnershipChain(Resource.MANAGER, owner_id=manager.owner_id, manager_id=manager.id)


# ---------------------------------------------------------------------------
# Query filters
# ---------------------------------------------------------------------------

def scope_properties(query: Select, caller: Caller) -> Select:
    """Narrow a ``select(Property)`` to the caller's scope."""
    if isinstance(caller, SuperAdminCaller):
        return query
    if isinstance(caller, TenantCaller):
        if not caller.is_active or caller.property_id is None:
            return query.where(Property.id.is_(None))
        return query.where(Property.id == caller.property_id)
    return query.where(Property.owner_id == caller.owner_id)


def scope_leases(query: Select, caller: Caller) -> Select:
    """Narrow a ``select(Lease)`` to the caller's scope."""
    if isinstance(caller, SuperAdminCaller):
        return query
    if isinstance(caller, TenantCaller):
        return query.where(Lease.tenant_id == caller.tenant_id)
    return query.join(Property, Lease.property_id == Property.id).where(
        Property.owner_id == caller.owner_id
    )


def scope_payments(query: Select, caller: Caller) -> Select:
    """Narrow a ``select(Payment)`` to the caller's scope."""
    if isinstance(caller, SuperAdminCaller):
        return query
    if isinstance(caller, TenantCaller):
        return query.where(Payment.tenant_id == caller.tenant_id)
    return (
        query.join(Lease, Payment.lease_id == Lease.id)
        .join(Property, Lease.property_id == Property.id)
        .where(Property.owner_id == caller.owner_id)
    )


def scope_tenants(query: Select, caller: Caller) -> Select:
    """Narrow a ``select(Tenant)`` to the caller's scope."""
    if isinstance(caller, SuperAdminCaller):
        return query
    if isinstance(caller, TenantCaller):
        return query.where(Tenant.id == caller.tenant_id)
    return query.join(Property, Tenant.property_id == Property.id).where(
        Property.owner_id == caller.owner_id
    )


def scope_complaints(query: Select, caller: Caller) -> Select:
    """Narrow a ``select(Complaint)`` to what the caller may see."""
    if isinstance(caller, SuperAdminCaller):
        return query
    if isinstance(caller, TenantCaller):
        return query.where(Complaint.reported_by_id == caller.user_id)
    query = query.join(Property, Complaint.property_id == Property.id)
    if isinstance(caller, ManagerCaller):
        return query.where(
            or_(
                Complaint.reported_by_id == caller.user_id,
                Complaint.assigned_to_id == caller.user_id,
                Property.owner_id == caller.owner_id,
            )
        )
    return query.where(
        or_(Complaint.reported_by_id == caller.user_id, Property.owner_id == caller.owner_id)
    )


def scope_maintenance(query: Select, caller: Caller) -> Select:
    """Narrow a ``select(MaintenanceRequest)`` to the caller's scope."""
    if isinstance(caller, SuperAdminCaller):
        return query
    if isinstance(caller, TenantCaller):
        return query.where(
            or_(
                MaintenanceRequest.requested_by_id == caller.user_id,
                MaintenanceRequest.tenant_id == caller.tenant_id,
            )
        )
    return query.join(Property, MaintenanceRequest.property_id == Property.id).where(
        Property.owner_id == caller.owner_id
    )
