from __future__ import annotations

import importlib
import inspect
import pkgutil

import pytest

import leasekeeper
from leasekeeper.services.complaints import ComplaintService
from leasekeeper.services.leases import LeaseService
from leasekeeper.services.maintenance import MaintenanceService
from leasekeeper.services.payments import PaymentService
from leasekeeper.services.properties import PropertyService

MODULES = sorted(info.name for info in pkgutil.walk_packages(leasekeeper.__path__, "leasekeeper."))


@pytest.mark.parametrize("name", MODULES)
def test_module_imports(name):
    importlib.import_module(name)


@pytest.mark.parametrize(
    "service", [ComplaintService, LeaseService, MaintenanceService, PaymentService, PropertyService]
)
def test_services_do_not_shadow_builtins(service):
    shadowed = {name for name, _ in inspect.getmembers(service) if name in ("list", "dict", "set", "type")}

    assert not shadowed
