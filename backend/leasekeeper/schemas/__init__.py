"""Pydantic schemas for request/response validation."""

from leasekeeper.schemas.base import *
from leasekeeper.schemas.account import *
from leasekeeper.schemas.property import *
from leasekeeper.schemas.lease import *
from leasekeeper.schemas.payment import *
from leasekeeper.schemas.complaint import *
from leasekeeper.schemas.notification import *
from leasekeeper.schemas.admin import *
from leasekeeper.schemas.calendar import *
