"""LeaseKeeper: multi-tenant property rental management backend."""

__version__ = "1.0.0"
