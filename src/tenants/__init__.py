"""
Per-tenant service lifecycle and front-end interaction dispatch.
"""

from .dispatcher import InteractionDispatcher
from .registry import TenantRegistry, TenantService

__all__ = [
    "InteractionDispatcher",
    "TenantRegistry",
    "TenantService",
]
