"""
Kitman Adapters.

Implementations of protocols for external systems.
"""

from kitman.adapters.purchasing import (
    PurchaseOrderSupply,
    get_supply_source,
    reset_supply_source,
)

__all__ = [
    "PurchaseOrderSupply",
    "get_supply_source",
    "reset_supply_source",
]
