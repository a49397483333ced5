"""
Kitman configuration.

Usage in settings.py:
    KITMAN = {
        "QUANTITY_PLACES": 4,
        "MRP_BATCH_SIZE": 500,
        "REQUIREMENT_BASIS": "ordered",
        "AUTO_CONSUME_RESOURCE_TYPE": "TH",
        "SHORTAGE_ATTRIBUTION": "kitman.priority.DueDatePriority",
        "SUPPLY_SOURCE": "kitman.adapters.purchasing.PurchaseOrderSupply",
    }
"""

from dataclasses import dataclass, field
from typing import Any

from django.conf import settings


def _default_priority() -> list[str]:
    return ['SMT', 'TH', 'MECH', 'PCB', 'DNP', 'UNKNOWN']


@dataclass
class KitmanSettings:
    """Kitman configuration settings."""

    # Decimal places kept in reported figures (rounded up)
    QUANTITY_PLACES: int = 4

    # Open orders fetched per round trip by the requirements scan
    MRP_BATCH_SIZE: int = 500

    # "ordered" = order.quantity, "remaining" = quantity - quantity_shipped
    REQUIREMENT_BASIS: str = 'ordered'

    # BOM resource type consumed by auto_consume() when none is given
    AUTO_CONSUME_RESOURCE_TYPE: str = 'TH'

    # Group order for shortages_by_resource_type()
    RESOURCE_TYPE_PRIORITY: list[str] = field(default_factory=_default_priority)

    # Per-order shortage attribution strategy (dotted path)
    SHORTAGE_ATTRIBUTION: str = 'kitman.priority.DueDatePriority'

    # Source of on-order quantities (dotted path)
    SUPPLY_SOURCE: str = 'kitman.adapters.purchasing.PurchaseOrderSupply'


def get_kitman_settings() -> KitmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "KITMAN", {})
    return KitmanSettings(**{
        k: v for k, v in user_settings.items()
        if k in KitmanSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_kitman_settings(), name)


kitman_settings = _LazySettings()
