"""
Kitman Purchasing Adapter — on-order quantities from purchase orders.

This module holds the default SupplySource and the loader that returns
the configured one.

Usage:
    from kitman.adapters import get_supply_source

    source = get_supply_source()
    source.quantities_on_order([material.pk])

Settings:
    KITMAN = {
        "SUPPLY_SOURCE": "kitman.adapters.purchasing.PurchaseOrderSupply",
    }
"""

from __future__ import annotations

import logging
import threading
from decimal import Decimal
from typing import Iterable

from django.core.exceptions import ImproperlyConfigured
from django.db.models import DecimalField, ExpressionWrapper, F, Sum
from django.db.models.functions import Coalesce, Greatest
from django.utils.module_loading import import_string

from kitman.conf import kitman_settings
from kitman.protocols.supply import OpenSupply, SupplySource

logger = logging.getLogger(__name__)


def open_quantity_expression():
    """ordered - received, floored at zero, per PO line."""
    return Greatest(
        ExpressionWrapper(
            F('quantity_ordered') - F('quantity_received'),
            output_field=DecimalField(max_digits=14, decimal_places=4),
        ),
        Decimal('0'),
        output_field=DecimalField(max_digits=14, decimal_places=4),
    )


class PurchaseOrderSupply:
    """
    SupplySource backed by kitman's PurchaseOrderLine table.

    Counts lines of SUBMITTED, CONFIRMED and PARTIALLY_RECEIVED orders.
    """

    def _open_lines(self):
        from kitman.models.enums import PurchaseOrderStatus
        from kitman.models.purchasing import PurchaseOrderLine

        return PurchaseOrderLine.objects.filter(
            purchase_order__status__in=PurchaseOrderStatus.open_states(),
        )

    def quantities_on_order(self, material_ids: Iterable[int] | None = None) -> dict[int, Decimal]:
        lines = self._open_lines()
        if material_ids is not None:
            lines = lines.filter(material_id__in=list(material_ids))

        rows = lines.values('material_id').annotate(
            open_qty=Coalesce(Sum(open_quantity_expression()), Decimal('0'))
        )
        return {row['material_id']: row['open_qty'] for row in rows}

    def open_supply(self, material_id: int) -> OpenSupply:
        lines = self._open_lines().filter(material_id=material_id).annotate(
            open_qty=open_quantity_expression()
        ).filter(open_qty__gt=0)

        total = Decimal('0')
        documents = []
        for line in lines.select_related('purchase_order').order_by('purchase_order__po_number'):
            total += line.open_qty
            if line.purchase_order.po_number not in documents:
                documents.append(line.purchase_order.po_number)
        return OpenSupply(material_id=material_id, quantity=total, documents=tuple(documents))


# Cached source instance
_lock = threading.Lock()
_supply_source: SupplySource | None = None


def get_supply_source() -> SupplySource:
    """
    Return the configured supply source.

    Raises:
        ImproperlyConfigured: If SUPPLY_SOURCE is empty, cannot be imported,
            or does not implement SupplySource
    """
    global _supply_source

    if _supply_source is None:
        with _lock:
            if _supply_source is None:  # double-checked
                source_path = kitman_settings.SUPPLY_SOURCE

                if not source_path:
                    raise ImproperlyConfigured(
                        "KITMAN['SUPPLY_SOURCE'] must be configured. "
                        "Example: 'kitman.adapters.purchasing.PurchaseOrderSupply'"
                    )

                try:
                    source_class = import_string(source_path)
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import supply source '{source_path}': {e}"
                    ) from e

                source = source_class()
                if not isinstance(source, SupplySource):
                    raise ImproperlyConfigured(
                        f"'{source_path}' does not implement SupplySource"
                    )
                _supply_source = source
                logger.debug("Loaded supply source: %s", source_path)

    return _supply_source


def reset_supply_source() -> None:
    """Reset the cached source. Useful for testing."""
    global _supply_source
    _supply_source = None
