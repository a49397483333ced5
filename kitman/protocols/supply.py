"""
Supply Protocol — Interface for quantities ordered from suppliers but not yet received.

Kitman defines this protocol; the purchasing module (or an external
procurement system) implements it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Protocol, runtime_checkable


@dataclass(frozen=True)
class OpenSupply:
    """Open supply for one material."""

    material_id: int
    quantity: Decimal
    documents: tuple[str, ...] = field(default_factory=tuple)  # PO numbers


@runtime_checkable
class SupplySource(Protocol):
    """
    Protocol for on-order quantities.

    Implementations must never return a negative quantity and must omit
    (or return zero for) materials with nothing on order.
    """

    def quantities_on_order(self, material_ids: Iterable[int] | None = None) -> dict[int, Decimal]:
        """
        On-order quantity per material.

        Args:
            material_ids: Restrict to these materials (None = all)

        Returns:
            Dict[material_id, quantity]
        """
        ...

    def open_supply(self, material_id: int) -> OpenSupply:
        """Open supply for a single material, with the documents behind it."""
        ...
