"""
Per-order shortage attribution.

Stock is shared between every open order, so "is order X short of M?"
depends on who else wants M. allocate_by_priority() answers it by letting
orders claim the supply of each material in turn:

- earliest due date first, orders without a due date last
- ties broken by creation timestamp, then by order id

Each order takes min(need, what is left). Whatever it cannot get is its
shortage. The functions here are pure; they never touch the database.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Protocol

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from kitman.conf import kitman_settings

ZERO = Decimal('0')


@dataclass(frozen=True)
class Claim:
    """An order's outstanding need for one material."""

    order_id: int
    material_id: int
    quantity: Decimal
    due_date: date | None = None
    created_at: datetime | None = None


def claim_priority(claim: Claim):
    return (
        claim.due_date is None,
        claim.due_date or date.max,
        claim.created_at is None,
        claim.created_at or datetime.max,
        claim.order_id,
    )


def allocate_by_priority(claims: Iterable[Claim], supply: dict[int, Decimal]) -> dict[tuple[int, int], Decimal]:
    """
    Shortage of every claim after supply is handed out in priority order.

    Args:
        claims: Outstanding needs (quantity >= 0)
        supply: Per-material supply (available + on order); negative counts as none

    Returns:
        Dict[(order_id, material_id), shortage]
    """
    remaining = {mid: max(ZERO, qty) for mid, qty in supply.items()}
    shortages = {}
    for claim in sorted(claims, key=claim_priority):
        pool = remaining.get(claim.material_id, ZERO)
        granted = min(claim.quantity, pool)
        remaining[claim.material_id] = pool - granted
        key = (claim.order_id, claim.material_id)
        shortages[key] = shortages.get(key, ZERO) + (claim.quantity - granted)
    return shortages


def global_shortages(claims: Iterable[Claim], supply: dict[int, Decimal]) -> dict[int, Decimal]:
    """Material-level shortage: total demand minus supply, floored at zero."""
    totals: dict[int, Decimal] = {}
    for claim in claims:
        totals[claim.material_id] = totals.get(claim.material_id, ZERO) + claim.quantity
    return {
        mid: max(ZERO, total - supply.get(mid, ZERO))
        for mid, total in totals.items()
    }


class ShortageAttribution(Protocol):
    def attribute(self, claims: list[Claim], supply: dict[int, Decimal]) -> dict[tuple[int, int], Decimal]:
        ...


class DueDatePriority:
    """Earliest due date gets the stock first."""

    def attribute(self, claims, supply):
        return allocate_by_priority(claims, supply)


class GlobalShortageAttribution:
    """
    No fairness: an order is short of a material whenever the material is
    globally short, by up to the full global shortage.
    """

    def attribute(self, claims, supply):
        short = global_shortages(claims, supply)
        result = {}
        for claim in claims:
            key = (claim.order_id, claim.material_id)
            result[key] = result.get(key, ZERO) + min(claim.quantity, short[claim.material_id])
        return result


def get_attribution() -> ShortageAttribution:
    """
    Instantiate the configured strategy.

    Raises:
        ImproperlyConfigured: If SHORTAGE_ATTRIBUTION cannot be imported
    """
    path = kitman_settings.SHORTAGE_ATTRIBUTION
    try:
        return import_string(path)()
    except ImportError as e:
        raise ImproperlyConfigured(
            f"Failed to import shortage attribution '{path}': {e}"
        ) from e
