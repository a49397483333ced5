"""
Material requirements — what open orders still need, per material.

One scan walks open orders in due-date order, in batches, expanding each
order's BOM revision (cached per revision) and netting out what the order
already has reserved. Shortage and buildability reports are derived from
the same scan.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_CEILING, Decimal
from itertools import islice

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from kitman.conf import kitman_settings
from kitman.exceptions import NotFound
from kitman.models.allocation import Allocation
from kitman.models.bom import BomItem
from kitman.models.catalog import Material
from kitman.models.order import Order

logger = logging.getLogger('kitman')

ZERO = Decimal('0')
UNTAGGED = 'UNKNOWN'


def round_quantity(value: Decimal) -> Decimal:
    """Round up to QUANTITY_PLACES decimals for reporting."""
    exponent = Decimal(1).scaleb(-kitman_settings.QUANTITY_PLACES)
    return value.quantize(exponent, rounding=ROUND_CEILING)


def order_demand_quantity(order) -> Decimal:
    """Units of the order still to be built under the configured basis."""
    quantity = Decimal(order.quantity or 0)
    if kitman_settings.REQUIREMENT_BASIS == 'remaining':
        return max(ZERO, quantity - Decimal(order.quantity_shipped or 0))
    return quantity


def _batched(iterable, size):
    iterator = iter(iterable)
    while batch := list(islice(iterator, size)):
        yield batch


class BomExpansion:
    """Per-run cache of usable BOM lines, one query per revision."""

    def __init__(self, diagnostics=None):
        self._lines: dict[int, list[BomItem]] = {}
        self.diagnostics = diagnostics

    def lines(self, revision_id) -> list[BomItem]:
        if revision_id not in self._lines:
            usable = []
            items = BomItem.objects.filter(bom_revision_id=revision_id).order_by('line_number', 'pk')
            for item in items:
                problem = self._problem(item)
                if problem is None:
                    usable.append(item)
                elif self.diagnostics is not None:
                    self.diagnostics.skip_line(item, problem)
            self._lines[revision_id] = usable
        return self._lines[revision_id]

    @staticmethod
    def _problem(item) -> str | None:
        if item.material_id is None:
            return 'no material'
        if item.quantity_required is None or item.quantity_required <= 0:
            return 'quantity_required must be positive'
        if item.scrap_factor is not None and item.scrap_factor < 0:
            return 'negative scrap_factor'
        return None

    @property
    def revisions_loaded(self) -> int:
        return len(self._lines)


@dataclass
class Diagnostics:
    """Rows a report skipped instead of failing on."""

    skipped_orders: int = 0
    skipped_lines: int = 0
    messages: list[str] = field(default_factory=list)

    def skip_order(self, order, problem: str) -> None:
        self.skipped_orders += 1
        self.messages.append(f"order {order.order_number}: {problem}")
        logger.warning(
            "kitman.mrp.order_skipped",
            extra={"order_id": order.pk, "problem": problem},
        )

    def skip_line(self, item, problem: str) -> None:
        self.skipped_lines += 1
        self.messages.append(f"bom item {item.pk} (revision {item.bom_revision_id}): {problem}")
        logger.warning(
            "kitman.mrp.bom_item_skipped",
            extra={"bom_item_id": item.pk, "problem": problem},
        )

    def as_dict(self) -> dict:
        return {
            'skipped_orders': self.skipped_orders,
            'skipped_lines': self.skipped_lines,
            'messages': list(self.messages),
        }


@dataclass
class MaterialDemand:
    """One order's demand for one material (all its BOM lines summed)."""

    material_id: int
    required: Decimal = ZERO
    reserved: Decimal = ZERO
    # Part of `reserved` no longer backed by stock (see cover_overdrawn)
    uncovered: Decimal = ZERO
    resource_types: set[str] = field(default_factory=set)

    @property
    def outstanding(self) -> Decimal:
        """Demand not covered by the order's own backed allocations."""
        return max(ZERO, self.required - (self.reserved - self.uncovered))


@dataclass
class OrderDemand:
    order_id: int
    order_number: str
    customer_id: int | None
    product_id: int | None
    due_date: date | None
    created_at: datetime
    quantity: Decimal
    materials: dict[int, MaterialDemand] = field(default_factory=dict)


@dataclass
class DemandScan:
    """Outstanding demand of every open order, in claim priority order."""

    orders: list[OrderDemand] = field(default_factory=list)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    def _sum(self, attr) -> dict[int, Decimal]:
        totals: dict[int, Decimal] = {}
        for order in self.orders:
            for demand in order.materials.values():
                totals[demand.material_id] = totals.get(demand.material_id, ZERO) + getattr(demand, attr)
        return totals

    def totals(self) -> dict[int, Decimal]:
        """Outstanding demand per material across all orders."""
        return self._sum('outstanding')

    def gross_totals(self) -> dict[int, Decimal]:
        """BOM demand per material, before any reservation."""
        return self._sum('required')

    def reserved_totals(self) -> dict[int, Decimal]:
        return self._sum('reserved')

    def material_ids(self) -> set[int]:
        return {mid for order in self.orders for mid in order.materials}


def cover_overdrawn(scan: DemandScan, available: dict[int, Decimal]) -> dict[int, Decimal]:
    """
    Charge negative availability back to the orders holding the stock.

    Scrapping or adjusting away reserved stock pushes available below zero,
    leaving part of some reservations unbacked. That deficit is marked as
    `uncovered` on the reserving orders, latest in claim priority first, up
    to each order's reservation, so it turns into their outstanding demand.

    Returns:
        Dict[material_id, quantity charged to orders]
    """
    charged: dict[int, Decimal] = {}
    for material_id, quantity in available.items():
        deficit = -quantity
        if deficit <= 0:
            continue
        for order in reversed(scan.orders):
            demand = order.materials.get(material_id)
            if demand is None or demand.reserved <= demand.uncovered:
                continue
            take = min(demand.reserved - demand.uncovered, deficit)
            demand.uncovered += take
            charged[material_id] = charged.get(material_id, ZERO) + take
            deficit -= take
            if deficit <= 0:
                break
    return charged


def _order_problem(order) -> str | None:
    if order.quantity is None or order.quantity < 0:
        return 'negative or missing quantity'
    if order.bom_revision_id is None:
        return 'no BOM revision'
    if order.product_id is not None and order.bom_revision.product_id != order.product_id:
        return 'BOM revision belongs to another product'
    return None


def expand_order(order, bom: BomExpansion) -> OrderDemand:
    """Gross per-material demand of one order (reservations not yet netted)."""
    quantity = order_demand_quantity(order)
    result = OrderDemand(
        order_id=order.pk,
        order_number=order.order_number,
        customer_id=order.customer_id,
        product_id=order.product_id or order.bom_revision.product_id,
        due_date=order.due_date,
        created_at=order.created_at,
        quantity=quantity,
    )
    for item in bom.lines(order.bom_revision_id):
        demand = result.materials.setdefault(item.material_id, MaterialDemand(item.material_id))
        demand.required += quantity * item.quantity_per_unit
        demand.resource_types.add(item.resource_type or UNTAGGED)
    return result


def _reservations(order_ids) -> dict[tuple[int, int], Decimal]:
    rows = (
        Allocation.objects.open()
        .filter(order_id__in=order_ids)
        .order_by()
        .values('order_id', 'material_id')
        .annotate(t=Sum('quantity'))
    )
    return {(row['order_id'], row['material_id']): row['t'] for row in rows}


def scan_open_orders() -> DemandScan:
    """
    Build the demand scan over every open order.

    Orders come in (due_date, created_at, pk) order, undated last, and are
    fetched MRP_BATCH_SIZE at a time.
    """
    scan = DemandScan()
    bom = BomExpansion(scan.diagnostics)
    batch_size = kitman_settings.MRP_BATCH_SIZE

    orders = (
        Order.objects.open()
        .by_priority()
        .select_related('bom_revision')
        .iterator(chunk_size=batch_size)
    )
    for batch in _batched(orders, batch_size):
        usable = []
        for order in batch:
            problem = _order_problem(order)
            if problem:
                scan.diagnostics.skip_order(order, problem)
                continue
            usable.append(expand_order(order, bom))

        reserved = _reservations([o.order_id for o in usable])
        for order_demand in usable:
            for material_id, demand in order_demand.materials.items():
                demand.reserved = reserved.get((order_demand.order_id, material_id), ZERO)
        scan.orders.extend(usable)

    logger.debug(
        "kitman.mrp.scanned",
        extra={
            "orders": len(scan.orders),
            "revisions": bom.revisions_loaded,
            "skipped_orders": scan.diagnostics.skipped_orders,
        },
    )
    return scan


# ══════════════════════════════════════════════════════════════
# REPORT TYPES
# ══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class MaterialRequirement:
    material_id: int
    internal_part_number: str
    description: str
    total_required: Decimal
    quantity_reserved: Decimal
    outstanding: Decimal
    quantity_on_hand: Decimal
    quantity_allocated: Decimal
    quantity_available: Decimal
    quantity_on_order: Decimal
    net_requirement: Decimal

    def as_dict(self) -> dict:
        return {
            'material_id': self.material_id,
            'internal_part_number': self.internal_part_number,
            'description': self.description,
            'total_required': str(self.total_required),
            'quantity_reserved': str(self.quantity_reserved),
            'outstanding': str(self.outstanding),
            'quantity_on_hand': str(self.quantity_on_hand),
            'quantity_allocated': str(self.quantity_allocated),
            'quantity_available': str(self.quantity_available),
            'quantity_on_order': str(self.quantity_on_order),
            'net_requirement': str(self.net_requirement),
        }


@dataclass
class RequirementsReport:
    generated_at: datetime
    total_orders: int
    materials: list[MaterialRequirement]
    diagnostics: Diagnostics

    def as_dict(self) -> dict:
        return {
            'generated_at': self.generated_at.isoformat(),
            'total_orders': self.total_orders,
            'materials': [m.as_dict() for m in self.materials],
            'diagnostics': self.diagnostics.as_dict(),
        }


@dataclass(frozen=True)
class OrderRequirementLine:
    bom_item_id: int
    line_number: int
    material_id: int
    resource_type: str
    quantity_per_unit: Decimal
    required: Decimal

    def as_dict(self) -> dict:
        return {
            'bom_item_id': self.bom_item_id,
            'line_number': self.line_number,
            'material_id': self.material_id,
            'resource_type': self.resource_type,
            'quantity_per_unit': str(self.quantity_per_unit),
            'required': str(self.required),
        }


@dataclass
class OrderRequirements:
    order_id: int
    quantity: Decimal
    lines: list[OrderRequirementLine]
    diagnostics: Diagnostics

    def as_dict(self) -> dict:
        return {
            'order_id': self.order_id,
            'quantity': str(self.quantity),
            'lines': [line.as_dict() for line in self.lines],
            'diagnostics': self.diagnostics.as_dict(),
        }


class Requirements:
    """Requirements (MRP) report methods."""

    @classmethod
    def requirements(cls) -> RequirementsReport:
        """
        Demand per material against current supply.

        total_required is gross BOM demand, quantity_reserved what open
        allocations already hold and outstanding the rest. Reservations whose
        stock was scrapped or adjusted away count as outstanding again.

        net_requirement = max(0, outstanding - available - on_order)

        Sorted by net requirement (largest first), then part number.
        """
        from kitman.services.queries import StockQueries

        with transaction.atomic():
            scan = scan_open_orders()
            material_ids = scan.material_ids()
            snapshots = StockQueries.snapshots(material_ids)
            materials = Material.objects.in_bulk(list(material_ids))

        charged = cover_overdrawn(scan, {mid: s.available for mid, s in snapshots.items()})
        gross = scan.gross_totals()
        reserved = scan.reserved_totals()
        outstanding = scan.totals()

        rows = []
        for material_id, total in outstanding.items():
            snap = snapshots[material_id]
            material = materials[material_id]
            supply = snap.available + charged.get(material_id, ZERO) + snap.on_order
            net = max(ZERO, total - supply)
            rows.append(MaterialRequirement(
                material_id=material_id,
                internal_part_number=material.internal_part_number,
                description=material.description,
                total_required=round_quantity(gross[material_id]),
                quantity_reserved=round_quantity(reserved[material_id]),
                outstanding=round_quantity(total),
                quantity_on_hand=round_quantity(snap.on_hand),
                quantity_allocated=round_quantity(snap.allocated),
                quantity_available=round_quantity(snap.available),
                quantity_on_order=round_quantity(snap.on_order),
                net_requirement=round_quantity(net),
            ))
        rows.sort(key=lambda r: (-r.net_requirement, r.internal_part_number))

        return RequirementsReport(
            generated_at=timezone.now(),
            total_orders=len(scan.orders),
            materials=rows,
            diagnostics=scan.diagnostics,
        )

    @classmethod
    def order_requirements(cls, order) -> OrderRequirements:
        """Per BOM line requirement of a single order, open or not."""
        if not isinstance(order, Order):
            try:
                order = Order.objects.select_related('bom_revision').get(pk=order)
            except Order.DoesNotExist:
                raise NotFound('order', order) from None

        diagnostics = Diagnostics()
        quantity = order_demand_quantity(order)
        lines = []
        problem = _order_problem(order)
        if problem:
            diagnostics.skip_order(order, problem)
        else:
            for item in BomExpansion(diagnostics).lines(order.bom_revision_id):
                lines.append(OrderRequirementLine(
                    bom_item_id=item.pk,
                    line_number=item.line_number,
                    material_id=item.material_id,
                    resource_type=item.resource_type or UNTAGGED,
                    quantity_per_unit=item.quantity_per_unit,
                    required=round_quantity(quantity * item.quantity_per_unit),
                ))
        return OrderRequirements(
            order_id=order.pk,
            quantity=quantity,
            lines=lines,
            diagnostics=diagnostics,
        )
