"""
Order buildability — can each open order be built from current supply?

Stock is shared, so each order's shortage comes from the configured
attribution strategy (kitman.priority), not from comparing the order's
full requirement against total stock.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from kitman.priority import Claim, get_attribution
from kitman.services.requirements import Diagnostics, round_quantity
from kitman.services.shortages import ShortageAnalysis

logger = logging.getLogger('kitman')

ZERO = Decimal('0')


class BuildStatus(str, Enum):
    CAN_BUILD = 'CAN_BUILD'    # No material short
    PARTIAL = 'PARTIAL'        # Some materials short
    BLOCKED = 'BLOCKED'        # Every material short


@dataclass(frozen=True)
class MaterialBuildStatus:
    """
    One material of one order.

    required and reserved belong to the order; available and on_order are
    the shared stock figures; shortage is this order's share of what is
    missing and global_shortage is the material-wide figure.
    """

    material_id: int
    internal_part_number: str
    required: Decimal
    reserved: Decimal
    available: Decimal
    on_order: Decimal
    shortage: Decimal
    global_shortage: Decimal

    @property
    def is_short(self) -> bool:
        return self.shortage > 0

    def as_dict(self) -> dict:
        return {
            'material_id': self.material_id,
            'internal_part_number': self.internal_part_number,
            'required': str(self.required),
            'reserved': str(self.reserved),
            'available': str(self.available),
            'on_order': str(self.on_order),
            'shortage': str(self.shortage),
            'global_shortage': str(self.global_shortage),
            'is_short': self.is_short,
        }


@dataclass
class OrderBuildability:
    order_id: int
    order_number: str
    customer_id: int | None
    product_id: int | None
    due_date: date | None
    status: BuildStatus
    materials: list[MaterialBuildStatus] = field(default_factory=list)

    @property
    def materials_total(self) -> int:
        return len(self.materials)

    @property
    def materials_short(self) -> int:
        return sum(1 for m in self.materials if m.is_short)

    @property
    def materials_ready(self) -> int:
        return self.materials_total - self.materials_short

    def as_dict(self) -> dict:
        return {
            'order_id': self.order_id,
            'order_number': self.order_number,
            'customer_id': self.customer_id,
            'product_id': self.product_id,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'status': self.status.value,
            'materials_total': self.materials_total,
            'materials_ready': self.materials_ready,
            'materials_short': self.materials_short,
            'materials': [m.as_dict() for m in self.materials],
        }


@dataclass
class BuildabilityReport:
    generated_at: datetime
    orders: list[OrderBuildability]
    diagnostics: Diagnostics

    @property
    def total_orders(self) -> int:
        return len(self.orders)

    def count(self, status: BuildStatus) -> int:
        return sum(1 for o in self.orders if o.status == status)

    @property
    def can_build_count(self) -> int:
        return self.count(BuildStatus.CAN_BUILD)

    @property
    def partial_count(self) -> int:
        return self.count(BuildStatus.PARTIAL)

    @property
    def blocked_count(self) -> int:
        return self.count(BuildStatus.BLOCKED)

    def as_dict(self) -> dict:
        return {
            'generated_at': self.generated_at.isoformat(),
            'total_orders': self.total_orders,
            'can_build_count': self.can_build_count,
            'partial_count': self.partial_count,
            'blocked_count': self.blocked_count,
            'orders': [o.as_dict() for o in self.orders],
            'diagnostics': self.diagnostics.as_dict(),
        }


def classify(materials: list[MaterialBuildStatus]) -> BuildStatus:
    """CAN_BUILD if nothing is short, BLOCKED if everything is, else PARTIAL."""
    short = sum(1 for m in materials if m.is_short)
    if short == 0:
        return BuildStatus.CAN_BUILD
    if short == len(materials):
        return BuildStatus.BLOCKED
    return BuildStatus.PARTIAL


class Buildability:
    """Order buildability report."""

    @classmethod
    def order_buildability(cls, analysis: ShortageAnalysis | None = None) -> BuildabilityReport:
        """
        Classify every open order as CAN_BUILD, PARTIAL or BLOCKED.

        Orders are listed in claim priority (earliest due date first).
        """
        analysis = analysis or ShortageAnalysis.build()
        claims = [
            Claim(
                order_id=order.order_id,
                material_id=mid,
                quantity=demand.outstanding,
                due_date=order.due_date,
                created_at=order.created_at,
            )
            for order in analysis.scan.orders
            for mid, demand in order.materials.items()
        ]
        per_order = get_attribution().attribute(claims, analysis.supply())

        orders = []
        for order in analysis.scan.orders:
            materials = []
            for mid, demand in order.materials.items():
                snap = analysis.snapshots[mid]
                materials.append(MaterialBuildStatus(
                    material_id=mid,
                    internal_part_number=analysis.ipn(mid),
                    required=round_quantity(demand.required),
                    reserved=round_quantity(demand.reserved),
                    available=round_quantity(snap.available),
                    on_order=round_quantity(snap.on_order),
                    shortage=round_quantity(per_order.get((order.order_id, mid), ZERO)),
                    global_shortage=round_quantity(analysis.short.get(mid, ZERO)),
                ))
            materials.sort(key=lambda m: m.internal_part_number)
            orders.append(OrderBuildability(
                order_id=order.order_id,
                order_number=order.order_number,
                customer_id=order.customer_id,
                product_id=order.product_id,
                due_date=order.due_date,
                status=classify(materials),
                materials=materials,
            ))

        report = BuildabilityReport(analysis.generated_at, orders, analysis.scan.diagnostics)
        logger.info(
            "kitman.mrp.buildability",
            extra={
                "orders": report.total_orders,
                "can_build": report.can_build_count,
                "partial": report.partial_count,
                "blocked": report.blocked_count,
            },
        )
        return report
