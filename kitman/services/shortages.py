"""
Shortage reports.

Every view here is cut from one ShortageAnalysis: one demand scan plus one
stock snapshot, and one set of short materials. The customer, resource
type and assembly views never recompute shortage on their own, so they
always agree with shortages().
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from functools import cached_property

from django.db import transaction
from django.utils import timezone

from kitman.conf import kitman_settings
from kitman.models.catalog import Customer, Material, Product
from kitman.services.queries import StockQueries, StockSnapshot
from kitman.services.requirements import (
    DemandScan,
    Diagnostics,
    cover_overdrawn,
    round_quantity,
    scan_open_orders,
)

ZERO = Decimal('0')


@dataclass
class ShortageAnalysis:
    """Demand, supply and the shared shortage set at one point in time."""

    scan: DemandScan
    snapshots: dict[int, StockSnapshot]
    materials: dict[int, Material]
    customers: dict[int, Customer]
    products: dict[int, Product]
    # Negative availability charged back to reserving orders
    overdrawn: dict[int, Decimal] = field(default_factory=dict)
    generated_at: datetime = field(default_factory=timezone.now)

    @classmethod
    def build(cls) -> 'ShortageAnalysis':
        with transaction.atomic():
            scan = scan_open_orders()
            material_ids = scan.material_ids()
            snapshots = StockQueries.snapshots(material_ids)
            materials = Material.objects.in_bulk(list(material_ids))
            customers = Customer.objects.in_bulk(
                list({o.customer_id for o in scan.orders if o.customer_id})
            )
            products = Product.objects.in_bulk(
                list({o.product_id for o in scan.orders if o.product_id})
            )
        overdrawn = cover_overdrawn(scan, {mid: s.available for mid, s in snapshots.items()})
        return cls(scan, snapshots, materials, customers, products, overdrawn)

    @cached_property
    def totals(self) -> dict[int, Decimal]:
        """Outstanding demand per material."""
        return self.scan.totals()

    @cached_property
    def gross(self) -> dict[int, Decimal]:
        return self.scan.gross_totals()

    @cached_property
    def reserved(self) -> dict[int, Decimal]:
        return self.scan.reserved_totals()

    @cached_property
    def short(self) -> dict[int, Decimal]:
        """material_id -> shortage, only for materials actually short."""
        supply = self.supply()
        short = {}
        for mid, total in self.totals.items():
            if total > 0 and total > supply[mid]:
                short[mid] = total - supply[mid]
        return short

    def supply(self) -> dict[int, Decimal]:
        """
        Supply per material, as handed to attribution.

        available + on_order, with stock overdrawn by lost reservations
        added back since that loss already shows as outstanding demand.
        """
        return {
            mid: snap.available + self.overdrawn.get(mid, ZERO) + snap.on_order
            for mid, snap in self.snapshots.items()
        }

    def ipn(self, material_id) -> str:
        return self.materials[material_id].internal_part_number

    def short_lines(self):
        """(order, material demand) pairs whose material is short."""
        for order in self.scan.orders:
            for mid, demand in order.materials.items():
                if mid in self.short and demand.outstanding > 0:
                    yield order, demand


# ══════════════════════════════════════════════════════════════
# REPORT TYPES
# ══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DemandingOrder:
    order_id: int
    order_number: str
    customer_id: int | None
    product_id: int | None
    due_date: date | None
    required: Decimal
    outstanding: Decimal

    def as_dict(self) -> dict:
        return {
            'order_id': self.order_id,
            'order_number': self.order_number,
            'customer_id': self.customer_id,
            'product_id': self.product_id,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'required': str(self.required),
            'outstanding': str(self.outstanding),
        }


@dataclass
class MaterialShortage:
    material_id: int
    internal_part_number: str
    description: str
    quantity_on_hand: Decimal
    quantity_allocated: Decimal
    quantity_available: Decimal
    quantity_on_order: Decimal
    total_required: Decimal
    quantity_reserved: Decimal
    outstanding: Decimal
    shortage: Decimal
    orders: list[DemandingOrder] = field(default_factory=list)
    resource_types: list[str] = field(default_factory=list)
    affected_products: list[int] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            'material_id': self.material_id,
            'internal_part_number': self.internal_part_number,
            'description': self.description,
            'quantity_on_hand': str(self.quantity_on_hand),
            'quantity_allocated': str(self.quantity_allocated),
            'quantity_available': str(self.quantity_available),
            'quantity_on_order': str(self.quantity_on_order),
            'total_required': str(self.total_required),
            'quantity_reserved': str(self.quantity_reserved),
            'outstanding': str(self.outstanding),
            'shortage': str(self.shortage),
            'orders': [o.as_dict() for o in self.orders],
            'resource_types': list(self.resource_types),
            'affected_products': list(self.affected_products),
        }


@dataclass
class ShortageReport:
    generated_at: datetime
    items: list[MaterialShortage]
    diagnostics: Diagnostics

    @property
    def total_shortage_items(self) -> int:
        return len(self.items)

    def as_dict(self) -> dict:
        return {
            'generated_at': self.generated_at.isoformat(),
            'total_shortage_items': self.total_shortage_items,
            'items': [i.as_dict() for i in self.items],
            'diagnostics': self.diagnostics.as_dict(),
        }


@dataclass(frozen=True)
class OrderMaterialShortage:
    material_id: int
    internal_part_number: str
    required: Decimal
    outstanding: Decimal
    shortage: Decimal

    def as_dict(self) -> dict:
        return {
            'material_id': self.material_id,
            'internal_part_number': self.internal_part_number,
            'required': str(self.required),
            'outstanding': str(self.outstanding),
            'shortage': str(self.shortage),
        }


@dataclass
class OrderShortages:
    order_id: int
    order_number: str
    product_id: int | None
    due_date: date | None
    materials: list[OrderMaterialShortage] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            'order_id': self.order_id,
            'order_number': self.order_number,
            'product_id': self.product_id,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'materials': [m.as_dict() for m in self.materials],
        }


@dataclass
class CustomerShortages:
    customer_id: int | None
    customer_name: str
    orders: list[OrderShortages] = field(default_factory=list)

    @property
    def shortage_items(self) -> int:
        return sum(len(o.materials) for o in self.orders)

    def as_dict(self) -> dict:
        return {
            'customer_id': self.customer_id,
            'customer_name': self.customer_name,
            'shortage_items': self.shortage_items,
            'orders': [o.as_dict() for o in self.orders],
        }


@dataclass(frozen=True)
class ResourceTypeMaterial:
    material_id: int
    internal_part_number: str
    total_required: Decimal
    outstanding: Decimal
    shortage: Decimal

    def as_dict(self) -> dict:
        return {
            'material_id': self.material_id,
            'internal_part_number': self.internal_part_number,
            'total_required': str(self.total_required),
            'outstanding': str(self.outstanding),
            'shortage': str(self.shortage),
        }


@dataclass
class ResourceTypeShortages:
    resource_type: str
    materials: list[ResourceTypeMaterial] = field(default_factory=list)

    @property
    def materials_short(self) -> int:
        return len(self.materials)

    def as_dict(self) -> dict:
        return {
            'resource_type': self.resource_type,
            'materials_short': self.materials_short,
            'materials': [m.as_dict() for m in self.materials],
        }


@dataclass
class AffectedAssembly:
    product_id: int
    part_number: str
    blocking_materials: list[OrderMaterialShortage] = field(default_factory=list)
    orders: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            'product_id': self.product_id,
            'part_number': self.part_number,
            'blocking_materials': [m.as_dict() for m in self.blocking_materials],
            'orders': list(self.orders),
        }


def resource_type_rank(resource_type: str):
    priority = kitman_settings.RESOURCE_TYPE_PRIORITY
    if resource_type in priority:
        return (0, priority.index(resource_type), '')
    return (1, 0, resource_type)


class Shortages:
    """Shortage report methods."""

    @classmethod
    def shortages(cls, analysis: ShortageAnalysis | None = None) -> ShortageReport:
        """
        Materials whose outstanding demand exceeds supply (see supply()).

        Sorted by shortage, largest first.
        """
        analysis = analysis or ShortageAnalysis.build()
        items: dict[int, MaterialShortage] = {}

        for mid, shortage in analysis.short.items():
            snap = analysis.snapshots[mid]
            material = analysis.materials[mid]
            items[mid] = MaterialShortage(
                material_id=mid,
                internal_part_number=material.internal_part_number,
                description=material.description,
                quantity_on_hand=round_quantity(snap.on_hand),
                quantity_allocated=round_quantity(snap.allocated),
                quantity_available=round_quantity(snap.available),
                quantity_on_order=round_quantity(snap.on_order),
                total_required=round_quantity(analysis.gross[mid]),
                quantity_reserved=round_quantity(analysis.reserved[mid]),
                outstanding=round_quantity(analysis.totals[mid]),
                shortage=round_quantity(shortage),
            )

        for order, demand in analysis.short_lines():
            item = items[demand.material_id]
            item.orders.append(DemandingOrder(
                order_id=order.order_id,
                order_number=order.order_number,
                customer_id=order.customer_id,
                product_id=order.product_id,
                due_date=order.due_date,
                required=round_quantity(demand.required),
                outstanding=round_quantity(demand.outstanding),
            ))
            for rtype in demand.resource_types:
                if rtype not in item.resource_types:
                    item.resource_types.append(rtype)
            if order.product_id and order.product_id not in item.affected_products:
                item.affected_products.append(order.product_id)

        for item in items.values():
            item.resource_types.sort(key=resource_type_rank)

        ordered = sorted(
            items.values(),
            key=lambda i: (-analysis.short[i.material_id], i.internal_part_number),
        )
        return ShortageReport(analysis.generated_at, ordered, analysis.scan.diagnostics)

    @classmethod
    def shortages_by_customer(cls, analysis: ShortageAnalysis | None = None) -> list[CustomerShortages]:
        """
        Affected orders grouped by customer.

        Customers with the most shortage lines come first; their orders
        are listed by due date.
        """
        analysis = analysis or ShortageAnalysis.build()
        groups: dict[int | None, CustomerShortages] = {}
        by_order: dict[int, OrderShortages] = {}

        for order, demand in analysis.short_lines():
            group = groups.get(order.customer_id)
            if group is None:
                customer = analysis.customers.get(order.customer_id)
                group = groups[order.customer_id] = CustomerShortages(
                    customer_id=order.customer_id,
                    customer_name=str(customer) if customer else '',
                )
            entry = by_order.get(order.order_id)
            if entry is None:
                entry = by_order[order.order_id] = OrderShortages(
                    order_id=order.order_id,
                    order_number=order.order_number,
                    product_id=order.product_id,
                    due_date=order.due_date,
                )
                group.orders.append(entry)
            entry.materials.append(OrderMaterialShortage(
                material_id=demand.material_id,
                internal_part_number=analysis.ipn(demand.material_id),
                required=round_quantity(demand.required),
                outstanding=round_quantity(demand.outstanding),
                shortage=round_quantity(analysis.short[demand.material_id]),
            ))

        for group in groups.values():
            group.orders.sort(key=lambda o: (o.due_date is None, o.due_date or date.max, o.order_number))
        return sorted(groups.values(), key=lambda g: (-g.shortage_items, g.customer_name))

    @classmethod
    def shortages_by_resource_type(cls, analysis: ShortageAnalysis | None = None) -> list[ResourceTypeShortages]:
        """
        Short materials grouped by the resource type of the BOM lines using them.

        Untagged lines are grouped as UNKNOWN. A material used under several
        tags appears in each of those groups.
        """
        analysis = analysis or ShortageAnalysis.build()
        groups: dict[str, dict[int, ResourceTypeMaterial]] = {}

        for _order, demand in analysis.short_lines():
            mid = demand.material_id
            for rtype in demand.resource_types:
                group = groups.setdefault(rtype, {})
                if mid not in group:
                    group[mid] = ResourceTypeMaterial(
                        material_id=mid,
                        internal_part_number=analysis.ipn(mid),
                        total_required=round_quantity(analysis.gross[mid]),
                        outstanding=round_quantity(analysis.totals[mid]),
                        shortage=round_quantity(analysis.short[mid]),
                    )

        result = []
        for rtype in sorted(groups, key=resource_type_rank):
            materials = sorted(groups[rtype].values(), key=lambda m: (-m.shortage, m.internal_part_number))
            result.append(ResourceTypeShortages(resource_type=rtype, materials=materials))
        return result

    @classmethod
    def affected_assemblies(cls, analysis: ShortageAnalysis | None = None) -> list[AffectedAssembly]:
        """Finished assemblies blocked by at least one short material."""
        analysis = analysis or ShortageAnalysis.build()
        orders: dict[int, list[str]] = {}
        demand_by_product: dict[int, dict[int, tuple[Decimal, Decimal]]] = {}

        for order, demand in analysis.short_lines():
            if not order.product_id:
                continue
            numbers = orders.setdefault(order.product_id, [])
            if order.order_number not in numbers:
                numbers.append(order.order_number)
            totals = demand_by_product.setdefault(order.product_id, {})
            gross, outstanding = totals.get(demand.material_id, (ZERO, ZERO))
            totals[demand.material_id] = (gross + demand.required, outstanding + demand.outstanding)

        result = []
        for product_id, totals in demand_by_product.items():
            product = analysis.products.get(product_id)
            blocking = [
                OrderMaterialShortage(
                    material_id=mid,
                    internal_part_number=analysis.ipn(mid),
                    required=round_quantity(gross),
                    outstanding=round_quantity(outstanding),
                    shortage=round_quantity(analysis.short[mid]),
                )
                for mid, (gross, outstanding) in totals.items()
            ]
            blocking.sort(key=lambda m: (-m.shortage, m.internal_part_number))
            result.append(AffectedAssembly(
                product_id=product_id,
                part_number=product.part_number if product else str(product_id),
                blocking_materials=blocking,
                orders=orders[product_id],
            ))

        return sorted(result, key=lambda a: (-len(a.blocking_materials), a.part_number))
