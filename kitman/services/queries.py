"""
Stock queries — read-only operations.

All methods are classmethods and take no locks. Figures that must agree
with each other (on hand vs. allocated) come from a single SQL statement.
"""

from dataclasses import dataclass
from decimal import Decimal

from django.db.models import DecimalField, OuterRef, Subquery, Sum
from django.db.models.functions import Coalesce

from kitman.adapters.purchasing import get_supply_source
from kitman.exceptions import NotFound
from kitman.models.allocation import Allocation
from kitman.models.catalog import Material
from kitman.models.enums import AllocationStatus, InventoryBucket, OwnerType
from kitman.models.ledger import StockLevel, Transaction

ZERO = Decimal('0')
QTY_FIELD = DecimalField(max_digits=14, decimal_places=4)


@dataclass(frozen=True)
class StockSnapshot:
    """
    Per-material stock figures read at one instant.

    available = on_hand - allocated, and may be negative.
    """

    material_id: int
    on_hand: Decimal
    allocated: Decimal
    available: Decimal
    on_order: Decimal
    in_process: Decimal = ZERO

    def as_dict(self) -> dict:
        return {
            'material_id': self.material_id,
            'on_hand': str(self.on_hand),
            'allocated': str(self.allocated),
            'available': str(self.available),
            'on_order': str(self.on_order),
            'in_process': str(self.in_process),
        }


@dataclass(frozen=True)
class IssuedMaterial:
    """Material currently on the floor for an order, awaiting return."""

    allocation_id: int
    material_id: int
    internal_part_number: str
    issued: Decimal
    required: Decimal
    expected_return: Decimal

    def as_dict(self) -> dict:
        return {
            'allocation_id': self.allocation_id,
            'material_id': self.material_id,
            'internal_part_number': self.internal_part_number,
            'issued': str(self.issued),
            'required': str(self.required),
            'expected_return': str(self.expected_return),
        }


def _sum_subquery(queryset, field):
    """Correlated SUM(field) over `queryset` for the outer material row."""
    total = (
        queryset.filter(material=OuterRef('pk'))
        .order_by()
        .values('material')
        .annotate(t=Sum(field))
        .values('t')
    )
    return Coalesce(Subquery(total, output_field=QTY_FIELD), ZERO, output_field=QTY_FIELD)


def annotate_stock(materials):
    """Annotate a Material queryset with _on_hand, _in_process and _allocated."""
    return materials.annotate(
        _on_hand=_sum_subquery(StockLevel.objects.all(), '_quantity'),
        _in_process=_sum_subquery(
            StockLevel.objects.filter(bucket=InventoryBucket.WIP), '_quantity'
        ),
        _allocated=_sum_subquery(Allocation.objects.open(), 'quantity'),
    )


class StockQueries:
    """Read-only stock query methods."""

    @classmethod
    def snapshots(cls, materials=None) -> dict[int, StockSnapshot]:
        """
        Snapshot many materials at once.

        Args:
            materials: Iterable of Materials or ids (None = every material)

        Returns:
            Dict[material_id, StockSnapshot]
        """
        qs = Material.objects.all()
        if materials is not None:
            ids = [m.pk if isinstance(m, Material) else m for m in materials]
            qs = qs.filter(pk__in=ids)

        rows = list(annotate_stock(qs).values('pk', '_on_hand', '_in_process', '_allocated'))
        on_order = get_supply_source().quantities_on_order([row['pk'] for row in rows])

        return {
            row['pk']: StockSnapshot(
                material_id=row['pk'],
                on_hand=row['_on_hand'],
                allocated=row['_allocated'],
                available=row['_on_hand'] - row['_allocated'],
                on_order=on_order.get(row['pk'], ZERO),
                in_process=row['_in_process'],
            )
            for row in rows
        }

    @classmethod
    def snapshot(cls, material) -> StockSnapshot:
        """
        Stock figures of one material.

        Raises:
            NotFound: Unknown material
        """
        pk = material.pk if isinstance(material, Material) else material
        snap = cls.snapshots([pk]).get(pk)
        if snap is None:
            raise NotFound('material', pk)
        return snap

    @classmethod
    def allocated(cls, material, owner_type=None, owner=None) -> Decimal:
        """Quantity held by ACTIVE, PICKED and ISSUED allocations."""
        return Allocation.objects.open().filter(material=material).for_owner(
            owner_type, owner
        ).aggregate(t=Coalesce(Sum('quantity'), ZERO))['t']

    @classmethod
    def on_order(cls, material) -> Decimal:
        pk = material.pk if isinstance(material, Material) else material
        return get_supply_source().quantities_on_order([pk]).get(pk, ZERO)

    @classmethod
    def available(cls, material, owner_type=None, owner=None) -> Decimal:
        """
        Quantity free for new allocations.

        Without an owner this is on_hand - allocated over all stock. With
        one, both sides are restricted to that owner's stock (company stock
        for turnkey work, a customer's consigned stock otherwise).
        """
        if owner_type is None:
            return cls.snapshot(material).available

        txns = Transaction.objects.filter(material=material, owner_type=owner_type)
        if owner_type == OwnerType.CUSTOMER:
            txns = txns.filter(owner=owner)
        on_hand = txns.aggregate(t=Coalesce(Sum('quantity'), ZERO))['t']
        return on_hand - cls.allocated(material, owner_type, owner)

    @classmethod
    def allocations_for_order(cls, order, include_closed=False):
        qs = Allocation.objects.for_order(order).select_related('material')
        if not include_closed:
            qs = qs.open()
        return qs

    @classmethod
    def issued_materials(cls, order) -> list[IssuedMaterial]:
        """
        Allocations of `order` on the production floor.

        expected_return = issued - BOM requirement, floored at zero.
        """
        from kitman.services.requirements import BomExpansion, order_demand_quantity

        per_unit = {}
        if order.bom_revision_id:
            for line in BomExpansion().lines(order.bom_revision_id):
                per_unit[line.material_id] = per_unit.get(line.material_id, ZERO) + line.quantity_per_unit
        demand_qty = order_demand_quantity(order)

        result = []
        issued = Allocation.objects.for_order(order).filter(
            status=AllocationStatus.ISSUED
        ).select_related('material').order_by('material__internal_part_number', 'pk')
        for alloc in issued:
            required = per_unit.get(alloc.material_id, ZERO) * demand_qty
            result.append(IssuedMaterial(
                allocation_id=alloc.pk,
                material_id=alloc.material_id,
                internal_part_number=alloc.material.internal_part_number,
                issued=alloc.quantity,
                required=required,
                expected_return=max(ZERO, alloc.quantity - required),
            ))
        return result
