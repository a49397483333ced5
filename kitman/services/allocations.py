"""
Stock allocations — reservation lifecycle (allocate, pick, issue, cancel, consume).

Creating an allocation locks the material row. Transitions lock the
allocation row. Batch operations (pick, issue) run one transaction per
allocation, so one failure never rolls back its siblings.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from kitman.conf import kitman_settings
from kitman.exceptions import InsufficientStock, InvalidQuantity, KitError, NotFound
from kitman.models.allocation import Allocation
from kitman.models.enums import AllocationStatus, InventoryBucket, TransactionType
from kitman.models.order import Order
from kitman.services.ledger import StockLedger, lock_material, to_quantity
from kitman.transitions import AllocationEvent, apply

logger = logging.getLogger('kitman')

ZERO = Decimal('0')


@dataclass(frozen=True)
class ItemFailure:
    """Why one allocation of a batch was not processed."""

    allocation_id: int
    code: str
    message: str
    data: dict = field(default_factory=dict)

    @classmethod
    def from_error(cls, allocation_id, error: KitError) -> 'ItemFailure':
        return cls(allocation_id, error.code, error.message, error.as_dict()['data'])

    def as_dict(self) -> dict:
        return {
            'allocation_id': self.allocation_id,
            'code': self.code,
            'message': self.message,
            'data': dict(self.data),
        }


@dataclass
class PickResult:
    picked: list[int] = field(default_factory=list)
    failed: list[ItemFailure] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {'picked': len(self.picked), 'failed': [f.as_dict() for f in self.failed]}


@dataclass
class IssueResult:
    issued: list[int] = field(default_factory=list)
    failed: list[ItemFailure] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {'issued': len(self.issued), 'failed': [f.as_dict() for f in self.failed]}


@dataclass
class AutoConsumeResult:
    resource_type: str
    allocation_ids: list[int] = field(default_factory=list)
    # Issued beyond the BOM requirement, left for return_allocation()
    skipped: list[int] = field(default_factory=list)

    @property
    def auto_consumed(self) -> int:
        return len(self.allocation_ids)

    def as_dict(self) -> dict:
        return {'auto_consumed': self.auto_consumed, 'skipped': list(self.skipped)}


@dataclass
class OrderAllocationResult:
    """Outcome of allocate_for_order(), counted per BOM material."""

    allocations: list[Allocation] = field(default_factory=list)
    fully_allocated: int = 0
    partially_allocated: int = 0
    not_allocated: int = 0
    shortages: dict[int, Decimal] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            'allocation_ids': [a.pk for a in self.allocations],
            'fully_allocated': self.fully_allocated,
            'partially_allocated': self.partially_allocated,
            'not_allocated': self.not_allocated,
            'shortages': {str(k): str(v) for k, v in self.shortages.items()},
        }


def get_order(order) -> Order:
    """Accept an Order or its pk."""
    if isinstance(order, Order):
        return order
    try:
        return Order.objects.select_related('bom_revision').get(pk=order)
    except Order.DoesNotExist:
        raise NotFound('order', order) from None


def lock_allocation(allocation_id, order=None) -> Allocation:
    """
    Lock and return an allocation row. Must run inside transaction.atomic().

    Raises:
        NotFound: Unknown or malformed allocation id
        KitError('WRONG_ORDER'): Allocation belongs to another order
    """
    try:
        allocation = Allocation.objects.select_for_update().get(pk=allocation_id)
    except (Allocation.DoesNotExist, ValueError, TypeError):
        raise NotFound('allocation', allocation_id) from None
    if order is not None and allocation.order_id != order.pk:
        raise KitError('WRONG_ORDER', allocation_id=allocation_id, order_id=order.pk)
    return allocation


def _batch_ids(order, allocation_ids, status):
    if allocation_ids is not None:
        return list(allocation_ids)
    return list(
        Allocation.objects.for_order(order).filter(status=status)
        .order_by('pk').values_list('pk', flat=True)
    )


class StockAllocations:
    """Allocation lifecycle methods."""

    @classmethod
    def allocate(cls, quantity, material, order, owner_type=None, owner=None,
                 reason=None, user=None, **metadata):
        """
        Reserve stock of a material for an order.

        The owner scope defaults to the order's: company stock for TURNKEY,
        the customer's consigned stock for CONSIGNMENT.

        Returns:
            Allocation in ACTIVE

        Raises:
            InvalidQuantity: quantity <= 0 or not finite
            InsufficientStock: quantity > available in the owner scope
            KitError('ALLOCATION_EXISTS'): Order already has an ACTIVE allocation of the material
        """
        from kitman.services.queries import StockQueries

        quantity = to_quantity(quantity)
        if quantity <= 0:
            raise InvalidQuantity(requested=quantity)

        order = get_order(order)
        if owner_type is None:
            owner_type, owner = order.stock_owner

        with transaction.atomic():
            material = lock_material(material)

            if Allocation.objects.filter(
                material=material, order=order, status=AllocationStatus.ACTIVE
            ).exists():
                raise KitError('ALLOCATION_EXISTS', material_id=material.pk, order_id=order.pk)

            available = StockQueries.available(material, owner_type, owner)
            if quantity > available:
                raise InsufficientStock(available=available, requested=quantity)

            allocation = Allocation.objects.create(
                material=material,
                order=order,
                quantity=quantity,
                owner_type=owner_type,
                owner=owner,
                reason=reason or '',
                created_by=user,
                metadata=metadata,
            )

        logger.info(
            "kitman.allocation.created",
            extra={
                "allocation_id": allocation.pk,
                "material": str(material),
                "order": str(order),
                "qty": str(quantity),
            },
        )
        return allocation

    @classmethod
    def allocate_for_order(cls, order, available_only=False, user=None) -> OrderAllocationResult:
        """
        Reserve everything an order's BOM still needs.

        For each material: need = requirement - already reserved (ACTIVE,
        PICKED and ISSUED). By default the whole order is allocated or
        nothing is (InsufficientStock listing the missing quantities). With
        available_only, what is available is reserved and the rest is
        reported as shortage.

        An existing ACTIVE allocation of a material is topped up rather
        than duplicated.
        """
        from kitman.services.queries import StockQueries
        from kitman.services.requirements import BomExpansion, expand_order

        order = get_order(order)
        if order.bom_revision_id is None:
            raise NotFound('bom_revision', None, order_id=order.pk)

        owner_type, owner = order.stock_owner
        demand = expand_order(order, BomExpansion())
        result = OrderAllocationResult()

        with transaction.atomic():
            for material_id in sorted(demand.materials):
                material = lock_material(material_id)
                reserved = sum(
                    Allocation.objects.open().filter(material=material, order=order)
                    .values_list('quantity', flat=True),
                    ZERO,
                )
                need = demand.materials[material_id].required - reserved
                if need <= 0:
                    result.fully_allocated += 1
                    continue

                available = max(ZERO, StockQueries.available(material, owner_type, owner))
                granted = min(need, available)
                if granted < need:
                    result.shortages[material_id] = need - granted
                    if not available_only:
                        continue

                if granted > 0:
                    result.allocations.append(
                        cls._reserve(material, order, granted, owner_type, owner, user)
                    )
                if granted == need:
                    result.fully_allocated += 1
                elif granted > 0:
                    result.partially_allocated += 1
                else:
                    result.not_allocated += 1

            if result.shortages and not available_only:
                raise InsufficientStock(
                    available=None,
                    requested=None,
                    message='Not enough stock to allocate the whole order',
                    order_id=order.pk,
                    shortages={str(k): str(v) for k, v in result.shortages.items()},
                )

        logger.info(
            "kitman.allocation.order_allocated",
            extra={
                "order": str(order),
                "fully": result.fully_allocated,
                "partially": result.partially_allocated,
                "not_allocated": result.not_allocated,
            },
        )
        return result

    @classmethod
    def _reserve(cls, material, order, quantity, owner_type, owner, user):
        """Create or top up the ACTIVE allocation. Material row must be locked."""
        existing = Allocation.objects.select_for_update().filter(
            material=material, order=order, status=AllocationStatus.ACTIVE
        ).first()
        if existing is not None:
            existing.quantity += quantity
            existing.save(update_fields=['quantity', 'updated_at'])
            return existing
        return Allocation.objects.create(
            material=material,
            order=order,
            quantity=quantity,
            owner_type=owner_type,
            owner=owner,
            reason=f"Allocation for {order.order_number}",
            created_by=user,
        )

    @classmethod
    def pick(cls, order, allocation_ids=None, user=None) -> PickResult:
        """
        Mark allocations as pulled from the shelf.

        Transition: ACTIVE -> PICKED. Quantity and stock are unchanged.
        Without allocation_ids every ACTIVE allocation of the order is picked.
        """
        order = get_order(order)
        result = PickResult()

        for allocation_id in _batch_ids(order, allocation_ids, AllocationStatus.ACTIVE):
            try:
                with transaction.atomic():
                    allocation = lock_allocation(allocation_id, order)
                    apply(allocation, AllocationEvent.PICK)
                    allocation.save(update_fields=['status', 'updated_at'])
                result.picked.append(allocation_id)
            except KitError as e:
                result.failed.append(ItemFailure.from_error(allocation_id, e))

        logger.info(
            "kitman.allocation.picked",
            extra={"order": str(order), "picked": len(result.picked), "failed": len(result.failed)},
        )
        return result

    @classmethod
    def issue(cls, order, allocation_ids=None, user=None) -> IssueResult:
        """
        Hand picked material to production.

        Transition: PICKED -> ISSUED. Writes an ISSUE_TO_WO pair moving the
        quantity from RAW to WIP, which leaves on-hand unchanged. Without
        allocation_ids every PICKED allocation of the order is issued.
        """
        order = get_order(order)
        result = IssueResult()

        for allocation_id in _batch_ids(order, allocation_ids, AllocationStatus.PICKED):
            try:
                with transaction.atomic():
                    allocation = lock_allocation(allocation_id, order)
                    apply(allocation, AllocationEvent.ISSUE)
                    allocation.save(update_fields=['status', 'updated_at'])
                    StockLedger.transfer(
                        allocation.quantity, allocation.material_id,
                        InventoryBucket.RAW, InventoryBucket.WIP,
                        transaction_type=TransactionType.ISSUE_TO_WO,
                        reference=order,
                        owner_type=allocation.owner_type,
                        owner=allocation.owner,
                        reason=f"Issue to {order.order_number}",
                        user=user,
                        allocation_id=allocation.pk,
                    )
                result.issued.append(allocation_id)
            except KitError as e:
                result.failed.append(ItemFailure.from_error(allocation_id, e))

        logger.info(
            "kitman.allocation.issued",
            extra={"order": str(order), "issued": len(result.issued), "failed": len(result.failed)},
        )
        return result

    @classmethod
    def cancel(cls, allocation_id, reason='Cancelled', user=None) -> Allocation:
        """
        Release a reservation.

        Transition: ACTIVE|PICKED -> CANCELLED. No ledger entry.
        """
        with transaction.atomic():
            allocation = lock_allocation(allocation_id)
            apply(allocation, AllocationEvent.CANCEL)
            allocation.resolved_at = timezone.now()
            allocation.metadata['cancel_reason'] = reason
            allocation.save(update_fields=['status', 'resolved_at', 'metadata', 'updated_at'])

        logger.info(
            "kitman.allocation.cancelled",
            extra={"allocation_id": allocation.pk, "reason": reason},
        )
        return allocation

    @classmethod
    def deallocate_for_order(cls, order, reason='Order deallocated', user=None) -> int:
        """
        Cancel every ACTIVE and PICKED allocation of an order.

        Returns:
            Number of allocations cancelled
        """
        order = get_order(order)
        ids = list(
            Allocation.objects.for_order(order)
            .filter(status__in=[AllocationStatus.ACTIVE, AllocationStatus.PICKED])
            .order_by('pk').values_list('pk', flat=True)
        )
        with transaction.atomic():
            for allocation_id in ids:
                cls.cancel(allocation_id, reason=reason, user=user)
        return len(ids)

    @classmethod
    def auto_consume(cls, order, resource_type=None, user=None) -> AutoConsumeResult:
        """
        Consume issued material of one resource type in full.

        Used for through-hole parts, which are not counted back after the
        build. ISSUED allocations of the order whose material sits on a BOM
        line tagged `resource_type` move to CONSUMED and a WIP CONSUMPTION
        entry is written for their quantity.

        Only material issued within the BOM requirement is consumed. When
        the order holds more of a material on the floor than it needs, the
        surplus is expected back, so those allocations stay ISSUED for
        return_allocation() and are listed in `skipped`.

        Returns:
            AutoConsumeResult (auto_consumed may be 0)
        """
        from kitman.services.requirements import BomExpansion, order_demand_quantity

        order = get_order(order)
        resource_type = resource_type or kitman_settings.AUTO_CONSUME_RESOURCE_TYPE
        result = AutoConsumeResult(resource_type=resource_type)

        if order.bom_revision_id is None:
            return result

        lines = BomExpansion().lines(order.bom_revision_id)
        material_ids = {line.material_id for line in lines if line.resource_type == resource_type}
        demand_qty = order_demand_quantity(order)
        required: dict[int, Decimal] = {}
        for line in lines:
            if line.material_id in material_ids:
                required[line.material_id] = (
                    required.get(line.material_id, ZERO) + line.quantity_per_unit * demand_qty
                )

        candidates = list(
            Allocation.objects.for_order(order)
            .filter(status=AllocationStatus.ISSUED, material_id__in=material_ids)
            .order_by('pk').values_list('pk', 'material_id', 'quantity')
        )
        issued: dict[int, Decimal] = {}
        for _pk, material_id, quantity in candidates:
            issued[material_id] = issued.get(material_id, ZERO) + quantity

        for allocation_id, material_id, _quantity in candidates:
            if issued[material_id] > required[material_id]:
                result.skipped.append(allocation_id)
                continue
            with transaction.atomic():
                allocation = lock_allocation(allocation_id, order)
                if allocation.status != AllocationStatus.ISSUED:
                    # Returned or consumed concurrently
                    continue
                apply(allocation, AllocationEvent.CONSUME)
                allocation.consumed_quantity = allocation.quantity
                allocation.counted_quantity = ZERO
                allocation.waste_quantity = ZERO
                allocation.variance_quantity = ZERO
                allocation.resolved_at = timezone.now()
                allocation.save()
                StockLedger.append(
                    allocation.quantity, allocation.material_id, TransactionType.CONSUMPTION,
                    bucket=InventoryBucket.WIP,
                    reference=order,
                    owner_type=allocation.owner_type,
                    owner=allocation.owner,
                    reason=f"Auto-consume {resource_type} for {order.order_number}",
                    user=user,
                    allocation_id=allocation.pk,
                )
            result.allocation_ids.append(allocation_id)

        if result.skipped:
            logger.warning(
                "kitman.allocation.auto_consume_skipped",
                extra={"order": str(order), "resource_type": resource_type, "allocation_ids": result.skipped},
            )
        logger.info(
            "kitman.allocation.auto_consumed",
            extra={"order": str(order), "resource_type": resource_type, "count": result.auto_consumed},
        )
        return result
