"""
Material returns — reconciling what comes back from the floor.

When an order's build is done, every issued allocation is counted:

    issued = counted + consumed + waste + variance

Consumption and waste leave the WIP bucket. The counted remainder either
goes back to the warehouse (RETURN) or stays on the line as floor stock
(FLOOR_STOCK). Variance is never absorbed: it is stored on the
allocation, left visible in WIP and reported as a VarianceWarning.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from kitman.exceptions import InvalidQuantity, InvalidTransition, KitError, VarianceWarning
from kitman.models.enums import AllocationStatus, InventoryBucket, ReturnAction, TransactionType
from kitman.services.allocations import ItemFailure, get_order, lock_allocation
from kitman.services.ledger import StockLedger, to_quantity
from kitman.transitions import AllocationEvent, apply

logger = logging.getLogger('kitman')

ZERO = Decimal('0')

ACTION_EVENTS = {
    ReturnAction.RETURN: AllocationEvent.RETURN,
    ReturnAction.FLOOR_STOCK: AllocationEvent.FLOOR_STOCK,
}


@dataclass(frozen=True)
class ReturnInput:
    """Count of one issued allocation."""

    allocation_id: int
    counted_quantity: Decimal
    consumed_quantity: Decimal
    waste_quantity: Decimal = ZERO
    action: str = ReturnAction.RETURN


@dataclass(frozen=True)
class ReturnOutcome:
    allocation_id: int
    material_id: int
    action: str
    issued: Decimal
    counted: Decimal
    consumed: Decimal
    waste: Decimal
    variance: Decimal

    @property
    def warning(self) -> VarianceWarning | None:
        if self.variance == 0:
            return None
        return VarianceWarning(
            allocation_id=self.allocation_id,
            material_id=self.material_id,
            issued=self.issued,
            counted=self.counted,
            consumed=self.consumed,
            waste=self.waste,
            variance=self.variance,
        )


@dataclass
class ReturnOrderResult:
    outcomes: list[ReturnOutcome] = field(default_factory=list)
    failed: list[ItemFailure] = field(default_factory=list)

    @property
    def total_materials_returned(self) -> int:
        return len(self.outcomes)

    @property
    def total_counted(self) -> Decimal:
        return sum((o.counted for o in self.outcomes), ZERO)

    @property
    def total_consumed(self) -> Decimal:
        return sum((o.consumed for o in self.outcomes), ZERO)

    @property
    def total_waste(self) -> Decimal:
        return sum((o.waste for o in self.outcomes), ZERO)

    @property
    def total_variance(self) -> Decimal:
        return sum((o.variance for o in self.outcomes), ZERO)

    @property
    def variance_warnings(self) -> list[VarianceWarning]:
        return [o.warning for o in self.outcomes if o.warning is not None]

    @property
    def has_variance(self) -> bool:
        return bool(self.variance_warnings)

    def as_dict(self) -> dict:
        return {
            'total_materials_returned': self.total_materials_returned,
            'total_counted': str(self.total_counted),
            'total_consumed': str(self.total_consumed),
            'total_waste': str(self.total_waste),
            'total_variance': str(self.total_variance),
            'variance_warnings': [w.as_dict() for w in self.variance_warnings],
            'failed': [f.as_dict() for f in self.failed],
        }


def _non_negative(value, name) -> Decimal:
    quantity = to_quantity(value, field=name)
    if quantity < 0:
        raise InvalidQuantity(field=name, requested=quantity)
    return quantity


class MaterialReturns:
    """Return reconciliation methods."""

    @classmethod
    def return_allocation(cls, allocation_id, counted_quantity, consumed_quantity,
                          waste_quantity=ZERO, action=ReturnAction.RETURN,
                          order=None, user=None) -> ReturnOutcome:
        """
        Reconcile one ISSUED allocation.

        Ledger entries, all in the WIP bucket unless noted:
        - CONSUMPTION of consumed_quantity
        - SCRAP of waste_quantity
        - RETURN: RETURN_FROM_WO pair moving counted_quantity WIP -> RAW
        - FLOOR_STOCK: nothing; the counted quantity stays in WIP

        Transition: ISSUED -> RETURNED | FLOOR_STOCK

        Raises:
            InvalidQuantity: Negative or non-finite quantity, or unknown action
            InvalidTransition: Allocation is not ISSUED
            NotFound: Unknown allocation
        """
        counted = _non_negative(counted_quantity, 'counted_quantity')
        consumed = _non_negative(consumed_quantity, 'consumed_quantity')
        waste = _non_negative(waste_quantity, 'waste_quantity')
        try:
            action = ReturnAction(action)
        except ValueError:
            raise InvalidQuantity(message='Unknown return action', action=action) from None

        with transaction.atomic():
            allocation = lock_allocation(allocation_id, order)
            apply(allocation, ACTION_EVENTS[action])

            issued = allocation.quantity
            variance = issued - counted - consumed - waste
            reference = allocation.order
            ledger_kwargs = {
                'reference': reference,
                'owner_type': allocation.owner_type,
                'owner': allocation.owner,
                'user': user,
                'allocation_id': allocation.pk,
            }

            if consumed > 0:
                StockLedger.append(
                    consumed, allocation.material_id, TransactionType.CONSUMPTION,
                    bucket=InventoryBucket.WIP,
                    reason=f"Consumed on {reference.order_number}",
                    **ledger_kwargs
                )
            if waste > 0:
                StockLedger.append(
                    waste, allocation.material_id, TransactionType.SCRAP,
                    bucket=InventoryBucket.WIP,
                    reason=f"Waste on {reference.order_number}",
                    **ledger_kwargs
                )
            if action == ReturnAction.RETURN and counted > 0:
                StockLedger.transfer(
                    counted, allocation.material_id,
                    InventoryBucket.WIP, InventoryBucket.RAW,
                    transaction_type=TransactionType.RETURN_FROM_WO,
                    reason=f"Returned from {reference.order_number}",
                    **ledger_kwargs
                )

            allocation.counted_quantity = counted
            allocation.consumed_quantity = consumed
            allocation.waste_quantity = waste
            allocation.variance_quantity = variance
            allocation.resolved_at = timezone.now()
            allocation.save()

        outcome = ReturnOutcome(
            allocation_id=allocation.pk,
            material_id=allocation.material_id,
            action=action,
            issued=issued,
            counted=counted,
            consumed=consumed,
            waste=waste,
            variance=variance,
        )
        logger.info(
            "kitman.return.reconciled",
            extra={"allocation_id": allocation.pk, "action": action, "variance": str(variance)},
        )
        if variance != 0:
            logger.warning(
                "kitman.return.variance",
                extra=outcome.warning.as_dict(),
            )
        return outcome

    @classmethod
    def return_order(cls, order, returns, user=None) -> ReturnOrderResult:
        """
        Reconcile many allocations of one order.

        Each item runs in its own transaction; failures are collected in
        `failed` and do not roll back the others.

        Args:
            order: Order or pk
            returns: ReturnInput items (or dicts with the same keys)
        """
        order = get_order(order)
        result = ReturnOrderResult()

        for item in returns:
            if isinstance(item, dict):
                try:
                    item = ReturnInput(**item)
                except TypeError:
                    result.failed.append(ItemFailure.from_error(
                        item.get('allocation_id'),
                        InvalidQuantity('Incomplete return line', keys=sorted(item)),
                    ))
                    continue
            try:
                outcome = cls.return_allocation(
                    item.allocation_id,
                    item.counted_quantity,
                    item.consumed_quantity,
                    item.waste_quantity,
                    action=item.action,
                    order=order,
                    user=user,
                )
                result.outcomes.append(outcome)
            except KitError as e:
                result.failed.append(ItemFailure.from_error(item.allocation_id, e))

        if result.total_variance != 0:
            logger.warning(
                "kitman.return.order_variance",
                extra={
                    "order": str(order),
                    "total_variance": str(result.total_variance),
                    "items": len(result.variance_warnings),
                },
            )
        return result

    @classmethod
    def return_floor_stock(cls, allocation_id, counted_quantity, user=None):
        """
        Move floor stock left by an allocation back to the warehouse.

        Explicit, user-initiated: floor stock is otherwise untracked. The
        total moved back may not exceed what was left on the floor.

        Returns:
            Updated Allocation
        """
        quantity = _non_negative(counted_quantity, 'counted_quantity')
        if quantity == 0:
            raise InvalidQuantity(field='counted_quantity', requested=quantity)

        with transaction.atomic():
            allocation = lock_allocation(allocation_id)
            if allocation.status != AllocationStatus.FLOOR_STOCK:
                raise InvalidTransition(
                    current=allocation.status,
                    requested=AllocationStatus.RETURNED,
                    message='Only floor stock can be returned this way',
                )

            already = allocation.floor_stock_returned or ZERO
            remaining = (allocation.counted_quantity or ZERO) - already
            if quantity > remaining:
                raise InvalidQuantity(
                    message='More than was left on the floor',
                    requested=quantity,
                    remaining=remaining,
                )

            StockLedger.transfer(
                quantity, allocation.material_id,
                InventoryBucket.WIP, InventoryBucket.RAW,
                transaction_type=TransactionType.RETURN_FROM_WO,
                reference=allocation.order,
                owner_type=allocation.owner_type,
                owner=allocation.owner,
                reason=f"Floor stock returned from {allocation.order.order_number}",
                user=user,
                allocation_id=allocation.pk,
            )
            allocation.floor_stock_returned = already + quantity
            allocation.save(update_fields=['floor_stock_returned', 'updated_at'])

        logger.info(
            "kitman.return.floor_stock",
            extra={"allocation_id": allocation.pk, "qty": str(quantity)},
        )
        return allocation
