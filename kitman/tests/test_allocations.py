"""
Tests for the allocation lifecycle: allocate, pick, issue, cancel, auto-consume.
"""

from decimal import Decimal

import pytest

from kitman import inventory, KitError
from kitman.models import (
    Allocation,
    AllocationStatus,
    InventoryBucket,
    Transaction,
    TransactionType,
)


pytestmark = pytest.mark.django_db


class TestAllocate:
    """Tests for inventory.allocate()."""

    def test_creates_active_allocation(self, resistor, order, user):
        inventory.receive(Decimal('50'), resistor)
        allocation = inventory.allocate(Decimal('20'), resistor, order, user=user)

        assert allocation.status == AllocationStatus.ACTIVE
        assert allocation.quantity == Decimal('20')
        assert allocation.created_by == user
        assert inventory.available(resistor) == Decimal('30')

    def test_insufficient_stock(self, resistor, order):
        inventory.receive(Decimal('5'), resistor)

        with pytest.raises(KitError) as exc:
            inventory.allocate(Decimal('6'), resistor, order)

        assert exc.value.code == 'INSUFFICIENT_STOCK'
        assert exc.value.available == Decimal('5')
        assert exc.value.requested == Decimal('6')
        assert not Allocation.objects.exists()

    @pytest.mark.parametrize('qty', [Decimal('0'), Decimal('-1'), Decimal('NaN')])
    def test_invalid_quantity(self, resistor, order, qty):
        inventory.receive(Decimal('5'), resistor)

        with pytest.raises(KitError) as exc:
            inventory.allocate(qty, resistor, order)
        assert exc.value.code == 'INVALID_QUANTITY'

    def test_one_active_allocation_per_material_and_order(self, resistor, order):
        inventory.receive(Decimal('50'), resistor)
        inventory.allocate(Decimal('5'), resistor, order)

        with pytest.raises(KitError) as exc:
            inventory.allocate(Decimal('5'), resistor, order)
        assert exc.value.code == 'ALLOCATION_EXISTS'

    def test_new_allocation_allowed_once_previous_is_picked(self, resistor, order):
        inventory.receive(Decimal('50'), resistor)
        first = inventory.allocate(Decimal('5'), resistor, order)
        inventory.pick(order, [first.pk])

        second = inventory.allocate(Decimal('5'), resistor, order)
        assert second.status == AllocationStatus.ACTIVE

    def test_unknown_order(self, resistor):
        with pytest.raises(KitError) as exc:
            inventory.allocate(Decimal('1'), resistor, 987654)
        assert exc.value.code == 'NOT_FOUND'


class TestAllocateForOrder:
    """Tests for inventory.allocate_for_order()."""

    def test_allocates_full_bom(self, stocked, order, resistor, capacitor, connector):
        result = inventory.allocate_for_order(order)

        assert result.fully_allocated == 3
        assert result.partially_allocated == 0
        assert result.not_allocated == 0
        quantities = {a.material_id: a.quantity for a in Allocation.objects.filter(order=order)}
        assert quantities == {
            resistor.pk: Decimal('20'),
            capacitor.pk: Decimal('10'),
            connector.pk: Decimal('10'),
        }

    def test_all_or_nothing_by_default(self, order, resistor, capacitor, connector):
        inventory.receive(Decimal('100'), resistor)
        inventory.receive(Decimal('100'), capacitor)
        inventory.receive(Decimal('3'), connector)

        with pytest.raises(KitError) as exc:
            inventory.allocate_for_order(order)

        assert exc.value.code == 'INSUFFICIENT_STOCK'
        shortages = {k: Decimal(v) for k, v in exc.value.data['shortages'].items()}
        assert shortages == {str(connector.pk): Decimal('7')}
        assert not Allocation.objects.exists()

    def test_available_only_reserves_what_exists(self, order, resistor, capacitor, connector):
        inventory.receive(Decimal('100'), resistor)
        inventory.receive(Decimal('4'), capacitor)

        result = inventory.allocate_for_order(order, available_only=True)

        assert result.fully_allocated == 1
        assert result.partially_allocated == 1
        assert result.not_allocated == 1
        assert result.shortages == {capacitor.pk: Decimal('6'), connector.pk: Decimal('10')}
        assert inventory.allocated(capacitor) == Decimal('4')

    def test_existing_reservations_are_netted(self, stocked, order, resistor):
        first = inventory.allocate(Decimal('15'), resistor, order)
        inventory.pick(order, [first.pk])

        inventory.allocate_for_order(order)

        assert inventory.allocated(resistor) == Decimal('20')
        assert Allocation.objects.filter(order=order, material=resistor).count() == 2

    def test_tops_up_active_allocation(self, stocked, order, resistor):
        inventory.allocate(Decimal('5'), resistor, order)

        inventory.allocate_for_order(order)

        allocation = Allocation.objects.get(order=order, material=resistor)
        assert allocation.quantity == Decimal('20')

    def test_scrap_factor_increases_requirement(self, stocked, order, bom, capacitor):
        bom.items.filter(material=capacitor).update(scrap_factor=Decimal('10'))

        inventory.allocate_for_order(order)

        assert inventory.allocated(capacitor) == Decimal('11')


class TestPick:
    """Tests for inventory.pick()."""

    def test_picks_all_active_allocations(self, stocked, order):
        inventory.allocate_for_order(order)
        before = Transaction.objects.count()

        result = inventory.pick(order)

        assert len(result.picked) == 3
        assert result.failed == []
        assert set(Allocation.objects.values_list('status', flat=True)) == {AllocationStatus.PICKED}
        assert Transaction.objects.count() == before

    def test_pick_never_changes_quantity_or_stock(self, stocked, order, resistor):
        allocation = inventory.allocate(Decimal('12'), resistor, order)
        snap_before = inventory.snapshot(resistor)

        inventory.pick(order, [allocation.pk])

        allocation.refresh_from_db()
        assert allocation.quantity == Decimal('12')
        assert inventory.snapshot(resistor) == snap_before

    def test_double_pick_reports_invalid_transition(self, stocked, order, resistor):
        allocation = inventory.allocate(Decimal('12'), resistor, order)
        inventory.pick(order, [allocation.pk])

        result = inventory.pick(order, [allocation.pk])

        assert result.picked == []
        assert len(result.failed) == 1
        assert result.failed[0].code == 'INVALID_TRANSITION'
        assert result.failed[0].data['current'] == AllocationStatus.PICKED

    def test_partial_failure_isolated(self, stocked, order, resistor, capacitor, make_order):
        good = inventory.allocate(Decimal('2'), resistor, order)
        picked = inventory.allocate(Decimal('2'), capacitor, order)
        inventory.pick(order, [picked.pk])
        foreign = inventory.allocate(Decimal('1'), resistor, make_order(quantity=1))

        result = inventory.pick(order, [good.pk, picked.pk, foreign.pk, 31337])

        assert result.picked == [good.pk]
        assert [f.code for f in result.failed] == [
            'INVALID_TRANSITION', 'WRONG_ORDER', 'NOT_FOUND',
        ]
        foreign.refresh_from_db()
        assert foreign.status == AllocationStatus.ACTIVE

    def test_malformed_ids_reported_not_found(self, stocked, order, resistor):
        good = inventory.allocate(Decimal('2'), resistor, order)

        result = inventory.pick(order, ['abc', None, good.pk])

        assert result.picked == [good.pk]
        assert [(f.allocation_id, f.code) for f in result.failed] == [
            ('abc', 'NOT_FOUND'), (None, 'NOT_FOUND'),
        ]

    def test_result_as_dict(self, stocked, order, resistor):
        allocation = inventory.allocate(Decimal('1'), resistor, order)

        data = inventory.pick(order, [allocation.pk, 555]).as_dict()

        assert data['picked'] == 1
        assert data['failed'][0]['allocation_id'] == 555


class TestIssue:
    """Tests for inventory.issue()."""

    def test_issue_moves_stock_to_wip(self, stocked, order, resistor):
        allocation = inventory.allocate(Decimal('12'), resistor, order)
        inventory.pick(order)

        result = inventory.issue(order)

        assert result.issued == [allocation.pk]
        allocation.refresh_from_db()
        assert allocation.status == AllocationStatus.ISSUED
        assert allocation.quantity == Decimal('12')

        assert inventory.on_hand(resistor) == Decimal('100')
        assert inventory.on_hand(resistor, InventoryBucket.RAW) == Decimal('88')
        assert inventory.on_hand(resistor, InventoryBucket.WIP) == Decimal('12')

        entries = Transaction.objects.filter(transaction_type=TransactionType.ISSUE_TO_WO)
        assert sorted(e.quantity for e in entries) == [Decimal('-12'), Decimal('12')]
        assert all(e.reference == order for e in entries)

    def test_issue_keeps_availability(self, stocked, order, resistor):
        allocation = inventory.allocate(Decimal('12'), resistor, order)
        inventory.pick(order)
        before = inventory.snapshot(resistor)

        inventory.issue(order, [allocation.pk])

        after = inventory.snapshot(resistor)
        assert after.available == before.available
        assert after.allocated == before.allocated
        assert after.in_process == Decimal('12')

    def test_issue_from_active_fails(self, stocked, order, resistor):
        """An allocation must be picked before it can be issued."""
        allocation = inventory.allocate(Decimal('12'), resistor, order)

        result = inventory.issue(order, [allocation.pk])

        assert result.issued == []
        assert result.failed[0].code == 'INVALID_TRANSITION'
        assert not Transaction.objects.filter(transaction_type=TransactionType.ISSUE_TO_WO).exists()
        allocation.refresh_from_db()
        assert allocation.status == AllocationStatus.ACTIVE


class TestCancel:
    """Tests for inventory.cancel() and inventory.deallocate_for_order()."""

    def test_cancel_active_and_picked(self, stocked, order, resistor, capacitor):
        active = inventory.allocate(Decimal('1'), resistor, order)
        picked = inventory.allocate(Decimal('1'), capacitor, order)
        inventory.pick(order, [picked.pk])

        inventory.cancel(active.pk, reason='Order on hold')
        inventory.cancel(picked.pk)

        active.refresh_from_db()
        assert active.status == AllocationStatus.CANCELLED
        assert active.resolved_at is not None
        assert active.metadata['cancel_reason'] == 'Order on hold'
        assert inventory.allocated(resistor) == Decimal('0')

    def test_cannot_cancel_issued(self, issued_allocation):
        with pytest.raises(KitError) as exc:
            inventory.cancel(issued_allocation.pk)
        assert exc.value.code == 'INVALID_TRANSITION'

    def test_deallocate_for_order(self, stocked, order):
        inventory.allocate_for_order(order)
        first = Allocation.objects.filter(order=order).first()
        inventory.pick(order, [first.pk])
        inventory.issue(order, [first.pk])

        cancelled = inventory.deallocate_for_order(order)

        assert cancelled == 2
        statuses = dict(Allocation.objects.values_list('pk', 'status'))
        assert statuses.pop(first.pk) == AllocationStatus.ISSUED
        assert set(statuses.values()) == {AllocationStatus.CANCELLED}


class TestAutoConsume:
    """Tests for inventory.auto_consume()."""

    def test_consumes_issued_through_hole_parts(self, stocked, order, connector, resistor):
        inventory.allocate_for_order(order)
        inventory.pick(order)
        inventory.issue(order)

        result = inventory.auto_consume(order, 'TH')

        assert result.auto_consumed == 1
        assert result.as_dict() == {'auto_consumed': 1, 'skipped': []}
        th = Allocation.objects.get(order=order, material=connector)
        assert th.status == AllocationStatus.CONSUMED
        assert th.consumed_quantity == Decimal('10')
        assert inventory.on_hand(connector) == Decimal('40')
        assert inventory.on_hand(connector, InventoryBucket.WIP) == Decimal('0')
        smt = Allocation.objects.get(order=order, material=resistor)
        assert smt.status == AllocationStatus.ISSUED

    def test_default_resource_type_is_th(self, stocked, order):
        inventory.allocate_for_order(order)
        inventory.pick(order)
        inventory.issue(order)

        assert inventory.auto_consume(order).resource_type == 'TH'

    def test_nothing_to_consume(self, stocked, order):
        inventory.allocate_for_order(order)

        assert inventory.auto_consume(order, 'TH').auto_consumed == 0

    def test_over_issued_material_left_for_return(self, stocked, order, connector):
        """15 connectors issued against a requirement of 10: 5 must come back."""
        allocation = inventory.allocate(Decimal('15'), connector, order)
        inventory.pick(order)
        inventory.issue(order)

        result = inventory.auto_consume(order, 'TH')

        assert result.auto_consumed == 0
        assert result.skipped == [allocation.pk]
        assert result.as_dict() == {'auto_consumed': 0, 'skipped': [allocation.pk]}
        allocation.refresh_from_db()
        assert allocation.status == AllocationStatus.ISSUED
        assert inventory.on_hand(connector, InventoryBucket.WIP) == Decimal('15')
        assert not Transaction.objects.filter(
            material=connector, transaction_type=TransactionType.CONSUMPTION,
        ).exists()

    def test_split_issue_judged_per_material(self, stocked, order, connector):
        first = inventory.allocate(Decimal('6'), connector, order)
        inventory.pick(order)
        second = inventory.allocate(Decimal('6'), connector, order)
        inventory.pick(order)
        inventory.issue(order)

        result = inventory.auto_consume(order, 'TH')

        assert result.skipped == [first.pk, second.pk]
