"""
Tests for return reconciliation.
"""

from decimal import Decimal

import pytest

from kitman import inventory, KitError
from kitman.models import (
    Allocation,
    AllocationStatus,
    InventoryBucket,
    ReturnAction,
    Transaction,
    TransactionType,
)
from kitman.services.returns import ReturnInput


pytestmark = pytest.mark.django_db


def ledger_for(allocation):
    """Reconciliation entries written for an allocation, by type."""
    entries = {}
    for txn in Transaction.objects.filter(metadata__allocation_id=allocation.pk).exclude(
        transaction_type=TransactionType.ISSUE_TO_WO
    ):
        entries.setdefault(txn.transaction_type, []).append((txn.bucket, txn.quantity))
    return entries


class TestReturnAllocation:
    """Tests for inventory.return_allocation()."""

    def test_balanced_return(self, issued_allocation, resistor):
        """10 issued = 6 counted + 3 consumed + 1 waste."""
        raw_before = inventory.on_hand(resistor, InventoryBucket.RAW)

        outcome = inventory.return_allocation(
            issued_allocation.pk, Decimal('6'), Decimal('3'), Decimal('1'),
        )

        assert outcome.variance == Decimal('0')
        assert outcome.warning is None

        allocation = Allocation.objects.get(pk=issued_allocation.pk)
        assert allocation.status == AllocationStatus.RETURNED
        assert allocation.variance_quantity == Decimal('0')
        assert allocation.resolved_at is not None

        entries = ledger_for(allocation)
        assert entries[TransactionType.CONSUMPTION] == [(InventoryBucket.WIP, Decimal('-3'))]
        assert entries[TransactionType.SCRAP] == [(InventoryBucket.WIP, Decimal('-1'))]
        assert sorted(entries[TransactionType.RETURN_FROM_WO]) == [
            (InventoryBucket.RAW, Decimal('6')),
            (InventoryBucket.WIP, Decimal('-6')),
        ]

        assert inventory.on_hand(resistor, InventoryBucket.RAW) == raw_before + Decimal('6')
        assert inventory.on_hand(resistor, InventoryBucket.WIP) == Decimal('0')
        assert inventory.on_hand(resistor) == Decimal('96')
        assert inventory.available(resistor) == Decimal('96')

    def test_quantities_always_account_for_issue(self, issued_allocation):
        outcome = inventory.return_allocation(
            issued_allocation.pk, Decimal('4'), Decimal('3'), Decimal('1'),
        )

        assert outcome.counted + outcome.consumed + outcome.waste + outcome.variance == outcome.issued
        assert outcome.variance == Decimal('2')

    def test_missing_material_stays_visible(self, issued_allocation, resistor):
        """Unexplained loss is left in WIP, not written off."""
        outcome = inventory.return_allocation(
            issued_allocation.pk, Decimal('4'), Decimal('3'), Decimal('1'),
        )

        assert outcome.warning.variance == Decimal('2')
        assert inventory.on_hand(resistor, InventoryBucket.WIP) == Decimal('2')

    def test_surplus_gives_negative_variance(self, issued_allocation):
        outcome = inventory.return_allocation(
            issued_allocation.pk, Decimal('8'), Decimal('3'), Decimal('1'),
        )

        assert outcome.variance == Decimal('-2')

    def test_floor_stock_writes_no_return_entry(self, issued_allocation, resistor):
        outcome = inventory.return_allocation(
            issued_allocation.pk, Decimal('6'), Decimal('4'), Decimal('0'),
            action=ReturnAction.FLOOR_STOCK,
        )

        allocation = Allocation.objects.get(pk=issued_allocation.pk)
        assert allocation.status == AllocationStatus.FLOOR_STOCK
        assert outcome.variance == Decimal('0')
        entries = ledger_for(allocation)
        assert TransactionType.RETURN_FROM_WO not in entries
        assert TransactionType.SCRAP not in entries
        assert inventory.on_hand(resistor, InventoryBucket.WIP) == Decimal('6')

    def test_requires_issued(self, stocked, order, resistor):
        allocation = inventory.allocate(Decimal('5'), resistor, order)

        with pytest.raises(KitError) as exc:
            inventory.return_allocation(allocation.pk, Decimal('5'), Decimal('0'))

        assert exc.value.code == 'INVALID_TRANSITION'
        assert not Transaction.objects.filter(transaction_type=TransactionType.CONSUMPTION).exists()

    def test_cannot_return_twice(self, issued_allocation):
        inventory.return_allocation(issued_allocation.pk, Decimal('10'), Decimal('0'))

        with pytest.raises(KitError) as exc:
            inventory.return_allocation(issued_allocation.pk, Decimal('10'), Decimal('0'))
        assert exc.value.code == 'INVALID_TRANSITION'

    @pytest.mark.parametrize('counted, consumed, waste', [
        (Decimal('-1'), Decimal('0'), Decimal('0')),
        (Decimal('1'), Decimal('NaN'), Decimal('0')),
        (Decimal('1'), Decimal('0'), Decimal('Infinity')),
    ])
    def test_invalid_quantities(self, issued_allocation, counted, consumed, waste):
        with pytest.raises(KitError) as exc:
            inventory.return_allocation(issued_allocation.pk, counted, consumed, waste)

        assert exc.value.code == 'INVALID_QUANTITY'
        issued_allocation.refresh_from_db()
        assert issued_allocation.status == AllocationStatus.ISSUED


class TestReturnOrder:
    """Tests for inventory.return_order()."""

    @pytest.fixture
    def issued_order(self, stocked, order):
        inventory.allocate_for_order(order)
        inventory.pick(order)
        inventory.issue(order)
        return order

    def test_totals(self, issued_order, resistor, capacitor):
        by_material = dict(
            Allocation.objects.filter(order=issued_order).values_list('material_id', 'pk')
        )
        result = inventory.return_order(issued_order, [
            ReturnInput(by_material[resistor.pk], Decimal('2'), Decimal('17'), Decimal('1')),
            {
                'allocation_id': by_material[capacitor.pk],
                'counted_quantity': Decimal('1'),
                'consumed_quantity': Decimal('9'),
                'waste_quantity': Decimal('0'),
            },
        ])

        assert result.total_materials_returned == 2
        assert result.total_counted == Decimal('3')
        assert result.total_consumed == Decimal('26')
        assert result.total_waste == Decimal('1')
        assert result.total_variance == Decimal('0')
        assert result.variance_warnings == []
        assert result.failed == []

    def test_failures_isolated(self, issued_order, resistor, capacitor, connector):
        ids = dict(Allocation.objects.filter(order=issued_order).values_list('material_id', 'pk'))
        # connector already auto-consumed, so its return must fail
        inventory.auto_consume(issued_order, 'TH')

        result = inventory.return_order(issued_order, [
            ReturnInput(ids[resistor.pk], Decimal('0'), Decimal('20')),
            ReturnInput(ids[connector.pk], Decimal('0'), Decimal('10')),
            ReturnInput(ids[capacitor.pk], Decimal('0'), Decimal('-1')),
        ])

        assert result.total_materials_returned == 1
        assert [f.code for f in result.failed] == ['INVALID_TRANSITION', 'INVALID_QUANTITY']
        assert Allocation.objects.get(pk=ids[resistor.pk]).status == AllocationStatus.RETURNED
        assert Allocation.objects.get(pk=ids[capacitor.pk]).status == AllocationStatus.ISSUED

    def test_incomplete_line_rejected(self, issued_order, resistor, capacitor):
        ids = dict(Allocation.objects.filter(order=issued_order).values_list('material_id', 'pk'))

        result = inventory.return_order(issued_order, [
            {'allocation_id': ids[capacitor.pk], 'counted_quantity': Decimal('1')},
            ReturnInput(ids[resistor.pk], Decimal('0'), Decimal('20')),
        ])

        assert result.total_materials_returned == 1
        assert [(f.allocation_id, f.code) for f in result.failed] == [
            (ids[capacitor.pk], 'INVALID_QUANTITY'),
        ]
        assert result.failed[0].data['keys'] == ['allocation_id', 'counted_quantity']
        assert Allocation.objects.get(pk=ids[capacitor.pk]).status == AllocationStatus.ISSUED

    def test_variance_surfaced(self, issued_order, resistor, caplog):
        ids = dict(Allocation.objects.filter(order=issued_order).values_list('material_id', 'pk'))

        with caplog.at_level('WARNING', logger='kitman'):
            result = inventory.return_order(issued_order, [
                ReturnInput(ids[resistor.pk], Decimal('5'), Decimal('12')),
            ])

        assert result.total_variance == Decimal('3')
        assert result.has_variance
        assert result.variance_warnings[0].allocation_id == ids[resistor.pk]
        assert Decimal(result.as_dict()['total_variance']) == Decimal('3')
        assert any(r.getMessage() == 'kitman.return.order_variance' for r in caplog.records)

    def test_allocation_of_other_order_rejected(self, issued_allocation, make_order):
        other = make_order(quantity=1)

        result = inventory.return_order(other, [
            ReturnInput(issued_allocation.pk, Decimal('10'), Decimal('0')),
        ])

        assert result.failed[0].code == 'WRONG_ORDER'


class TestIssuedMaterials:
    """Tests for inventory.issued_materials() and allocations_for_order()."""

    def test_expected_return(self, stocked, order, resistor, capacitor):
        over = inventory.allocate(Decimal('25'), resistor, order)
        exact = inventory.allocate(Decimal('10'), capacitor, order)
        inventory.pick(order)
        inventory.issue(order)

        rows = {row.allocation_id: row for row in inventory.issued_materials(order)}

        assert rows[over.pk].required == Decimal('20')
        assert rows[over.pk].expected_return == Decimal('5')
        assert rows[exact.pk].expected_return == Decimal('0')

    def test_closed_allocations_hidden_by_default(self, issued_allocation, order):
        inventory.return_allocation(issued_allocation.pk, Decimal('10'), Decimal('0'))

        assert list(inventory.allocations_for_order(order)) == []
        assert list(inventory.allocations_for_order(order, include_closed=True)) == [issued_allocation]


class TestReturnFloorStock:
    """Tests for inventory.return_floor_stock()."""

    @pytest.fixture
    def floor_stock(self, issued_allocation):
        inventory.return_allocation(
            issued_allocation.pk, Decimal('6'), Decimal('4'),
            action=ReturnAction.FLOOR_STOCK,
        )
        return Allocation.objects.get(pk=issued_allocation.pk)

    def test_moves_floor_stock_back(self, floor_stock, resistor):
        raw_before = inventory.on_hand(resistor, InventoryBucket.RAW)

        allocation = inventory.return_floor_stock(floor_stock.pk, Decimal('4'))

        assert allocation.floor_stock_returned == Decimal('4')
        assert allocation.status == AllocationStatus.FLOOR_STOCK
        assert inventory.on_hand(resistor, InventoryBucket.RAW) == raw_before + Decimal('4')
        assert inventory.on_hand(resistor, InventoryBucket.WIP) == Decimal('2')

    def test_cannot_exceed_what_was_left(self, floor_stock):
        inventory.return_floor_stock(floor_stock.pk, Decimal('4'))

        with pytest.raises(KitError) as exc:
            inventory.return_floor_stock(floor_stock.pk, Decimal('3'))
        assert exc.value.code == 'INVALID_QUANTITY'

    def test_only_floor_stock(self, issued_allocation):
        with pytest.raises(KitError) as exc:
            inventory.return_floor_stock(issued_allocation.pk, Decimal('1'))
        assert exc.value.code == 'INVALID_TRANSITION'
