"""
Pytest fixtures for Kitman tests.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model

from kitman import inventory
from kitman.adapters import reset_supply_source
from kitman.models import (
    BomItem,
    BomRevision,
    Customer,
    Material,
    Order,
    OrderType,
    Product,
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderStatus,
    ResourceType,
)


User = get_user_model()


@pytest.fixture(autouse=True)
def _fresh_supply_source():
    """Drop the cached supply source so settings overrides take effect."""
    reset_supply_source()
    yield
    reset_supply_source()


@pytest.fixture
def user(db):
    """Create a test user."""
    return User.objects.create_user(
        username='planner',
        password='testpass123'
    )


@pytest.fixture
def customer(db):
    return Customer.objects.create(code='ACME', name='Acme Controls')


@pytest.fixture
def other_customer(db):
    return Customer.objects.create(code='BOLT', name='Bolt Robotics')


@pytest.fixture
def resistor(db):
    return Material.objects.create(
        internal_part_number='RES-10K-0603',
        description='Resistor 10k 0603',
    )


@pytest.fixture
def capacitor(db):
    return Material.objects.create(
        internal_part_number='CAP-100N-0402',
        description='Capacitor 100nF 0402',
    )


@pytest.fixture
def connector(db):
    return Material.objects.create(
        internal_part_number='CON-HDR-2X5',
        description='Header 2x5 through-hole',
    )


@pytest.fixture
def product(db, customer):
    return Product.objects.create(part_number='PCA-1000', name='Controller board', customer=customer)


@pytest.fixture
def bom(db, product, resistor, capacitor, connector):
    """
    Revision A of the controller board:

    - 2x resistor (SMT)
    - 1x capacitor (SMT)
    - 1x connector (TH)
    """
    revision = BomRevision.objects.create(product=product, revision_number='A')
    BomItem.objects.create(
        bom_revision=revision, material=resistor, line_number=1,
        quantity_required=Decimal('2'), resource_type=ResourceType.SMT,
        reference_designators='R1,R2',
    )
    BomItem.objects.create(
        bom_revision=revision, material=capacitor, line_number=2,
        quantity_required=Decimal('1'), resource_type=ResourceType.SMT,
        reference_designators='C1',
    )
    BomItem.objects.create(
        bom_revision=revision, material=connector, line_number=3,
        quantity_required=Decimal('1'), resource_type=ResourceType.TH,
        reference_designators='J1',
    )
    return revision


@pytest.fixture
def today():
    return date.today()


@pytest.fixture
def make_order(db, customer, product, bom):
    """Factory for orders against the default BOM."""
    counter = {'n': 0}

    def _make(quantity=10, due_date=None, **kwargs):
        counter['n'] += 1
        defaults = {
            'order_number': f'WO-{counter["n"]:04d}',
            'customer': customer,
            'product': product,
            'bom_revision': bom,
            'quantity': quantity,
            'due_date': due_date,
            'order_type': OrderType.TURNKEY,
        }
        defaults.update(kwargs)
        return Order.objects.create(**defaults)

    return _make


@pytest.fixture
def order(make_order, today):
    """Open order for 10 boards due in a week."""
    return make_order(quantity=10, due_date=today + timedelta(days=7))


@pytest.fixture
def stocked(resistor, capacitor, connector):
    """Enough warehouse stock for the default order (2x10, 1x10, 1x10)."""
    inventory.receive(Decimal('100'), resistor, reason='Initial stock')
    inventory.receive(Decimal('50'), capacitor, reason='Initial stock')
    inventory.receive(Decimal('50'), connector, reason='Initial stock')


@pytest.fixture
def make_po(db):
    """Factory for an open purchase order with one line."""
    counter = {'n': 0}

    def _make(material, ordered, received=Decimal('0'), status=PurchaseOrderStatus.CONFIRMED):
        counter['n'] += 1
        po = PurchaseOrder.objects.create(po_number=f'PO-{counter["n"]:04d}', status=status)
        PurchaseOrderLine.objects.create(
            purchase_order=po,
            material=material,
            quantity_ordered=Decimal(ordered),
            quantity_received=Decimal(received),
        )
        return po

    return _make


@pytest.fixture
def issued_allocation(stocked, resistor, order):
    """Resistor allocation of 10 for the default order, picked and issued."""
    allocation = inventory.allocate(Decimal('10'), resistor, order)
    inventory.pick(order, [allocation.pk])
    inventory.issue(order, [allocation.pk])
    allocation.refresh_from_db()
    return allocation
