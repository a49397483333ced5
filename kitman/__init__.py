"""
Django Kitman — Material allocation and MRP for contract manufacturing.

Usage:
    from kitman import inventory, mrp, KitError

    inventory.receive(500, resistor)
    inventory.allocate(120, resistor, order)
    inventory.available(resistor)  # 380
    mrp.shortages()
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'inventory':
        from kitman.service import Inventory
        return Inventory
    elif name == 'mrp':
        from kitman.service import Mrp
        return Mrp
    elif name == 'KitError':
        from kitman.exceptions import KitError
        return KitError
    elif name == 'Material':
        from kitman.models.catalog import Material
        return Material
    elif name == 'Order':
        from kitman.models.order import Order
        return Order
    elif name == 'Allocation':
        from kitman.models.allocation import Allocation
        return Allocation
    elif name == 'Transaction':
        from kitman.models.ledger import Transaction
        return Transaction
    elif name == 'AllocationStatus':
        from kitman.models.enums import AllocationStatus
        return AllocationStatus
    elif name == 'TransactionType':
        from kitman.models.enums import TransactionType
        return TransactionType
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'inventory',
    'mrp',
    'KitError',
    'Material',
    'Order',
    'Allocation',
    'Transaction',
    'AllocationStatus',
    'TransactionType',
]

__version__ = '0.1.0'
