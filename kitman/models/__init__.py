"""
Kitman Models.

Core models for material allocation:
- Material, Customer, Product: Master data (read-only to the engine)
- BomRevision, BomItem: What a product is built from
- Order: Customer build orders
- PurchaseOrder, PurchaseOrderLine: Supply on order
- Transaction: Immutable ledger of quantity changes
- StockLevel: Quantity cache per material and bucket
- Allocation: Stock reserved for an order
"""

from kitman.models.allocation import Allocation
from kitman.models.bom import BomItem, BomRevision
from kitman.models.catalog import Customer, Material, Product
from kitman.models.enums import (
    AllocationStatus,
    InventoryBucket,
    OrderStatus,
    OrderType,
    OwnerType,
    PurchaseOrderStatus,
    ResourceType,
    ReturnAction,
    TransactionType,
)
from kitman.models.ledger import StockLevel, Transaction
from kitman.models.order import Order
from kitman.models.purchasing import PurchaseOrder, PurchaseOrderLine

__all__ = [
    'AllocationStatus',
    'InventoryBucket',
    'OrderStatus',
    'OrderType',
    'OwnerType',
    'PurchaseOrderStatus',
    'ResourceType',
    'ReturnAction',
    'TransactionType',
    'Customer',
    'Product',
    'Material',
    'BomRevision',
    'BomItem',
    'Order',
    'PurchaseOrder',
    'PurchaseOrderLine',
    'StockLevel',
    'Transaction',
    'Allocation',
]
