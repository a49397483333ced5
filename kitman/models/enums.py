"""
Enums for Kitman models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class TransactionType(models.TextChoices):
    """Kind of ledger entry."""
    RECEIPT = 'RECEIPT', _('Receipt')
    CONSUMPTION = 'CONSUMPTION', _('Consumption')
    ADJUSTMENT = 'ADJUSTMENT', _('Adjustment')
    SCRAP = 'SCRAP', _('Scrap')
    TRANSFER = 'TRANSFER', _('Transfer')
    ISSUE_TO_WO = 'ISSUE_TO_WO', _('Issue to work order')
    RETURN_FROM_WO = 'RETURN_FROM_WO', _('Return from work order')


class InventoryBucket(models.TextChoices):
    """
    Custody bucket of a ledger entry.

    RAW: Unrestricted warehouse stock, the pool allocations draw from.
    WIP: Issued to the production floor; still on hand, no longer on the shelf.
    """
    RAW = 'RAW', _('Raw')
    WIP = 'WIP', _('Work in process')


class OwnerType(models.TextChoices):
    """Who owns the stock (consigned parts belong to the customer)."""
    COMPANY = 'COMPANY', _('Company')
    CUSTOMER = 'CUSTOMER', _('Customer')


class AllocationStatus(models.TextChoices):
    """Allocation lifecycle status."""
    ACTIVE = 'ACTIVE', _('Active')              # Reserved, not yet pulled
    PICKED = 'PICKED', _('Picked')              # Pulled from the shelf, still in warehouse
    ISSUED = 'ISSUED', _('Issued')              # Handed to production
    CONSUMED = 'CONSUMED', _('Consumed')        # Used up on the floor
    RETURNED = 'RETURNED', _('Returned')        # Remainder back to warehouse
    FLOOR_STOCK = 'FLOOR_STOCK', _('Floor stock')  # Remainder left on the line
    CANCELLED = 'CANCELLED', _('Cancelled')

    @classmethod
    def open_states(cls) -> list[str]:
        """States that still hold stock against an order."""
        return [cls.ACTIVE, cls.PICKED, cls.ISSUED]


class OrderStatus(models.TextChoices):
    ENTERED = 'ENTERED', _('Entered')
    KITTING = 'KITTING', _('Kitting')
    SMT = 'SMT', _('SMT')
    TH = 'TH', _('Through-hole')
    ON_HOLD = 'ON_HOLD', _('On hold')
    SHIPPED = 'SHIPPED', _('Shipped')
    COMPLETED = 'COMPLETED', _('Completed')
    CANCELLED = 'CANCELLED', _('Cancelled')

    @classmethod
    def closed_states(cls) -> list[str]:
        return [cls.SHIPPED, cls.COMPLETED, cls.CANCELLED]


class OrderType(models.TextChoices):
    """TURNKEY: we buy the parts. CONSIGNMENT: the customer supplies them."""
    TURNKEY = 'TURNKEY', _('Turnkey')
    CONSIGNMENT = 'CONSIGNMENT', _('Consignment')


class ResourceType(models.TextChoices):
    """Production process a BOM line is placed by."""
    SMT = 'SMT', _('Surface mount')
    TH = 'TH', _('Through-hole')
    MECH = 'MECH', _('Mechanical')
    PCB = 'PCB', _('Bare board')
    DNP = 'DNP', _('Do not place')


class PurchaseOrderStatus(models.TextChoices):
    DRAFT = 'DRAFT', _('Draft')
    SUBMITTED = 'SUBMITTED', _('Submitted')
    CONFIRMED = 'CONFIRMED', _('Confirmed')
    PARTIALLY_RECEIVED = 'PARTIALLY_RECEIVED', _('Partially received')
    RECEIVED = 'RECEIVED', _('Received')
    CLOSED = 'CLOSED', _('Closed')
    CANCELLED = 'CANCELLED', _('Cancelled')

    @classmethod
    def open_states(cls) -> list[str]:
        """States whose unreceived quantity counts as on order."""
        return [cls.SUBMITTED, cls.CONFIRMED, cls.PARTIALLY_RECEIVED]


class ReturnAction(models.TextChoices):
    """What happens to the counted remainder of an issued allocation."""
    RETURN = 'RETURN', _('Return to warehouse')
    FLOOR_STOCK = 'FLOOR_STOCK', _('Leave as floor stock')
