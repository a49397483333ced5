"""
Stock ledger — appending transactions (receive, adjust, scrap, transfer).

All writers lock the material row first; it is the per-material
serialization point shared with allocation creation.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import Sum
from django.db.models.functions import Coalesce

from kitman.exceptions import InvalidQuantity, KitError, NotFound
from kitman.models.catalog import Material
from kitman.models.enums import InventoryBucket, OwnerType, TransactionType
from kitman.models.ledger import StockLevel, Transaction

logger = logging.getLogger('kitman')

# Types always stored as stock leaving / entering the bucket
ALWAYS_NEGATIVE = (TransactionType.CONSUMPTION, TransactionType.SCRAP)
ALWAYS_POSITIVE = (TransactionType.RECEIPT,)

DEFAULT_REASONS = {
    TransactionType.RECEIPT: 'Receipt',
    TransactionType.CONSUMPTION: 'Consumption',
    TransactionType.ADJUSTMENT: 'Adjustment',
    TransactionType.SCRAP: 'Scrap',
    TransactionType.TRANSFER: 'Transfer',
    TransactionType.ISSUE_TO_WO: 'Issue to work order',
    TransactionType.RETURN_FROM_WO: 'Return from work order',
}


def to_quantity(value, field='quantity') -> Decimal:
    """
    Coerce `value` to a finite Decimal.

    Raises:
        InvalidQuantity: For None, non-numeric, NaN or infinite values
    """
    if isinstance(value, bool) or value is None:
        raise InvalidQuantity(field=field, value=value)
    try:
        quantity = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidQuantity(field=field, value=value) from None
    if not quantity.is_finite():
        raise InvalidQuantity(field=field, value=str(value))
    return quantity


def lock_material(material) -> Material:
    """
    Lock and return the material row. Must run inside transaction.atomic().

    Raises:
        NotFound: If the material does not exist
    """
    pk = material.pk if isinstance(material, Material) else material
    try:
        return Material.objects.select_for_update().get(pk=pk)
    except Material.DoesNotExist:
        raise NotFound('material', pk) from None


def normalize_sign(quantity: Decimal, transaction_type) -> Decimal:
    if transaction_type in ALWAYS_NEGATIVE:
        return -abs(quantity)
    if transaction_type in ALWAYS_POSITIVE:
        return abs(quantity)
    return quantity


class StockLedger:
    """Append-only ledger methods."""

    @classmethod
    def append(cls, quantity, material, transaction_type,
               bucket=InventoryBucket.RAW, reference=None,
               owner_type=OwnerType.COMPANY, owner=None, unit_cost=None,
               reason=None, user=None, location_code=None, **metadata):
        """
        Append one ledger entry.

        CONSUMPTION and SCRAP are stored negative, RECEIPT positive; other
        types keep the caller's sign. Zero is accepted only for ADJUSTMENT.
        Negative resulting stock is not blocked here.

        Returns:
            Created Transaction

        Raises:
            InvalidQuantity: Non-finite quantity, or zero for a non-adjustment
            NotFound: Unknown material
        """
        quantity = to_quantity(quantity)
        transaction_type = TransactionType(transaction_type)

        if quantity == 0 and transaction_type != TransactionType.ADJUSTMENT:
            raise InvalidQuantity(
                requested=quantity,
                transaction_type=transaction_type,
            )

        quantity = normalize_sign(quantity, transaction_type)

        with transaction.atomic():
            material = lock_material(material)
            txn = Transaction.objects.create(
                material=material,
                quantity=quantity,
                transaction_type=transaction_type,
                bucket=bucket,
                reference=reference,
                owner_type=owner_type,
                owner=owner,
                unit_cost=unit_cost,
                location_code=location_code,
                reason=reason or DEFAULT_REASONS[transaction_type],
                created_by=user,
                metadata=metadata,
            )

        logger.info(
            "kitman.ledger.appended",
            extra={
                "material": str(material),
                "type": transaction_type,
                "bucket": bucket,
                "qty": str(quantity),
                "transaction_id": txn.pk,
            },
        )
        return txn

    @classmethod
    def receive(cls, quantity, material, reference=None, unit_cost=None,
                owner_type=OwnerType.COMPANY, owner=None,
                reason='Receipt', user=None, **metadata):
        """Stock entry into the warehouse (RAW)."""
        if to_quantity(quantity) <= 0:
            raise InvalidQuantity(requested=quantity)
        return cls.append(
            quantity, material, TransactionType.RECEIPT,
            reference=reference, unit_cost=unit_cost,
            owner_type=owner_type, owner=owner,
            reason=reason, user=user, **metadata
        )

    @classmethod
    def scrap(cls, quantity, material, reason, bucket=InventoryBucket.RAW,
              reference=None, user=None, **metadata):
        """Write stock off as scrap."""
        if not reason:
            raise KitError('REASON_REQUIRED')
        return cls.append(
            quantity, material, TransactionType.SCRAP,
            bucket=bucket, reference=reference,
            reason=reason, user=user, **metadata
        )

    @classmethod
    def adjust(cls, material, new_quantity, reason, reference=None, user=None, **metadata):
        """
        Set warehouse (RAW) stock to a counted level.

        Used when a cycle count is approved. A count that matches the
        book is still recorded as a zero adjustment.

        Returns:
            Created Transaction
        """
        if not reason:
            raise KitError('REASON_REQUIRED')
        new_quantity = to_quantity(new_quantity, field='new_quantity')
        if new_quantity < 0:
            raise InvalidQuantity(field='new_quantity', requested=new_quantity)

        with transaction.atomic():
            locked = lock_material(material)
            current = cls.on_hand(locked, bucket=InventoryBucket.RAW)
            return cls.append(
                new_quantity - current, locked, TransactionType.ADJUSTMENT,
                reference=reference, reason=reason, user=user,
                counted=str(new_quantity), book=str(current), **metadata
            )

    @classmethod
    def transfer(cls, quantity, material, from_bucket, to_bucket,
                 transaction_type=TransactionType.TRANSFER, reference=None,
                 owner_type=OwnerType.COMPANY, owner=None,
                 reason=None, user=None, **metadata):
        """
        Move stock between buckets as a pair of entries of the same type.

        The pair nets to zero, so on-hand is unchanged.

        Returns:
            (outgoing, incoming) Transactions
        """
        quantity = to_quantity(quantity)
        if quantity <= 0:
            raise InvalidQuantity(requested=quantity)

        with transaction.atomic():
            outgoing = cls.append(
                -quantity, material, transaction_type, bucket=from_bucket,
                reference=reference, owner_type=owner_type, owner=owner,
                reason=reason, user=user, **metadata
            )
            incoming = cls.append(
                quantity, material, transaction_type, bucket=to_bucket,
                reference=reference, owner_type=owner_type, owner=owner,
                reason=reason, user=user, **metadata
            )
        return outgoing, incoming

    @classmethod
    def reverse(cls, txn, reason, user=None):
        """
        Compensating entry for a previous transaction.

        Transactions are never edited; this appends the negated quantity
        in the same bucket, referencing the original.
        """
        if not reason:
            raise KitError('REASON_REQUIRED')
        # Bypass sign normalization so the inverse really nets to zero
        with transaction.atomic():
            lock_material(txn.material_id)
            return Transaction.objects.create(
                material_id=txn.material_id,
                quantity=-txn.quantity,
                transaction_type=TransactionType.ADJUSTMENT,
                bucket=txn.bucket,
                reference=txn,
                owner_type=txn.owner_type,
                owner_id=txn.owner_id,
                reason=reason,
                created_by=user,
                metadata={'reverses': txn.pk},
            )

    # ══════════════════════════════════════════════════════════════
    # READS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def on_hand(cls, material, bucket=None) -> Decimal:
        """Physical quantity in the building (all buckets unless one is given)."""
        levels = StockLevel.objects.filter(material=material)
        if bucket is not None:
            levels = levels.filter(bucket=bucket)
        return levels.aggregate(t=Coalesce(Sum('_quantity'), Decimal('0')))['t']

    @classmethod
    def replay(cls, material, bucket=None) -> Decimal:
        """Same as on_hand() but summed from the ledger itself."""
        txns = Transaction.objects.filter(material=material)
        if bucket is not None:
            txns = txns.filter(bucket=bucket)
        return txns.aggregate(t=Coalesce(Sum('quantity'), Decimal('0')))['t']

    @classmethod
    def recalculate(cls, material) -> Decimal:
        """
        Rebuild the stock level cache of a material from its ledger.

        Returns:
            Recalculated on-hand quantity
        """
        with transaction.atomic():
            material = lock_material(material)
            buckets = set(
                Transaction.objects.filter(material=material)
                .values_list('bucket', flat=True).distinct()
            )
            for bucket in buckets:
                StockLevel.objects.get_or_create(material=material, bucket=bucket)
            total = Decimal('0')
            for level in StockLevel.objects.filter(material=material):
                total += level.recalculate()
        return total

    @classmethod
    def transactions(cls, material, limit=None):
        """Ledger history of a material, newest first."""
        qs = Transaction.objects.filter(material=material).order_by('-created_at', '-pk')
        if limit:
            qs = qs[:limit]
        return qs
