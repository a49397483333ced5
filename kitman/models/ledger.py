"""
Ledger models — immutable inventory transactions and the stock level cache.
"""

import logging
from decimal import Decimal

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models, transaction
from django.db.models import F, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from kitman.exceptions import KitError
from kitman.models.enums import InventoryBucket, OwnerType, TransactionType

logger = logging.getLogger('kitman')


class StockLevel(models.Model):
    """
    Running total of a material in one custody bucket.

    Performance:
    - _quantity is a cache updated atomically by Transaction.save()
    - Read is O(1), not O(N)
    - Use recalculate() for audit/correction
    """

    material = models.ForeignKey(
        'kitman.Material',
        on_delete=models.PROTECT,
        related_name='stock_levels',
        verbose_name=_('Material'),
    )
    bucket = models.CharField(
        max_length=10,
        choices=InventoryBucket.choices,
        default=InventoryBucket.RAW,
        verbose_name=_('Bucket'),
    )
    _quantity = models.DecimalField(
        max_digits=14,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Quantity'),
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('Stock level')
        verbose_name_plural = _('Stock levels')
        constraints = [
            models.UniqueConstraint(
                fields=['material', 'bucket'],
                name='unique_stock_level_bucket',
            )
        ]

    @property
    def quantity(self) -> Decimal:
        return self._quantity

    def replay(self) -> Decimal:
        """Sum of this bucket's ledger entries, ignoring the cache."""
        return Transaction.objects.filter(
            material_id=self.material_id,
            bucket=self.bucket,
        ).aggregate(t=Coalesce(Sum('quantity'), Decimal('0')))['t']

    def recalculate(self) -> Decimal:
        """
        Recalculate quantity from the ledger.

        Returns:
            New calculated quantity
        """
        total = self.replay()

        if total != self._quantity:
            old = self._quantity
            self._quantity = total
            self.save(update_fields=['_quantity', 'updated_at'])

            logger.warning(
                "kitman.stock_level.recalculated",
                extra={
                    "material_id": self.material_id,
                    "bucket": self.bucket,
                    "old": str(old),
                    "new": str(total),
                },
            )

        return total

    def __str__(self) -> str:
        return f"{self.material_id} [{self.bucket}]: {self._quantity}"


class Transaction(models.Model):
    """
    Immutable record of a stock quantity change.

    Rules:
    - NEVER update() or delete()
    - Corrections are new Transactions with the inverse quantity
    - Updates StockLevel._quantity atomically on save()

    This is the ONLY model that changes on-hand quantity.
    """

    material = models.ForeignKey(
        'kitman.Material',
        on_delete=models.PROTECT,
        related_name='transactions',
        verbose_name=_('Material'),
    )
    quantity = models.DecimalField(
        max_digits=14,
        decimal_places=4,
        verbose_name=_('Quantity'),
        help_text=_('Positive = into the bucket, negative = out of it'),
    )
    transaction_type = models.CharField(
        max_length=20,
        choices=TransactionType.choices,
        db_index=True,
        verbose_name=_('Type'),
    )
    bucket = models.CharField(
        max_length=10,
        choices=InventoryBucket.choices,
        default=InventoryBucket.RAW,
        verbose_name=_('Bucket'),
    )

    # Causing document (order, allocation, cycle count...)
    reference_type = models.ForeignKey(
        ContentType,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Reference type'),
    )
    reference_id = models.PositiveIntegerField(null=True, blank=True, verbose_name=_('Reference ID'))
    reference = GenericForeignKey('reference_type', 'reference_id')

    owner_type = models.CharField(
        max_length=10,
        choices=OwnerType.choices,
        default=OwnerType.COMPANY,
        verbose_name=_('Owner type'),
    )
    owner = models.ForeignKey(
        'kitman.Customer',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Owner'),
    )
    unit_cost = models.DecimalField(
        max_digits=14,
        decimal_places=4,
        null=True,
        blank=True,
        verbose_name=_('Unit cost'),
    )
    location_code = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        verbose_name=_('Location'),
    )
    reason = models.CharField(max_length=255, verbose_name=_('Reason'))
    metadata = models.JSONField(default=dict, blank=True, verbose_name=_('Metadata'))

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Created by'),
    )

    class Meta:
        verbose_name = _('Inventory transaction')
        verbose_name_plural = _('Inventory transactions')
        ordering = ['created_at', 'pk']
        indexes = [
            models.Index(fields=['material', 'created_at'], name='kitman_txn_material_idx'),
            models.Index(fields=['reference_type', 'reference_id'], name='kitman_txn_reference_idx'),
        ]

    def save(self, *args, **kwargs):
        """Save the entry and bump the stock level cache atomically."""
        if self.pk:
            raise KitError('IMMUTABLE_TRANSACTION', transaction_id=self.pk)

        if not self.reason:
            raise KitError('REASON_REQUIRED')

        with transaction.atomic():
            super().save(*args, **kwargs)

            level, _created = StockLevel.objects.get_or_create(
                material_id=self.material_id,
                bucket=self.bucket,
            )
            StockLevel.objects.filter(pk=level.pk).update(
                _quantity=F('_quantity') + self.quantity,
                updated_at=timezone.now(),
            )

    def delete(self, *args, **kwargs):
        """Prevent deletion — transactions are immutable."""
        raise KitError('IMMUTABLE_TRANSACTION', transaction_id=self.pk)

    def __str__(self) -> str:
        sign = '+' if self.quantity > 0 else ''
        return f"{self.transaction_type} {sign}{self.quantity} [{self.bucket}] | {self.reason}"
