"""
Allocation model — stock reserved for a customer order.
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from kitman.models.enums import AllocationStatus, OwnerType


class AllocationQuerySet(models.QuerySet):
    """Custom QuerySet for Allocation with lifecycle filters."""

    def open(self):
        """Allocations still holding stock against their order."""
        return self.filter(status__in=AllocationStatus.open_states())

    def for_order(self, order):
        return self.filter(order=order)

    def for_owner(self, owner_type=None, owner=None):
        if owner_type is None:
            return self
        qs = self.filter(owner_type=owner_type)
        if owner_type == OwnerType.CUSTOMER:
            qs = qs.filter(owner=owner)
        return qs


class Allocation(models.Model):
    """
    Quantity of a material reserved for one order.

    LIFECYCLE:

        ACTIVE ──pick──► PICKED ──issue──► ISSUED ──consume──► CONSUMED
          │                │                  ├──return──────► RETURNED
          │                │                  └──floor stock─► FLOOR_STOCK
          └──cancel────────┴──cancel──► CANCELLED

    ACTIVE, PICKED and ISSUED count against availability; every other
    state is terminal. Transitions live in kitman.transitions.
    """

    material = models.ForeignKey(
        'kitman.Material',
        on_delete=models.PROTECT,
        related_name='allocations',
        verbose_name=_('Material'),
    )
    order = models.ForeignKey(
        'kitman.Order',
        on_delete=models.PROTECT,
        related_name='allocations',
        verbose_name=_('Order'),
    )
    quantity = models.DecimalField(max_digits=14, decimal_places=4, verbose_name=_('Quantity'))
    status = models.CharField(
        max_length=20,
        choices=AllocationStatus.choices,
        default=AllocationStatus.ACTIVE,
        db_index=True,
        verbose_name=_('Status'),
    )
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
    reason = models.CharField(max_length=255, blank=True, default='', verbose_name=_('Reason'))

    # Reconciliation results, filled when an issued allocation is closed
    counted_quantity = models.DecimalField(max_digits=14, decimal_places=4, null=True, blank=True)
    consumed_quantity = models.DecimalField(max_digits=14, decimal_places=4, null=True, blank=True)
    waste_quantity = models.DecimalField(max_digits=14, decimal_places=4, null=True, blank=True)
    variance_quantity = models.DecimalField(max_digits=14, decimal_places=4, null=True, blank=True)
    floor_stock_returned = models.DecimalField(
        max_digits=14,
        decimal_places=4,
        null=True,
        blank=True,
        help_text=_('Floor stock later moved back to the warehouse.'),
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
        verbose_name=_('Created by'),
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)
    resolved_at = models.DateTimeField(null=True, blank=True, verbose_name=_('Resolved at'))
    metadata = models.JSONField(default=dict, blank=True)

    objects = AllocationQuerySet.as_manager()

    class Meta:
        verbose_name = _('Allocation')
        verbose_name_plural = _('Allocations')
        ordering = ['created_at', 'pk']
        constraints = [
            models.UniqueConstraint(
                fields=['material', 'order'],
                condition=Q(status=AllocationStatus.ACTIVE),
                name='unique_active_allocation',
            ),
        ]
        indexes = [
            models.Index(fields=['material', 'status'], name='kitman_alloc_material_idx'),
            models.Index(fields=['order', 'status'], name='kitman_alloc_order_idx'),
        ]

    @property
    def is_open(self) -> bool:
        return self.status in AllocationStatus.open_states()

    def __str__(self) -> str:
        return f"{self.quantity}x {self.material_id} → {self.order_id} ({self.status})"
