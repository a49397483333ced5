"""
Purchase orders — supply that has been ordered but not yet received.
"""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _

from kitman.models.enums import PurchaseOrderStatus


class PurchaseOrder(models.Model):
    po_number = models.CharField(max_length=50, unique=True, verbose_name=_('PO number'))
    supplier = models.CharField(max_length=200, blank=True, default='', verbose_name=_('Supplier'))
    status = models.CharField(
        max_length=20,
        choices=PurchaseOrderStatus.choices,
        default=PurchaseOrderStatus.DRAFT,
        db_index=True,
        verbose_name=_('Status'),
    )
    expected_date = models.DateField(null=True, blank=True, verbose_name=_('Expected date'))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Purchase order')
        verbose_name_plural = _('Purchase orders')

    def __str__(self) -> str:
        return self.po_number


class PurchaseOrderLine(models.Model):
    purchase_order = models.ForeignKey(
        PurchaseOrder,
        on_delete=models.CASCADE,
        related_name='lines',
        verbose_name=_('Purchase order'),
    )
    material = models.ForeignKey(
        'kitman.Material',
        on_delete=models.PROTECT,
        related_name='purchase_order_lines',
        verbose_name=_('Material'),
    )
    quantity_ordered = models.DecimalField(max_digits=14, decimal_places=4, verbose_name=_('Ordered'))
    quantity_received = models.DecimalField(
        max_digits=14,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Received'),
    )
    unit_cost = models.DecimalField(max_digits=14, decimal_places=4, null=True, blank=True)

    class Meta:
        verbose_name = _('Purchase order line')
        verbose_name_plural = _('Purchase order lines')

    @property
    def quantity_open(self) -> Decimal:
        return max(Decimal('0'), self.quantity_ordered - self.quantity_received)

    def __str__(self) -> str:
        return f"{self.purchase_order_id}: {self.material_id} x {self.quantity_ordered}"
