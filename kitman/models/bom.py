"""
Bill of materials — revisions of a product and their lines.
"""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _

from kitman.models.enums import ResourceType


class BomRevision(models.Model):
    product = models.ForeignKey(
        'kitman.Product',
        on_delete=models.CASCADE,
        related_name='bom_revisions',
        verbose_name=_('Product'),
    )
    revision_number = models.CharField(max_length=20, verbose_name=_('Revision'))
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('BOM revision')
        verbose_name_plural = _('BOM revisions')
        constraints = [
            models.UniqueConstraint(
                fields=['product', 'revision_number'],
                name='unique_bom_revision',
            )
        ]

    def __str__(self) -> str:
        return f"{self.product_id} rev {self.revision_number}"


class BomItem(models.Model):
    """
    One BOM line: how much of a material goes into one unit of the product.

    scrap_factor is a percentage added on top of quantity_required to cover
    expected attrition (e.g. 2 = 2% extra).
    """

    bom_revision = models.ForeignKey(
        BomRevision,
        on_delete=models.CASCADE,
        related_name='items',
        verbose_name=_('BOM revision'),
    )
    material = models.ForeignKey(
        'kitman.Material',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='bom_items',
        verbose_name=_('Material'),
    )
    line_number = models.PositiveIntegerField(default=0, verbose_name=_('Line'))
    quantity_required = models.DecimalField(
        max_digits=14,
        decimal_places=4,
        null=True,
        blank=True,
        verbose_name=_('Quantity per unit'),
    )
    scrap_factor = models.DecimalField(
        max_digits=7,
        decimal_places=4,
        default=Decimal('0'),
        verbose_name=_('Scrap factor (%)'),
    )
    resource_type = models.CharField(
        max_length=10,
        choices=ResourceType.choices,
        null=True,
        blank=True,
        verbose_name=_('Resource type'),
    )
    reference_designators = models.TextField(blank=True, default='', verbose_name=_('Reference designators'))

    class Meta:
        verbose_name = _('BOM item')
        verbose_name_plural = _('BOM items')
        ordering = ['bom_revision', 'line_number', 'pk']

    @property
    def quantity_per_unit(self) -> Decimal:
        """Quantity per assembly including the scrap allowance."""
        scrap = self.scrap_factor or Decimal('0')
        return self.quantity_required * (1 + scrap / 100)

    def __str__(self) -> str:
        return f"{self.line_number}: {self.material_id} x {self.quantity_required}"
