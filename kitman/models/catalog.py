"""
Catalog models — customers, products and the materials they are built from.

Kitman only reads these; they are kept minimal so a host ERP can map its
own master data onto them.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class Customer(models.Model):
    code = models.CharField(max_length=50, unique=True, verbose_name=_('Code'))
    name = models.CharField(max_length=200, verbose_name=_('Name'))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Customer')
        verbose_name_plural = _('Customers')
        ordering = ['code']

    def __str__(self) -> str:
        return self.name or self.code


class Product(models.Model):
    """Assembly built for a customer."""

    part_number = models.CharField(max_length=100, unique=True, verbose_name=_('Part number'))
    name = models.CharField(max_length=200, blank=True, default='', verbose_name=_('Name'))
    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='products',
        verbose_name=_('Customer'),
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Product')
        verbose_name_plural = _('Products')
        ordering = ['part_number']

    def __str__(self) -> str:
        return self.part_number


class Material(models.Model):
    """
    Stocked component, identified by its internal part number (IPN).

    Row is the per-material serialization point: every stock-changing
    operation locks it with select_for_update() first.
    """

    internal_part_number = models.CharField(
        max_length=100,
        unique=True,
        verbose_name=_('Internal part number'),
    )
    description = models.CharField(max_length=255, blank=True, default='', verbose_name=_('Description'))
    uom = models.CharField(max_length=10, default='EA', verbose_name=_('Unit of measure'))
    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='materials',
        verbose_name=_('Customer'),
        help_text=_('Set for customer-specific (consigned) parts.'),
    )
    metadata = models.JSONField(default=dict, blank=True, verbose_name=_('Metadata'))
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Material')
        verbose_name_plural = _('Materials')
        ordering = ['internal_part_number']

    def __str__(self) -> str:
        return self.internal_part_number
