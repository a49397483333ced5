"""
Order model — customer order to build a quantity of a product.
"""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from kitman.models.enums import OrderStatus, OrderType, OwnerType


class OrderQuerySet(models.QuerySet):

    def open(self):
        """Orders still in the pipeline (not shipped, completed or cancelled)."""
        return self.exclude(status__in=OrderStatus.closed_states())

    def by_priority(self):
        """Earliest due date first, undated last, then creation order."""
        return self.order_by(
            models.F('due_date').asc(nulls_last=True), 'created_at', 'pk'
        )


class Order(models.Model):
    order_number = models.CharField(max_length=50, unique=True, verbose_name=_('Order number'))
    customer = models.ForeignKey(
        'kitman.Customer',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='orders',
        verbose_name=_('Customer'),
    )
    product = models.ForeignKey(
        'kitman.Product',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='orders',
        verbose_name=_('Product'),
    )
    bom_revision = models.ForeignKey(
        'kitman.BomRevision',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='orders',
        verbose_name=_('BOM revision'),
        help_text=_('Revision the order was released against.'),
    )
    quantity = models.IntegerField(verbose_name=_('Quantity'))
    quantity_shipped = models.IntegerField(default=0, verbose_name=_('Quantity shipped'))
    due_date = models.DateField(null=True, blank=True, db_index=True, verbose_name=_('Due date'))
    order_type = models.CharField(
        max_length=20,
        choices=OrderType.choices,
        default=OrderType.TURNKEY,
        verbose_name=_('Order type'),
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.ENTERED,
        db_index=True,
        verbose_name=_('Status'),
    )
    created_at = models.DateTimeField(default=timezone.now)

    objects = OrderQuerySet.as_manager()

    class Meta:
        verbose_name = _('Order')
        verbose_name_plural = _('Orders')
        ordering = ['created_at']

    @property
    def is_open(self) -> bool:
        return self.status not in OrderStatus.closed_states()

    @property
    def stock_owner(self):
        """(owner_type, owner) whose stock this order draws from."""
        if self.order_type == OrderType.CONSIGNMENT:
            return OwnerType.CUSTOMER, self.customer
        return OwnerType.COMPANY, None

    def __str__(self) -> str:
        return self.order_number
