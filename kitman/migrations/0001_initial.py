"""
Initial migration for Kitman models.
"""

from decimal import Decimal
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    """Create Kitman models: catalog, BOM, orders, purchasing, ledger, allocations."""

    initial = True

    dependencies = [
        ('contenttypes', '0002_remove_content_type_name'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Customer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=50, unique=True, verbose_name='Code')),
                ('name', models.CharField(max_length=200, verbose_name='Name')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Customer',
                'verbose_name_plural': 'Customers',
                'ordering': ['code'],
            },
        ),
        migrations.CreateModel(
            name='Material',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('internal_part_number', models.CharField(max_length=100, unique=True, verbose_name='Internal part number')),
                ('description', models.CharField(blank=True, default='', max_length=255, verbose_name='Description')),
                ('uom', models.CharField(default='EA', max_length=10, verbose_name='Unit of measure')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Metadata')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('customer', models.ForeignKey(blank=True, help_text='Set for customer-specific (consigned) parts.', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='materials', to='kitman.customer', verbose_name='Customer')),
            ],
            options={
                'verbose_name': 'Material',
                'verbose_name_plural': 'Materials',
                'ordering': ['internal_part_number'],
            },
        ),
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('part_number', models.CharField(max_length=100, unique=True, verbose_name='Part number')),
                ('name', models.CharField(blank=True, default='', max_length=200, verbose_name='Name')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='products', to='kitman.customer', verbose_name='Customer')),
            ],
            options={
                'verbose_name': 'Product',
                'verbose_name_plural': 'Products',
                'ordering': ['part_number'],
            },
        ),
        migrations.CreateModel(
            name='BomRevision',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('revision_number', models.CharField(max_length=20, verbose_name='Revision')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='bom_revisions', to='kitman.product', verbose_name='Product')),
            ],
            options={
                'verbose_name': 'BOM revision',
                'verbose_name_plural': 'BOM revisions',
                'constraints': [
                    models.UniqueConstraint(fields=('product', 'revision_number'), name='unique_bom_revision'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BomItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('line_number', models.PositiveIntegerField(default=0, verbose_name='Line')),
                ('quantity_required', models.DecimalField(blank=True, decimal_places=4, max_digits=14, null=True, verbose_name='Quantity per unit')),
                ('scrap_factor', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=7, verbose_name='Scrap factor (%)')),
                ('resource_type', models.CharField(blank=True, choices=[('SMT', 'Surface mount'), ('TH', 'Through-hole'), ('MECH', 'Mechanical'), ('PCB', 'Bare board'), ('DNP', 'Do not place')], max_length=10, null=True, verbose_name='Resource type')),
                ('reference_designators', models.TextField(blank=True, default='', verbose_name='Reference designators')),
                ('bom_revision', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='kitman.bomrevision', verbose_name='BOM revision')),
                ('material', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='bom_items', to='kitman.material', verbose_name='Material')),
            ],
            options={
                'verbose_name': 'BOM item',
                'verbose_name_plural': 'BOM items',
                'ordering': ['bom_revision', 'line_number', 'pk'],
            },
        ),
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_number', models.CharField(max_length=50, unique=True, verbose_name='Order number')),
                ('quantity', models.IntegerField(verbose_name='Quantity')),
                ('quantity_shipped', models.IntegerField(default=0, verbose_name='Quantity shipped')),
                ('due_date', models.DateField(blank=True, db_index=True, null=True, verbose_name='Due date')),
                ('order_type', models.CharField(choices=[('TURNKEY', 'Turnkey'), ('CONSIGNMENT', 'Consignment')], default='TURNKEY', max_length=20, verbose_name='Order type')),
                ('status', models.CharField(choices=[('ENTERED', 'Entered'), ('KITTING', 'Kitting'), ('SMT', 'SMT'), ('TH', 'Through-hole'), ('ON_HOLD', 'On hold'), ('SHIPPED', 'Shipped'), ('COMPLETED', 'Completed'), ('CANCELLED', 'Cancelled')], db_index=True, default='ENTERED', max_length=20, verbose_name='Status')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('bom_revision', models.ForeignKey(blank=True, help_text='Revision the order was released against.', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='orders', to='kitman.bomrevision', verbose_name='BOM revision')),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='orders', to='kitman.customer', verbose_name='Customer')),
                ('product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='orders', to='kitman.product', verbose_name='Product')),
            ],
            options={
                'verbose_name': 'Order',
                'verbose_name_plural': 'Orders',
                'ordering': ['created_at'],
            },
        ),
        migrations.CreateModel(
            name='PurchaseOrder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('po_number', models.CharField(max_length=50, unique=True, verbose_name='PO number')),
                ('supplier', models.CharField(blank=True, default='', max_length=200, verbose_name='Supplier')),
                ('status', models.CharField(choices=[('DRAFT', 'Draft'), ('SUBMITTED', 'Submitted'), ('CONFIRMED', 'Confirmed'), ('PARTIALLY_RECEIVED', 'Partially received'), ('RECEIVED', 'Received'), ('CLOSED', 'Closed'), ('CANCELLED', 'Cancelled')], db_index=True, default='DRAFT', max_length=20, verbose_name='Status')),
                ('expected_date', models.DateField(blank=True, null=True, verbose_name='Expected date')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Purchase order',
                'verbose_name_plural': 'Purchase orders',
            },
        ),
        migrations.CreateModel(
            name='PurchaseOrderLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity_ordered', models.DecimalField(decimal_places=4, max_digits=14, verbose_name='Ordered')),
                ('quantity_received', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=14, verbose_name='Received')),
                ('unit_cost', models.DecimalField(blank=True, decimal_places=4, max_digits=14, null=True)),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='purchase_order_lines', to='kitman.material', verbose_name='Material')),
                ('purchase_order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='kitman.purchaseorder', verbose_name='Purchase order')),
            ],
            options={
                'verbose_name': 'Purchase order line',
                'verbose_name_plural': 'Purchase order lines',
            },
        ),
        migrations.CreateModel(
            name='StockLevel',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('bucket', models.CharField(choices=[('RAW', 'Raw'), ('WIP', 'Work in process')], default='RAW', max_length=10, verbose_name='Bucket')),
                ('_quantity', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=14, verbose_name='Quantity')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_levels', to='kitman.material', verbose_name='Material')),
            ],
            options={
                'verbose_name': 'Stock level',
                'verbose_name_plural': 'Stock levels',
                'constraints': [
                    models.UniqueConstraint(fields=('material', 'bucket'), name='unique_stock_level_bucket'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Transaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=4, help_text='Positive = into the bucket, negative = out of it', max_digits=14, verbose_name='Quantity')),
                ('transaction_type', models.CharField(choices=[('RECEIPT', 'Receipt'), ('CONSUMPTION', 'Consumption'), ('ADJUSTMENT', 'Adjustment'), ('SCRAP', 'Scrap'), ('TRANSFER', 'Transfer'), ('ISSUE_TO_WO', 'Issue to work order'), ('RETURN_FROM_WO', 'Return from work order')], db_index=True, max_length=20, verbose_name='Type')),
                ('bucket', models.CharField(choices=[('RAW', 'Raw'), ('WIP', 'Work in process')], default='RAW', max_length=10, verbose_name='Bucket')),
                ('reference_id', models.PositiveIntegerField(blank=True, null=True, verbose_name='Reference ID')),
                ('owner_type', models.CharField(choices=[('COMPANY', 'Company'), ('CUSTOMER', 'Customer')], default='COMPANY', max_length=10, verbose_name='Owner type')),
                ('unit_cost', models.DecimalField(blank=True, decimal_places=4, max_digits=14, null=True, verbose_name='Unit cost')),
                ('location_code', models.CharField(blank=True, max_length=50, null=True, verbose_name='Location')),
                ('reason', models.CharField(max_length=255, verbose_name='Reason')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Metadata')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Created by')),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='transactions', to='kitman.material', verbose_name='Material')),
                ('owner', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to='kitman.customer', verbose_name='Owner')),
                ('reference_type', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='contenttypes.contenttype', verbose_name='Reference type')),
            ],
            options={
                'verbose_name': 'Inventory transaction',
                'verbose_name_plural': 'Inventory transactions',
                'ordering': ['created_at', 'pk'],
                'indexes': [
                    models.Index(fields=['material', 'created_at'], name='kitman_txn_material_idx'),
                    models.Index(fields=['reference_type', 'reference_id'], name='kitman_txn_reference_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Allocation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=4, max_digits=14, verbose_name='Quantity')),
                ('status', models.CharField(choices=[('ACTIVE', 'Active'), ('PICKED', 'Picked'), ('ISSUED', 'Issued'), ('CONSUMED', 'Consumed'), ('RETURNED', 'Returned'), ('FLOOR_STOCK', 'Floor stock'), ('CANCELLED', 'Cancelled')], db_index=True, default='ACTIVE', max_length=20, verbose_name='Status')),
                ('owner_type', models.CharField(choices=[('COMPANY', 'Company'), ('CUSTOMER', 'Customer')], default='COMPANY', max_length=10, verbose_name='Owner type')),
                ('reason', models.CharField(blank=True, default='', max_length=255, verbose_name='Reason')),
                ('counted_quantity', models.DecimalField(blank=True, decimal_places=4, max_digits=14, null=True)),
                ('consumed_quantity', models.DecimalField(blank=True, decimal_places=4, max_digits=14, null=True)),
                ('waste_quantity', models.DecimalField(blank=True, decimal_places=4, max_digits=14, null=True)),
                ('variance_quantity', models.DecimalField(blank=True, decimal_places=4, max_digits=14, null=True)),
                ('floor_stock_returned', models.DecimalField(blank=True, decimal_places=4, help_text='Floor stock later moved back to the warehouse.', max_digits=14, null=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('resolved_at', models.DateTimeField(blank=True, null=True, verbose_name='Resolved at')),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Created by')),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='allocations', to='kitman.material', verbose_name='Material')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='allocations', to='kitman.order', verbose_name='Order')),
                ('owner', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to='kitman.customer', verbose_name='Owner')),
            ],
            options={
                'verbose_name': 'Allocation',
                'verbose_name_plural': 'Allocations',
                'ordering': ['created_at', 'pk'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'ACTIVE')), fields=('material', 'order'), name='unique_active_allocation'),
                ],
                'indexes': [
                    models.Index(fields=['material', 'status'], name='kitman_alloc_material_idx'),
                    models.Index(fields=['order', 'status'], name='kitman_alloc_order_idx'),
                ],
            },
        ),
    ]
