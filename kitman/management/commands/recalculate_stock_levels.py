"""
Management command to rebuild stock level caches from the ledger.

Usage:
    python manage.py recalculate_stock_levels
    python manage.py recalculate_stock_levels --dry-run
"""

from django.core.management.base import BaseCommand

from kitman import inventory
from kitman.models import Material, StockLevel


class Command(BaseCommand):
    """Recalculate stock levels command."""

    help = 'Rebuilds cached stock levels from the inventory ledger'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report drifted stock levels without fixing them'
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            drifted = 0
            for level in StockLevel.objects.select_related('material').iterator():
                replayed = level.replay()
                if replayed != level.quantity:
                    drifted += 1
                    self.stdout.write(
                        f'{level.material} [{level.bucket}]: {level.quantity} -> {replayed}'
                    )
            self.stdout.write(f'{drifted} stock level(s) would be corrected')
        else:
            count = 0
            for material_id in list(Material.objects.values_list('pk', flat=True)):
                inventory.recalculate(material_id)
                count += 1
            self.stdout.write(
                self.style.SUCCESS(f'{count} material(s) recalculated')
            )
