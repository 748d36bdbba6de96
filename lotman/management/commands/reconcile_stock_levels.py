"""
Management command to reconcile stock levels with their lots.

Usage:
    python manage.py reconcile_stock_levels
    python manage.py reconcile_stock_levels --warehouse central
    python manage.py reconcile_stock_levels --dry-run
"""

from django.core.management.base import BaseCommand, CommandError

from lotman.exceptions import WarehouseNotFound
from lotman.services.reconciliation import find_drift, reconcile_all
from lotman.services.warehouses import Warehouses


class Command(BaseCommand):
    """Reconcile stock levels command."""

    help = 'Recalcula os níveis de estoque a partir dos lotes ativos'

    def add_arguments(self, parser):
        parser.add_argument(
            '--warehouse',
            help='Código ou id do depósito (padrão: todos)'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Lista as divergências sem corrigir'
        )

    def handle(self, *args, **options):
        warehouse = None
        if options['warehouse']:
            try:
                warehouse = Warehouses.resolve(options['warehouse'])
            except WarehouseNotFound as e:
                raise CommandError(e.message) from e

        if options['dry_run']:
            drifts = find_drift(warehouse)
            for drift in drifts:
                self.stdout.write(
                    f'{drift.product.sku} @ {drift.warehouse.code}: '
                    f'{drift.recorded} → {drift.actual} ({drift.diff:+d})'
                )
            self.stdout.write(f'{len(drifts)} divergência(s) encontrada(s)')
            return

        count = reconcile_all(warehouse)
        self.stdout.write(
            self.style.SUCCESS(f'{count} nível(is) corrigido(s)')
        )
