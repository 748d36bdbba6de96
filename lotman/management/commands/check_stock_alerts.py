"""
Management command to sweep expiry and stock level alerts.

Usage:
    python manage.py check_stock_alerts
    python manage.py check_stock_alerts --expiry-only
    python manage.py check_stock_alerts --levels-only --dry-run

Schedule daily for expiry and hourly for levels (cron, celery beat).
Alerts are upserted, so repeated runs refresh instead of duplicating.
"""

from django.core.management.base import BaseCommand, CommandError

from lotman.services import alerts


class Command(BaseCommand):
    """Check stock alerts command."""

    help = 'Verifica alertas de vencimento e de nível de estoque'

    def add_arguments(self, parser):
        parser.add_argument(
            '--expiry-only',
            action='store_true',
            help='Somente lotes próximos do vencimento'
        )
        parser.add_argument(
            '--levels-only',
            action='store_true',
            help='Somente níveis de estoque baixos ou zerados'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Mostra o que seria alertado sem gravar'
        )

    def handle(self, *args, **options):
        if options['expiry_only'] and options['levels_only']:
            raise CommandError('Use --expiry-only ou --levels-only, não ambos')

        check_expiry = not options['levels_only']
        check_levels = not options['expiry_only']

        if options['dry_run']:
            if check_expiry:
                self.stdout.write(f'{len(alerts.expiring_lots())} lote(s) próximo(s) do vencimento')
            if check_levels:
                self.stdout.write(f'{len(alerts.low_levels())} nível(is) abaixo do limite')
            return

        if check_expiry:
            raised = alerts.check_expiry_alerts()
            self.stdout.write(
                self.style.SUCCESS(f'{len(raised)} alerta(s) de vencimento')
            )
        if check_levels:
            raised = alerts.check_stock_level_alerts()
            self.stdout.write(
                self.style.SUCCESS(f'{len(raised)} alerta(s) de nível de estoque')
            )
