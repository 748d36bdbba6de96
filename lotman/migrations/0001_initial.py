"""
Initial migration for Lotman models.
"""

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    """Create Lotman models: Warehouse, Product, Lot, StockMovement, StockLevel, StockAlert."""

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Warehouse',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.SlugField(help_text='Identificador único (ex: central, filial-sul)', unique=True, verbose_name='Código')),
                ('name', models.CharField(max_length=100, verbose_name='Nome')),
                ('address', models.TextField(blank=True, default='', verbose_name='Endereço')),
                ('is_primary', models.BooleanField(default=False, help_text='Usado quando o pedido não indica o depósito.', verbose_name='Depósito principal')),
                ('is_active', models.BooleanField(default=True, verbose_name='Ativo')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Depósito',
                'verbose_name_plural': 'Depósitos',
                'ordering': ['name'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('is_primary', True)), fields=('is_primary',), name='lotman_single_primary_warehouse'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sku', models.CharField(max_length=100, unique=True, verbose_name='SKU')),
                ('name', models.CharField(max_length=255, verbose_name='Nome')),
                ('description', models.TextField(blank=True, default='', verbose_name='Descrição')),
                ('category', models.CharField(blank=True, db_index=True, default='', max_length=100, verbose_name='Categoria')),
                ('unit', models.CharField(default='piece', help_text='Ex: piece, kg, lt', max_length=20, verbose_name='Unidade')),
                ('min_threshold', models.PositiveIntegerField(default=100, help_text='Alerta dispara quando disponível < este valor', verbose_name='Estoque mínimo')),
                ('reorder_point', models.PositiveIntegerField(blank=True, null=True, verbose_name='Ponto de reposição')),
                ('is_active', models.BooleanField(db_index=True, default=True, verbose_name='Ativo')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Produto',
                'verbose_name_plural': 'Produtos',
                'ordering': ['sku'],
            },
        ),
        migrations.CreateModel(
            name='Lot',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('lot_number', models.CharField(max_length=100, unique=True, verbose_name='Número do Lote')),
                ('initial_quantity', models.PositiveIntegerField(verbose_name='Quantidade inicial')),
                ('current_quantity', models.PositiveIntegerField(verbose_name='Quantidade atual')),
                ('reserved_quantity', models.PositiveIntegerField(default=0, verbose_name='Quantidade reservada')),
                ('production_date', models.DateField(default=django.utils.timezone.localdate, verbose_name='Data de Produção')),
                ('expiry_date', models.DateField(blank=True, db_index=True, help_text='Último dia em que o lote pode ser vendido/utilizado', null=True, verbose_name='Data de Validade')),
                ('unit_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name='Custo unitário')),
                ('total_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True, verbose_name='Custo total')),
                ('supplier_info', models.CharField(blank=True, default='', max_length=200, verbose_name='Fornecedor')),
                ('quality_status', models.CharField(choices=[('PENDING', 'Pendente'), ('APPROVED', 'Aprovado'), ('QUARANTINE', 'Quarentena'), ('REJECTED', 'Rejeitado')], default='APPROVED', max_length=20, verbose_name='Status de qualidade')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Observações')),
                ('is_active', models.BooleanField(default=True, verbose_name='Ativo')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='Criado em')),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='lots', to='lotman.product', verbose_name='Produto')),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='lots', to='lotman.warehouse', verbose_name='Depósito')),
            ],
            options={
                'verbose_name': 'Lote',
                'verbose_name_plural': 'Lotes',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['product', 'warehouse', 'is_active'], name='lotman_lot_prod_wh_active_idx'),
                    models.Index(fields=['is_active'], name='lotman_lot_active_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('current_quantity__gte', 0)), name='lotman_lot_current_quantity_gte_0'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockLevel',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('total_quantity', models.IntegerField(default=0, verbose_name='Quantidade total')),
                ('available_quantity', models.IntegerField(default=0, verbose_name='Disponível')),
                ('reserved_quantity', models.IntegerField(default=0, verbose_name='Reservado')),
                ('total_shipped', models.PositiveIntegerField(default=0, verbose_name='Total enviado')),
                ('total_sold', models.PositiveIntegerField(default=0, verbose_name='Total vendido')),
                ('average_cost', models.DecimalField(blank=True, decimal_places=4, max_digits=14, null=True, verbose_name='Custo médio')),
                ('total_value', models.DecimalField(blank=True, decimal_places=4, max_digits=16, null=True, verbose_name='Valor total')),
                ('last_movement_at', models.DateTimeField(blank=True, null=True, verbose_name='Último movimento')),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_levels', to='lotman.product', verbose_name='Produto')),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_levels', to='lotman.warehouse', verbose_name='Depósito')),
            ],
            options={
                'verbose_name': 'Saldo',
                'verbose_name_plural': 'Saldos',
                'constraints': [
                    models.UniqueConstraint(fields=('product', 'warehouse'), name='unique_stock_level_per_product_warehouse'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('movement_type', models.CharField(choices=[('IN', 'Entrada'), ('OUT', 'Saída'), ('ADJUSTMENT', 'Ajuste'), ('RETURN', 'Devolução'), ('TRANSFER', 'Transferência')], db_index=True, max_length=20, verbose_name='Tipo')),
                ('order_ref', models.CharField(blank=True, db_index=True, default='', max_length=100, verbose_name='Pedido')),
                ('quantity', models.IntegerField(help_text='ADJUSTMENT: positivo = entrada, negativo = saída', verbose_name='Quantidade')),
                ('unit_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name='Custo unitário')),
                ('total_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True, verbose_name='Custo total')),
                ('quantity_before', models.IntegerField(verbose_name='Quantidade antes')),
                ('quantity_after', models.IntegerField(verbose_name='Quantidade depois')),
                ('reference', models.CharField(blank=True, default='', max_length=255, verbose_name='Referência')),
                ('reason', models.CharField(blank=True, default='', max_length=255, verbose_name='Motivo')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Observações')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Data/Hora')),
                ('lot', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='lotman.lot', verbose_name='Lote')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='lotman.product', verbose_name='Produto')),
                ('user', models.ForeignKey(blank=True, help_text='Vazio = sistema', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Usuário')),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='lotman.warehouse', verbose_name='Depósito')),
            ],
            options={
                'verbose_name': 'Movimento',
                'verbose_name_plural': 'Movimentos',
                'ordering': ['-created_at', '-pk'],
                'indexes': [
                    models.Index(fields=['product', 'warehouse', 'created_at'], name='lotman_mov_prod_wh_created_idx'),
                    models.Index(fields=['lot', 'created_at'], name='lotman_mov_lot_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockAlert',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('alert_type', models.CharField(choices=[('LOW_STOCK', 'Estoque baixo'), ('OUT_OF_STOCK', 'Sem estoque'), ('INSUFFICIENT_STOCK', 'Estoque insuficiente'), ('MISSING_SKU', 'SKU ausente'), ('EXPIRING_SOON', 'Vencimento próximo')], max_length=30, verbose_name='Tipo')),
                ('severity', models.CharField(choices=[('INFO', 'Informativo'), ('WARNING', 'Atenção'), ('CRITICAL', 'Crítico')], max_length=10, verbose_name='Severidade')),
                ('order_ref', models.CharField(blank=True, default='', max_length=100, verbose_name='Pedido')),
                ('current_quantity', models.IntegerField(default=0, verbose_name='Quantidade atual')),
                ('threshold', models.IntegerField(default=0, verbose_name='Limite')),
                ('message', models.TextField(verbose_name='Mensagem')),
                ('is_resolved', models.BooleanField(db_index=True, default=False, verbose_name='Resolvido')),
                ('resolved_at', models.DateTimeField(blank=True, null=True, verbose_name='Resolvido em')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Criado em')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Atualizado em')),
                ('product', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='alerts', to='lotman.product', verbose_name='Produto')),
                ('resolved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Resolvido por')),
                ('warehouse', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='alerts', to='lotman.warehouse', verbose_name='Depósito')),
            ],
            options={
                'verbose_name': 'Alerta de Estoque',
                'verbose_name_plural': 'Alertas de Estoque',
                'indexes': [
                    models.Index(fields=['alert_type', 'is_resolved'], name='lotman_alert_type_open_idx'),
                    models.Index(fields=['severity', 'is_resolved'], name='lotman_alert_sev_open_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('is_resolved', False), ('product__isnull', False)), fields=('product', 'warehouse', 'alert_type'), name='unique_open_alert_per_product_warehouse_type'),
                ],
            },
        ),
    ]
