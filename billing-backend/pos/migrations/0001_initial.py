# Generated manually for POS sales

from decimal import Decimal

from django.conf import settings
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


def money(**kwargs):
    return models.DecimalField(
        decimal_places=2,
        default=Decimal('0'),
        max_digits=12,
        validators=[django.core.validators.MinValueValidator(Decimal('0'))],
        **kwargs
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('clients', '0001_initial'),
        ('invoices', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='POSSale',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('currency', models.CharField(default='USD', max_length=3)),
                ('discount_percentage', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=5)),
                ('discount_amount', money()),
                ('tax_percentage', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=5)),
                ('shipping_charge', money()),
                ('subtotal', money()),
                ('tax_amount', money()),
                ('total_amount', money()),
                ('issue_date', models.DateField(default=django.utils.timezone.localdate)),
                ('notes', models.TextField(blank=True, default='')),
                ('terms', models.TextField(blank=True, default='')),
                ('status_history', models.JSONField(blank=True, default=list)),
                ('sale_number', models.CharField(max_length=64)),
                ('amount_paid', money()),
                ('change_amount', money()),
                ('payment_method', models.CharField(default='cash', max_length=32)),
                ('client', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='possales', to='clients.client')),
                ('invoice', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='pos_sales', to='invoices.invoice')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='possales', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='POSSaleItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_name', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True, default='')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('unit', models.CharField(blank=True, default='', max_length=32)),
                ('rate', money()),
                ('amount', money()),
                ('position', models.PositiveIntegerField(default=0)),
                ('sale', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='pos.possale')),
            ],
            options={
                'ordering': ['position', 'id'],
                'abstract': False,
            },
        ),
        migrations.AddConstraint(
            model_name='possale',
            constraint=models.UniqueConstraint(fields=('user', 'sale_number'), name='uniq_pos_sale_number_per_user'),
        ),
        migrations.AddIndex(
            model_name='possale',
            index=models.Index(fields=['user', 'created_at'], name='possale_user_created_idx'),
        ),
    ]
