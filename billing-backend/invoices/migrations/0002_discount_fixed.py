# Generated manually: keep the caller's fixed discount apart from the applied one

from decimal import Decimal

import django.core.validators
from django.db import migrations, models
from django.db.models import F


def copy_fixed_discounts(apps, schema_editor):
    model = apps.get_model('invoices', 'Invoice')
    model.objects.filter(discount_percentage=0).update(discount_fixed=F('discount_amount'))


class Migration(migrations.Migration):

    dependencies = [
        ('invoices', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='invoice',
            name='discount_fixed',
            field=models.DecimalField(
                decimal_places=2,
                default=Decimal('0'),
                max_digits=12,
                validators=[django.core.validators.MinValueValidator(Decimal('0'))],
            ),
        ),
        migrations.RunPython(copy_fixed_discounts, migrations.RunPython.noop),
    ]
