import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="wallettransaction",
            name="order",
            field=models.ForeignKey(
                blank=True,
                help_text="Order whose escrow this credit releases",
                null=True,
                on_delete=django.db.models.deletion.PROTECT,
                related_name="wallet_transactions",
                to="orders.order",
            ),
        ),
    ]
