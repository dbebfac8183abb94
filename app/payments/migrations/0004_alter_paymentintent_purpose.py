from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0003_add_payment_schedules"),
    ]

    operations = [
        migrations.AlterField(
            model_name="paymentintent",
            name="purpose",
            field=models.CharField(
                choices=[
                    ("cart_payment", "Cart Payment"),
                    ("hybrid_payment", "Hybrid Payment"),
                    ("wallet_funding", "Wallet Funding"),
                    ("swap_payment", "Swap Payment"),
                    ("advertisement_payment", "Advertisement Payment"),
                ],
                default="cart_payment",
                help_text="What this payment is for",
                max_length=30,
            ),
        ),
    ]
