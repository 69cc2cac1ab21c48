import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("bookings", "0001_initial"),
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="booking",
            name="payment",
            field=models.OneToOneField(
                blank=True,
                help_text="Payment record funding this booking",
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="booking",
                to="payments.paymentrecord",
            ),
        ),
    ]
