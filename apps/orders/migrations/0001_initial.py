import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id",             models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("customer_name",  models.CharField(blank=True, max_length=120)),
                ("customer_email", models.EmailField(blank=True, max_length=254)),
                ("customer_phone", models.CharField(blank=True, max_length=20)),
                ("payment_method", models.CharField(
                    choices=[("cod", "Cash on Delivery"), ("prepaid", "Prepaid")],
                    default="prepaid", max_length=10,
                )),
                ("total_amount",     models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("status",           models.CharField(db_index=True, default="pending", max_length=40)),
                ("shipping_address", models.JSONField(blank=True, default=dict)),
                ("items",            models.JSONField(blank=True, default=list)),
                ("shipment_created",     models.BooleanField(default=False)),
                ("shipment_details",     models.JSONField(blank=True, null=True)),
                ("reverse_shipment",     models.JSONField(blank=True, null=True)),
                ("replacement_shipment", models.JSONField(blank=True, null=True)),
                ("created_at",       models.DateTimeField(auto_now_add=True)),
                ("updated_at",       models.DateTimeField(auto_now=True)),
            ],
            options={"ordering": ["-created_at"]},
        ),
    ]
