import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Waybill",
            fields=[
                ("id",           models.BigAutoField(auto_created=True, primary_key=True, serialize=False)),
                ("waybill",      models.CharField(max_length=64, unique=True)),
                ("status",       models.CharField(
                    choices=[
                        ("GENERATED", "Generated"),
                        ("RESERVED",  "Reserved"),
                        ("USED",      "Used"),
                        ("CANCELLED", "Cancelled"),
                    ],
                    default="GENERATED", max_length=10,
                )),
                ("source",       models.CharField(
                    choices=[
                        ("DELHIVERY_BULK",   "Delhivery bulk API"),
                        ("DELHIVERY_SINGLE", "Delhivery single API"),
                        ("DEMO",             "Demo generator"),
                    ],
                    default="DELHIVERY_BULK", max_length=20,
                )),
                ("generated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("reserved_by",  models.CharField(blank=True, max_length=120)),
                ("reserved_at",  models.DateTimeField(blank=True, null=True)),
                ("used_at",      models.DateTimeField(blank=True, null=True)),
                ("order_id",     models.CharField(blank=True, db_index=True, max_length=64)),
                ("shipment_id",  models.CharField(blank=True, max_length=64)),
                ("metadata",     models.JSONField(blank=True, default=dict)),
                ("created_at",   models.DateTimeField(auto_now_add=True)),
                ("updated_at",   models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["generated_at"],
                "indexes": [
                    models.Index(fields=["status", "generated_at"], name="waybill_status_generated_idx"),
                    models.Index(fields=["source", "status"],       name="waybill_source_status_idx"),
                ],
            },
        ),
    ]
