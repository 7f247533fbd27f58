import django.db.models.deletion
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Shipment",
            fields=[
                ("id",              models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("shipment_type",   models.CharField(
                    choices=[
                        ("FORWARD",     "Forward"),
                        ("MPS",         "Multi-package"),
                        ("REVERSE",     "Reverse"),
                        ("REPLACEMENT", "Replacement"),
                    ],
                    default="FORWARD", max_length=12,
                )),
                ("primary_waybill",   models.CharField(db_index=True, max_length=64)),
                ("status",            models.CharField(db_index=True, default="Created", max_length=60)),
                ("pickup_location",   models.CharField(max_length=120)),
                ("warehouse_details", models.JSONField(default=dict)),
                ("customer_details",  models.JSONField(default=dict)),
                ("package_details",   models.JSONField(default=dict)),
                ("carrier_response",  models.JSONField(blank=True, null=True)),
                ("pickup_request",    models.JSONField(blank=True, null=True)),
                ("tracking_info",     models.JSONField(blank=True, null=True)),
                ("label_generated",   models.BooleanField(default=False)),
                ("label_url",         models.URLField(blank=True, max_length=500)),
                ("is_active",         models.BooleanField(default=True)),
                ("created_at",        models.DateTimeField(auto_now_add=True)),
                ("updated_at",        models.DateTimeField(auto_now=True)),
                ("order", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="shipments", to="orders.order",
                )),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"],                 name="shipment_status_idx"),
                    models.Index(fields=["order", "shipment_type"], name="shipment_order_type_idx"),
                    models.Index(fields=["created_at"],             name="shipment_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ShipmentPackage",
            fields=[
                ("id",       models.BigAutoField(auto_created=True, primary_key=True, serialize=False)),
                ("waybill",  models.CharField(max_length=64, unique=True)),
                ("sequence", models.PositiveSmallIntegerField(default=0)),
                ("shipment", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="packages", to="shipments.shipment",
                )),
            ],
            options={
                "ordering":        ["sequence"],
                "unique_together": {("shipment", "sequence")},
            },
        ),
        migrations.CreateModel(
            name="ShipmentEvent",
            fields=[
                ("id",          models.BigAutoField(auto_created=True, primary_key=True, serialize=False)),
                ("from_status", models.CharField(blank=True, max_length=60)),
                ("to_status",   models.CharField(max_length=60)),
                ("note",        models.CharField(blank=True, max_length=255)),
                ("occurred_at", models.DateTimeField(auto_now_add=True)),
                ("shipment", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="events", to="shipments.shipment",
                )),
            ],
            options={"ordering": ["occurred_at", "id"]},
        ),
    ]
