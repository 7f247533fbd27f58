import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Warehouse",
            fields=[
                ("id",              models.BigAutoField(auto_created=True, primary_key=True, serialize=False)),
                ("name",            models.CharField(max_length=120, unique=True)),
                ("registered_name", models.CharField(blank=True, max_length=120)),
                ("phone",           models.CharField(max_length=20)),
                ("email",           models.EmailField(blank=True, max_length=254)),
                ("address",         models.TextField()),
                ("city",            models.CharField(blank=True, max_length=80)),
                ("pin",             models.CharField(
                    max_length=6,
                    validators=[django.core.validators.RegexValidator("^\\d{6}$", "Pincode must be exactly 6 digits.")],
                )),
                ("state",           models.CharField(blank=True, max_length=80)),
                ("country",         models.CharField(default="India", max_length=60)),
                ("return_address",  models.TextField(blank=True)),
                ("return_city",     models.CharField(blank=True, max_length=80)),
                ("return_pin",      models.CharField(blank=True, max_length=6)),
                ("return_state",    models.CharField(blank=True, max_length=80)),
                ("return_country",  models.CharField(blank=True, max_length=60)),
                ("status",          models.CharField(
                    choices=[("active", "Active"), ("inactive", "Inactive"), ("pending", "Pending")],
                    db_index=True, default="active", max_length=10,
                )),
                ("is_default",          models.BooleanField(default=False)),
                ("business_days",       models.JSONField(blank=True, default=list)),
                ("business_hours",      models.JSONField(blank=True, default=dict)),
                ("vehicle_constraints", models.JSONField(blank=True, default=list)),
                ("carrier_response",    models.JSONField(blank=True, null=True)),
                ("vendor_id",           models.CharField(blank=True, max_length=64)),
                ("created_at",          models.DateTimeField(auto_now_add=True)),
                ("updated_at",          models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-is_default", "name"],
                "indexes":  [models.Index(fields=["status", "is_default"], name="warehouse_status_default_idx")],
            },
        ),
    ]
