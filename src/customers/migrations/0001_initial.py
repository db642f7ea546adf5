import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

mobile_validator = django.core.validators.RegexValidator("^\\d{10}$", "Enter a valid 10 digit mobile number.")


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=150)),
                ("address", models.CharField(max_length=255)),
                ("state", models.CharField(max_length=100)),
                ("city", models.CharField(max_length=100)),
                ("village", models.CharField(blank=True, max_length=100)),
                ("pincode", models.CharField(max_length=12)),
                ("mobile", models.CharField(max_length=10, unique=True, validators=[mobile_validator])),
                ("email", models.EmailField(blank=True, max_length=254, null=True, unique=True)),
                ("alternate_mobile", models.CharField(blank=True, max_length=10, validators=[mobile_validator])),
                ("alternate_person_name", models.CharField(blank=True, max_length=150)),
                (
                    "source",
                    models.CharField(
                        choices=[("manual", "Manual"), ("import", "Import"), ("api", "API")],
                        default="manual",
                        max_length=10,
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["-created_at"]},
        ),
    ]
