import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Permission",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=64, unique=True)),
                ("name", models.CharField(max_length=100)),
                ("group", models.CharField(blank=True, max_length=100)),
                ("resource", models.CharField(blank=True, max_length=50)),
                ("action", models.CharField(blank=True, max_length=20)),
            ],
            options={"ordering": ["id"]},
        ),
        migrations.CreateModel(
            name="Role",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=50, unique=True)),
                (
                    "code",
                    models.CharField(
                        max_length=50,
                        unique=True,
                        validators=[
                            django.core.validators.RegexValidator(
                                "^[A-Z0-9_]+$", "Role code must contain only A-Z, 0-9 and underscores."
                            )
                        ],
                    ),
                ),
                ("description", models.TextField(blank=True)),
                ("level", models.PositiveSmallIntegerField(default=1)),
                ("is_default", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "permissions",
                    models.ManyToManyField(blank=True, related_name="roles", to="access_control.permission"),
                ),
            ],
            options={"ordering": ["name"]},
        ),
    ]
