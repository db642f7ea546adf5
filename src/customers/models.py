"""Customer records that tickets can be raised for."""

from django.conf import settings
from django.core.validators import RegexValidator
from django.db import models

mobile_validator = RegexValidator(r"^\d{10}$", "Enter a valid 10 digit mobile number.")


class CustomerSource(models.TextChoices):
    MANUAL = "manual", "Manual"
    IMPORT = "import", "Import"
    API = "api", "API"


class Customer(models.Model):
    name = models.CharField(max_length=150)
    address = models.CharField(max_length=255)
    state = models.CharField(max_length=100)
    city = models.CharField(max_length=100)
    village = models.CharField(max_length=100, blank=True)
    pincode = models.CharField(max_length=12)
    mobile = models.CharField(max_length=10, unique=True, validators=[mobile_validator])
    email = models.EmailField(blank=True, null=True, unique=True)
    alternate_mobile = models.CharField(max_length=10, blank=True, validators=[mobile_validator])
    alternate_person_name = models.CharField(max_length=150, blank=True)
    source = models.CharField(max_length=10, choices=CustomerSource.choices, default=CustomerSource.MANUAL)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.name} ({self.mobile})"


__all__ = ["Customer", "CustomerSource"]
