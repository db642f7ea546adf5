"""Inventory items that tickets may reference."""

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class ItemStatus(models.TextChoices):
    AVAILABLE = "AVAILABLE", "Available"
    OUT_OF_STOCK = "OUT_OF_STOCK", "Out of stock"
    DISCONTINUED = "DISCONTINUED", "Discontinued"


class Item(models.Model):
    name = models.CharField(max_length=150, db_index=True)
    sku = models.CharField(max_length=64, unique=True, null=True, blank=True)
    category = models.CharField(max_length=100, blank=True, db_index=True)
    description = models.TextField(blank=True)
    quantity = models.PositiveIntegerField(default=0)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    status = models.CharField(max_length=20, choices=ItemStatus.choices, default=ItemStatus.AVAILABLE)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.name

    def save(self, *args, **kwargs):
        if self.status != ItemStatus.DISCONTINUED:
            self.status = ItemStatus.AVAILABLE if self.quantity > 0 else ItemStatus.OUT_OF_STOCK
        super().save(*args, **kwargs)


class MovementType(models.TextChoices):
    DISPATCH = "DISPATCH", "Dispatch"
    RETURN = "RETURN", "Return"


class MovementStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


class InventoryMovement(models.Model):
    """Stock leaving for, or coming back from, a ticket or an installation.

    Item quantity only changes when a movement is completed.
    """

    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name="movements")
    movement_type = models.CharField(max_length=10, choices=MovementType.choices)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    ticket = models.ForeignKey(
        "tickets.Ticket", null=True, blank=True, on_delete=models.PROTECT, related_name="movements"
    )
    installation = models.ForeignKey(
        "installations.InstallationRequest",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="movements",
    )
    status = models.CharField(
        max_length=10, choices=MovementStatus.choices, default=MovementStatus.PENDING, db_index=True
    )
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]


__all__ = ["InventoryMovement", "Item", "ItemStatus", "MovementStatus", "MovementType"]
