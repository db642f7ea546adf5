"""Serializers for inventory items and stock movements."""

from rest_framework import serializers

from installations.models import InstallationRequest
from tickets.models import Ticket

from .models import InventoryMovement, Item


class ItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = Item
        fields = [
            "id",
            "name",
            "sku",
            "category",
            "description",
            "quantity",
            "price",
            "status",
            "created_by",
            "updated_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_by", "updated_by", "created_at", "updated_at"]

    def validate_sku(self, value):
        return value.strip() or None if value else None


class InventoryMovementSerializer(serializers.ModelSerializer):
    item_name = serializers.CharField(source="item.name", read_only=True)
    ticket = serializers.PrimaryKeyRelatedField(
        queryset=Ticket.objects.alive(), required=False, allow_null=True
    )
    installation = serializers.PrimaryKeyRelatedField(
        queryset=InstallationRequest.objects.all(), required=False, allow_null=True
    )

    class Meta:
        model = InventoryMovement
        fields = [
            "id",
            "item",
            "item_name",
            "movement_type",
            "quantity",
            "ticket",
            "installation",
            "status",
            "notes",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "item_name", "status", "created_by", "created_at", "updated_at"]
        extra_kwargs = {"notes": {"required": False, "allow_blank": True}}

    def validate(self, attrs):
        ticket = attrs.get("ticket", getattr(self.instance, "ticket", None))
        installation = attrs.get("installation", getattr(self.instance, "installation", None))
        if (ticket is None) == (installation is None):
            raise serializers.ValidationError("A movement references exactly one ticket or installation request")
        return attrs
