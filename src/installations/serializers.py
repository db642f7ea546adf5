"""Serializers for installation requests."""

from rest_framework import serializers

from customers.models import Customer
from inventory.models import Item
from tickets.serializers import UserRefSerializer

from .models import InstallationRequest


class InstallationRequestSerializer(serializers.ModelSerializer):
    assigned_to = UserRefSerializer(read_only=True)
    created_by = UserRefSerializer(read_only=True)
    customer_name = serializers.CharField(source="customer.name", read_only=True)
    item_name = serializers.CharField(source="item.name", read_only=True)

    class Meta:
        model = InstallationRequest
        fields = [
            "id",
            "request_id",
            "customer",
            "customer_name",
            "item",
            "item_name",
            "status",
            "assigned_agency",
            "assigned_to",
            "scheduled_date",
            "completed_date",
            "verification_photos",
            "verification_videos",
            "notes",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class InstallationRequestWriteSerializer(serializers.ModelSerializer):
    """Input for create and edits; status moves only through the actions."""

    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.filter(is_active=True))
    item = serializers.PrimaryKeyRelatedField(queryset=Item.objects.all())

    class Meta:
        model = InstallationRequest
        fields = ["customer", "item", "assigned_agency", "scheduled_date", "notes"]
        extra_kwargs = {"notes": {"required": False, "allow_blank": True}}

    @staticmethod
    def validate_assigned_agency(value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Assigned agency is required")
        return value


class InstallationAssignSerializer(serializers.Serializer):
    assigned_to = serializers.UUIDField()


class InstallationCompleteSerializer(serializers.Serializer):
    completed_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
