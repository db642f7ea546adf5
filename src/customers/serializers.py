"""Serializers for customer records."""

from rest_framework import serializers

from .models import Customer


class CustomerSerializer(serializers.ModelSerializer):
    ticket_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Customer
        fields = [
            "id",
            "name",
            "address",
            "state",
            "city",
            "village",
            "pincode",
            "mobile",
            "email",
            "alternate_mobile",
            "alternate_person_name",
            "source",
            "is_active",
            "ticket_count",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "is_active", "ticket_count", "created_by", "created_at", "updated_at"]
        # Duplicates are reported as 409 by the service instead of 400 here.
        extra_kwargs = {"mobile": {"validators": []}, "email": {"validators": []}}

    def validate_mobile(self, value: str) -> str:
        value = value.strip()
        if not value.isdigit() or len(value) != 10:
            raise serializers.ValidationError(f"{value} is not a valid mobile number!")
        return value

    def validate_email(self, value):
        return value.lower() if value else None
