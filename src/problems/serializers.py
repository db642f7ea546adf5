"""Serializers for the problem catalogue."""

from rest_framework import serializers

from .models import Problem


class ProblemSerializer(serializers.ModelSerializer):
    ticket_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Problem
        fields = [
            "id",
            "name",
            "description",
            "category",
            "ticket_count",
            "created_by",
            "updated_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "ticket_count", "created_by", "updated_by", "created_at", "updated_at"]

    @staticmethod
    def validate_name(value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Problem name is required")
        return value


class ProblemOptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Problem
        fields = ["id", "name", "category"]
        read_only_fields = fields
