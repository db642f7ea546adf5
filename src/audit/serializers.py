"""Read-only serializers for the audit trail and activity feed."""

from rest_framework import serializers

from .models import ActivityLog, AuditLogEntry


class ActorSerializer(serializers.Serializer):
    id = serializers.UUIDField(read_only=True)
    name = serializers.CharField(read_only=True)
    email = serializers.EmailField(read_only=True)


class AuditLogEntrySerializer(serializers.ModelSerializer):
    performed_by = ActorSerializer(read_only=True)

    class Meta:
        model = AuditLogEntry
        fields = [
            "id",
            "entity_type",
            "entity_id",
            "action",
            "previous_state",
            "new_state",
            "performed_by",
            "performed_at",
            "source_address",
        ]
        read_only_fields = fields


class ActivityLogSerializer(serializers.ModelSerializer):
    user = ActorSerializer(read_only=True)

    class Meta:
        model = ActivityLog
        fields = ["id", "user", "action", "details", "timestamp", "source_address"]
        read_only_fields = fields
