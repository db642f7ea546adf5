"""Serializers for tickets, their children, and ticket settings."""

from rest_framework import serializers

from access_control.models import Role
from customers.models import Customer
from inventory.models import Item
from problems.models import Problem
from problems.serializers import ProblemOptionSerializer

from .models import (
    Ticket,
    TicketAssignment,
    TicketAttachment,
    TicketComment,
    TicketPriority,
    TicketSettings,
)


class UserRefSerializer(serializers.Serializer):
    id = serializers.UUIDField(read_only=True)
    name = serializers.CharField(read_only=True)
    email = serializers.EmailField(read_only=True)


class TicketAttachmentSerializer(serializers.ModelSerializer):
    uploaded_by = UserRefSerializer(read_only=True)

    class Meta:
        model = TicketAttachment
        fields = ["id", "url", "filename", "mime_type", "size", "comment", "uploaded_by", "uploaded_at"]
        read_only_fields = fields


class TicketCommentSerializer(serializers.ModelSerializer):
    author = UserRefSerializer(read_only=True)
    attachments = TicketAttachmentSerializer(many=True, read_only=True)

    class Meta:
        model = TicketComment
        fields = ["id", "body", "is_internal", "author", "attachments", "created_at"]
        read_only_fields = ["id", "author", "attachments", "created_at"]


class TicketAssignmentSerializer(serializers.ModelSerializer):
    assigned_to = UserRefSerializer(read_only=True)
    assigned_by = UserRefSerializer(read_only=True)

    class Meta:
        model = TicketAssignment
        fields = ["id", "assigned_to", "assigned_by", "assigned_at", "notes"]
        read_only_fields = fields


class TicketListSerializer(serializers.ModelSerializer):
    created_by = UserRefSerializer(read_only=True)
    assigned_to = UserRefSerializer(read_only=True)

    class Meta:
        model = Ticket
        fields = [
            "id",
            "ticket_id",
            "title",
            "priority",
            "category",
            "status",
            "created_by",
            "assigned_to",
            "customer",
            "due_date",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TicketDetailSerializer(TicketListSerializer):
    assigned_by = UserRefSerializer(read_only=True)
    resolved_by = UserRefSerializer(read_only=True)
    approved_by = UserRefSerializer(read_only=True)
    closed_by = UserRefSerializer(read_only=True)
    comments = serializers.SerializerMethodField()
    attachments = TicketAttachmentSerializer(many=True, read_only=True)
    problems = ProblemOptionSerializer(many=True, read_only=True)

    class Meta(TicketListSerializer.Meta):
        fields = TicketListSerializer.Meta.fields + [
            "description",
            "assigned_by",
            "assigned_at",
            "item",
            "serial_number",
            "problems",
            "resolution_note",
            "resolved_by",
            "resolved_at",
            "approved_by",
            "approved_at",
            "closed_by",
            "closed_at",
            "comments",
            "attachments",
        ]
        read_only_fields = fields

    def get_comments(self, obj) -> list[dict]:
        comments = obj.comments.select_related("author").prefetch_related("attachments")
        return TicketCommentSerializer(comments, many=True).data


class TicketWriteSerializer(serializers.ModelSerializer):
    """Input for create and field edits; status is never writable here."""

    customer = serializers.PrimaryKeyRelatedField(
        queryset=Customer.objects.filter(is_active=True), required=False, allow_null=True
    )
    item = serializers.PrimaryKeyRelatedField(queryset=Item.objects.all(), required=False, allow_null=True)
    problems = serializers.PrimaryKeyRelatedField(queryset=Problem.objects.all(), many=True, required=False)

    class Meta:
        model = Ticket
        fields = [
            "title",
            "description",
            "priority",
            "category",
            "customer",
            "item",
            "serial_number",
            "due_date",
            "problems",
        ]
        extra_kwargs = {
            "priority": {"required": False},
            "category": {"required": False},
            "serial_number": {"required": False, "allow_blank": True},
            "due_date": {"required": False, "allow_null": True},
        }

    @staticmethod
    def validate_title(value: str) -> str:
        value = value.strip()
        if len(value) < 5:
            raise serializers.ValidationError("Title must be at least 5 characters long")
        return value

    def validate(self, attrs):
        if self.instance is not None and "status" in getattr(self, "initial_data", {}):
            raise serializers.ValidationError("Use the lifecycle endpoints to change the status")
        return attrs


class AssignSerializer(serializers.Serializer):
    assigned_to = serializers.UUIDField()
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True)


class ResolveSerializer(serializers.Serializer):
    resolution_note = serializers.CharField(max_length=5000)


class DeleteTicketSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class CommentCreateSerializer(serializers.Serializer):
    body = serializers.CharField(max_length=2000)
    is_internal = serializers.BooleanField(required=False, default=False)


class TicketSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = TicketSettings
        fields = [
            "auto_approval",
            "auto_approval_roles",
            "default_assign_to_support_manager",
            "default_due_date_days",
            "priority_due_dates",
            "notify_on_status_change",
            "allow_reopen_closed_tickets",
            "reopen_window_days",
            "updated_by",
            "updated_at",
        ]
        read_only_fields = ["updated_by", "updated_at"]


def _validate_priority_days(value) -> dict[str, int]:
    if not isinstance(value, dict):
        raise serializers.ValidationError("Expected a mapping of priority to days")
    unknown = sorted(set(value) - set(TicketPriority.values))
    if unknown:
        raise serializers.ValidationError(f"Unknown priorities: {', '.join(unknown)}")
    cleaned = {}
    for priority, days in value.items():
        if not isinstance(days, int) or isinstance(days, bool) or not 1 <= days <= 90:
            raise serializers.ValidationError(f"{priority} must be a whole number of days between 1 and 90")
        cleaned[priority] = days
    return cleaned


def _validate_role_codes(value: list[str]) -> list[str]:
    codes = [code.upper() for code in value]
    known = set(Role.objects.filter(code__in=codes).values_list("code", flat=True))
    missing = sorted(set(codes) - known)
    if missing:
        raise serializers.ValidationError(f"Unknown roles: {', '.join(missing)}")
    return codes


class TicketSettingsUpdateSerializer(serializers.Serializer):
    auto_approval = serializers.BooleanField(required=False)
    auto_approval_roles = serializers.ListField(child=serializers.CharField(), required=False)
    default_assign_to_support_manager = serializers.BooleanField(required=False)
    default_due_date_days = serializers.IntegerField(min_value=1, max_value=90, required=False)
    priority_due_dates = serializers.JSONField(required=False)
    notify_on_status_change = serializers.BooleanField(required=False)
    allow_reopen_closed_tickets = serializers.BooleanField(required=False)
    reopen_window_days = serializers.IntegerField(min_value=1, max_value=365, required=False)

    @staticmethod
    def validate_priority_due_dates(value):
        return _validate_priority_days(value)

    @staticmethod
    def validate_auto_approval_roles(value):
        return _validate_role_codes(value)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("No settings to update")
        return attrs


class AutoApprovalSerializer(serializers.Serializer):
    enabled = serializers.BooleanField()
    roles = serializers.ListField(child=serializers.CharField(), required=False)

    @staticmethod
    def validate_roles(value):
        return _validate_role_codes(value)


class DueDatesSerializer(serializers.Serializer):
    default_due_date_days = serializers.IntegerField(min_value=1, max_value=90, required=False)
    priority_due_dates = serializers.JSONField(required=False)

    @staticmethod
    def validate_priority_due_dates(value):
        return _validate_priority_days(value)


__all__ = [
    "AssignSerializer",
    "AutoApprovalSerializer",
    "CommentCreateSerializer",
    "DeleteTicketSerializer",
    "DueDatesSerializer",
    "ResolveSerializer",
    "TicketAssignmentSerializer",
    "TicketAttachmentSerializer",
    "TicketCommentSerializer",
    "TicketDetailSerializer",
    "TicketListSerializer",
    "TicketSettingsSerializer",
    "TicketSettingsUpdateSerializer",
    "TicketWriteSerializer",
]
