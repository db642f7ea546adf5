"""Ticket endpoints: CRUD, lifecycle transitions, comments and attachments."""

from django.db.models import Q
from rest_framework import mixins, status
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser

from access_control.permissions import HasAnyPermission
from access_control.registry import PermissionCode as P
from access_control.registry import resource_code
from audit.models import AuditLogEntry
from audit.serializers import AuditLogEntrySerializer
from audit.views import parse_date_param
from core.exceptions import NotFound
from core.response import BaseAPIView, BaseGenericViewSet, api_response, client_address
from .models import Ticket
from .serializers import (
    AssignSerializer,
    AutoApprovalSerializer,
    CommentCreateSerializer,
    DeleteTicketSerializer,
    DueDatesSerializer,
    ResolveSerializer,
    TicketAssignmentSerializer,
    TicketCommentSerializer,
    TicketDetailSerializer,
    TicketListSerializer,
    TicketSettingsSerializer,
    TicketSettingsUpdateSerializer,
    TicketWriteSerializer,
)
from .services import TicketService, TicketSettingsService

VIEW_TICKETS = (P.VIEW_TICKET, resource_code("TICKETS", "VIEW"))
EDIT_TICKETS = (P.UPDATE_TICKET, resource_code("TICKETS", "EDIT"))


class TicketViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, BaseGenericViewSet):
    """Tickets and their lifecycle; every mutation goes through ``TicketService``."""

    permission_classes = [HasAnyPermission]
    required_permissions = {
        "list": VIEW_TICKETS,
        "retrieve": VIEW_TICKETS,
        "assignment_history": VIEW_TICKETS,
        "history": VIEW_TICKETS,
        "create": (P.CREATE_TICKET, resource_code("TICKETS", "CREATE")),
        "update": EDIT_TICKETS,
        "partial_update": EDIT_TICKETS,
        "destroy": (P.DELETE_TICKET, resource_code("TICKETS", "DELETE")),
        "assign": (P.ASSIGN_TICKET,),
        "start": EDIT_TICKETS,
        "resolve": (P.RESOLVE_TICKET,),
        "approve": (P.APPROVE_TICKET,),
        "close": EDIT_TICKETS,
        "reopen": EDIT_TICKETS,
        "comments": VIEW_TICKETS,
        "add_comment": EDIT_TICKETS,
        "attachments": EDIT_TICKETS,
        "remove_attachment": EDIT_TICKETS,
    }
    serializer_class = TicketListSerializer
    parser_classes = [JSONParser, FormParser, MultiPartParser]

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Ticket.objects.none()
        qs = TicketService.visible_tickets(self.request.user)
        params = self.request.query_params
        for field in ("status", "priority", "category"):
            if params.get(field):
                qs = qs.filter(**{field: params[field].upper()})
        for field in ("assigned_to", "created_by", "customer", "item"):
            if params.get(field):
                qs = qs.filter(**{f"{field}_id": params[field]})
        if params.get("serial_number"):
            qs = qs.filter(serial_number__iexact=params["serial_number"])
        if params.get("search"):
            term = params["search"]
            qs = qs.filter(
                Q(title__icontains=term) | Q(ticket_id__icontains=term) | Q(description__icontains=term)
            )
        start = parse_date_param(params, "start_date")
        if start:
            qs = qs.filter(created_at__date__gte=start)
        end = parse_date_param(params, "end_date")
        if end:
            qs = qs.filter(created_at__date__lte=end)
        return qs

    def get_serializer_class(self):
        if self.action == "retrieve":
            return TicketDetailSerializer
        return TicketListSerializer

    def _detail(self, ticket, *, status_code=status.HTTP_200_OK, message=""):
        ticket.refresh_from_db()
        return api_response(TicketDetailSerializer(ticket).data, status=status_code, message=message)

    def create(self, request):
        serializer = TicketWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ticket = TicketService.create(
            serializer.validated_data, actor=request.user, source_address=client_address(request)
        )
        return self._detail(ticket, status_code=status.HTTP_201_CREATED, message="Ticket created")

    def update(self, request, pk=None, partial=False):
        ticket = self.get_object()
        serializer = TicketWriteSerializer(ticket, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        ticket = TicketService.update_fields(
            ticket, dict(serializer.validated_data), actor=request.user, source_address=client_address(request)
        )
        return self._detail(ticket, message="Ticket updated")

    def partial_update(self, request, pk=None):
        return self.update(request, pk=pk, partial=True)

    def destroy(self, request, pk=None):
        ticket = self.get_object()
        data = request.data if hasattr(request.data, "get") and request.data else request.query_params
        serializer = DeleteTicketSerializer(data={"reason": data.get("reason", "")})
        serializer.is_valid(raise_exception=True)
        TicketService.delete(
            ticket, serializer.validated_data["reason"], actor=request.user, source_address=client_address(request)
        )
        return api_response(None, message="Ticket deleted")

    @action(detail=True, methods=["post"])
    def assign(self, request, pk=None):
        ticket = self.get_object()
        serializer = AssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ticket = TicketService.assign(
            ticket,
            serializer.validated_data["assigned_to"],
            actor=request.user,
            notes=serializer.validated_data.get("notes", ""),
            source_address=client_address(request),
        )
        return self._detail(ticket, message="Ticket assigned")

    @action(detail=True, methods=["post"])
    def start(self, request, pk=None):
        ticket = TicketService.start(self.get_object(), actor=request.user, source_address=client_address(request))
        return self._detail(ticket, message="Work started")

    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):
        serializer = ResolveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ticket = TicketService.resolve(
            self.get_object(),
            serializer.validated_data["resolution_note"],
            actor=request.user,
            source_address=client_address(request),
        )
        return self._detail(ticket, message="Ticket resolved")

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        ticket = TicketService.approve(self.get_object(), actor=request.user, source_address=client_address(request))
        return self._detail(ticket, message="Ticket resolution approved")

    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        ticket = TicketService.close(self.get_object(), actor=request.user, source_address=client_address(request))
        return self._detail(ticket, message="Ticket closed")

    @action(detail=True, methods=["post"])
    def reopen(self, request, pk=None):
        ticket = TicketService.reopen(self.get_object(), actor=request.user, source_address=client_address(request))
        return self._detail(ticket, message="Ticket reopened")

    @action(detail=True, methods=["get"])
    def comments(self, request, pk=None):
        qs = self.get_object().comments.select_related("author").prefetch_related("attachments")
        return api_response(TicketCommentSerializer(qs, many=True).data)

    @comments.mapping.post
    def add_comment(self, request, pk=None):
        ticket = self.get_object()
        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = TicketService.add_comment(
            ticket,
            serializer.validated_data["body"],
            actor=request.user,
            is_internal=serializer.validated_data["is_internal"],
            files=request.FILES.getlist("files"),
            source_address=client_address(request),
        )
        return api_response(
            TicketCommentSerializer(comment).data, status=status.HTTP_201_CREATED, message="Comment added"
        )

    @action(detail=True, methods=["post"])
    def attachments(self, request, pk=None):
        ticket = self.get_object()
        TicketService.add_attachments(
            ticket, request.FILES.getlist("files"), actor=request.user, source_address=client_address(request)
        )
        return self._detail(ticket, status_code=status.HTTP_201_CREATED, message="Attachments added")

    @action(detail=True, methods=["delete"], url_path=r"attachments/(?P<attachment_id>[0-9]+)")
    def remove_attachment(self, request, pk=None, attachment_id=None):
        ticket = self.get_object()
        attachment = ticket.attachments.filter(pk=attachment_id).first()
        if attachment is None:
            raise NotFound("Attachment not found")
        TicketService.remove_attachment(
            ticket, attachment, actor=request.user, source_address=client_address(request)
        )
        return self._detail(ticket, message="Attachment deleted")

    @action(detail=True, methods=["get"], url_path="assignment-history")
    def assignment_history(self, request, pk=None):
        ticket = self.get_object()
        qs = ticket.assignment_history.select_related("assigned_to", "assigned_by")
        return api_response(TicketAssignmentSerializer(qs, many=True).data)

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        """Audit entries recorded for this ticket, newest first."""
        ticket = self.get_object()
        qs = AuditLogEntry.objects.filter(entity_type="Ticket", entity_id=str(ticket.pk)).select_related(
            "performed_by"
        )
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(AuditLogEntrySerializer(page, many=True).data)
        return api_response(AuditLogEntrySerializer(qs, many=True).data)


VIEW_SETTINGS = (P.VIEW_SETTINGS, P.MANAGE_SETTINGS)
MANAGE_SETTINGS = (P.MANAGE_SETTINGS,)


class TicketSettingsView(BaseAPIView):
    permission_classes = [HasAnyPermission]
    required_permissions = {"GET": VIEW_SETTINGS, "PUT": MANAGE_SETTINGS, "PATCH": MANAGE_SETTINGS}

    # noinspection PyMethodMayBeStatic
    def get(self, request):
        return api_response(TicketSettingsSerializer(TicketSettingsService.get()).data)

    # noinspection PyMethodMayBeStatic
    def put(self, request):
        serializer = TicketSettingsUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        instance = TicketSettingsService.update(
            dict(serializer.validated_data), actor=request.user, source_address=client_address(request)
        )
        return api_response(TicketSettingsSerializer(instance).data, message="Settings updated")

    patch = put


class TicketSettingsResetView(BaseAPIView):
    permission_classes = [HasAnyPermission]
    required_permissions = {"POST": MANAGE_SETTINGS}

    # noinspection PyMethodMayBeStatic
    def post(self, request):
        instance = TicketSettingsService.reset(actor=request.user, source_address=client_address(request))
        return api_response(TicketSettingsSerializer(instance).data, message="Settings reset to defaults")


class AutoApprovalView(BaseAPIView):
    permission_classes = [HasAnyPermission]
    required_permissions = {"PATCH": MANAGE_SETTINGS}

    # noinspection PyMethodMayBeStatic
    def patch(self, request):
        serializer = AutoApprovalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        instance = TicketSettingsService.toggle_auto_approval(
            serializer.validated_data["enabled"],
            serializer.validated_data.get("roles"),
            actor=request.user,
            source_address=client_address(request),
        )
        return api_response(TicketSettingsSerializer(instance).data, message="Auto-approval updated")


class DueDatesView(BaseAPIView):
    permission_classes = [HasAnyPermission]
    required_permissions = {"GET": VIEW_SETTINGS, "PUT": MANAGE_SETTINGS}

    # noinspection PyMethodMayBeStatic
    def get(self, request):
        return api_response(TicketSettingsService.due_dates())

    # noinspection PyMethodMayBeStatic
    def put(self, request):
        serializer = DueDatesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        TicketSettingsService.update_due_dates(
            dict(serializer.validated_data), actor=request.user, source_address=client_address(request)
        )
        return api_response(TicketSettingsService.due_dates(), message="Due dates updated")
