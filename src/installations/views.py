"""Installation request endpoints."""

from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser

from access_control.permissions import HasAnyPermission
from access_control.registry import PermissionCode as P
from access_control.registry import resource_code
from audit.views import parse_date_param
from core.response import BaseViewSet, api_response, client_address
from customers.models import Customer
from inventory.models import Item
from .models import InstallationRequest, InstallationStatus
from .serializers import (
    InstallationAssignSerializer,
    InstallationCompleteSerializer,
    InstallationRequestSerializer,
    InstallationRequestWriteSerializer,
)
from . import services

VIEW_REQUESTS = (P.VIEW_INSTALLATION, resource_code("INSTALLATION_REQUESTS", "VIEW"))
EDIT_REQUESTS = (P.UPDATE_INSTALLATION, resource_code("INSTALLATION_REQUESTS", "EDIT"))


class InstallationRequestViewSet(BaseViewSet):
    permission_classes = [HasAnyPermission]
    required_permissions = {
        "list": VIEW_REQUESTS,
        "retrieve": VIEW_REQUESTS,
        "form_options": VIEW_REQUESTS,
        "create": (P.CREATE_INSTALLATION, resource_code("INSTALLATION_REQUESTS", "CREATE")),
        "update": EDIT_REQUESTS,
        "partial_update": EDIT_REQUESTS,
        "destroy": (P.DELETE_INSTALLATION, resource_code("INSTALLATION_REQUESTS", "DELETE")),
        "assign": (P.ASSIGN_INSTALLATION,),
        "start": EDIT_REQUESTS,
        "complete": (P.COMPLETE_INSTALLATION,),
        "cancel": EDIT_REQUESTS,
    }
    serializer_class = InstallationRequestSerializer
    parser_classes = [JSONParser, FormParser, MultiPartParser]
    queryset = InstallationRequest.objects.select_related("customer", "item", "assigned_to", "created_by")

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get("status"):
            qs = qs.filter(status=params["status"].upper())
        for field in ("customer", "item", "assigned_to"):
            if params.get(field):
                qs = qs.filter(**{f"{field}_id": params[field]})
        if params.get("search"):
            term = params["search"]
            qs = qs.filter(
                Q(request_id__icontains=term)
                | Q(assigned_agency__icontains=term)
                | Q(customer__name__icontains=term)
            )
        start = parse_date_param(params, "start_date")
        if start:
            qs = qs.filter(scheduled_date__gte=start)
        end = parse_date_param(params, "end_date")
        if end:
            qs = qs.filter(scheduled_date__lte=end)
        return qs

    def _detail(self, request_obj, *, status_code=status.HTTP_200_OK, message=""):
        return api_response(InstallationRequestSerializer(request_obj).data, status=status_code, message=message)

    def create(self, request, *args, **kwargs):
        serializer = InstallationRequestWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        created = services.create(serializer.validated_data, actor=request.user, source_address=client_address(request))
        return self._detail(created, status_code=status.HTTP_201_CREATED, message="Installation request created")

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        instance = self.get_object()
        serializer = InstallationRequestWriteSerializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        instance = services.update(
            instance, dict(serializer.validated_data), actor=request.user, source_address=client_address(request)
        )
        return self._detail(instance, message="Installation request updated")

    def destroy(self, request, *args, **kwargs):
        services.delete(self.get_object(), actor=request.user, source_address=client_address(request))
        return api_response(None, message="Installation request deleted")

    @action(detail=False, methods=["get"], url_path="options")
    def form_options(self, request):
        """Choices for the request form: statuses, active customers and items."""
        return api_response(
            {
                "statuses": [{"value": value, "label": label} for value, label in InstallationStatus.choices],
                "customers": list(Customer.objects.filter(is_active=True).order_by("name").values("id", "name")),
                "items": list(Item.objects.order_by("name").values("id", "name")),
            }
        )

    @action(detail=True, methods=["post"])
    def assign(self, request, pk=None):
        serializer = InstallationAssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        instance = services.assign(
            self.get_object(),
            serializer.validated_data["assigned_to"],
            actor=request.user,
            source_address=client_address(request),
        )
        return self._detail(instance, message="Installation request assigned")

    @action(detail=True, methods=["post"])
    def start(self, request, pk=None):
        instance = services.start(self.get_object(), actor=request.user, source_address=client_address(request))
        return self._detail(instance, message="Installation started")

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        serializer = InstallationCompleteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        instance = services.complete(
            self.get_object(),
            actor=request.user,
            completed_date=serializer.validated_data.get("completed_date"),
            notes=serializer.validated_data.get("notes"),
            photos=request.FILES.getlist("photos"),
            videos=request.FILES.getlist("videos"),
            source_address=client_address(request),
        )
        return self._detail(instance, message="Installation completed")

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        instance = services.cancel(self.get_object(), actor=request.user, source_address=client_address(request))
        return self._detail(instance, message="Installation request cancelled")
