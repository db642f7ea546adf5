"""Customer endpoints."""

from django.db.models import Count, Q
from rest_framework import status
from rest_framework.decorators import action

from access_control.permissions import HasAnyPermission
from access_control.registry import PermissionCode as P
from access_control.registry import resource_code
from core.response import BaseViewSet, api_response, client_address
from tickets.serializers import TicketListSerializer
from .models import Customer
from .serializers import CustomerSerializer
from . import services

VIEW_CUSTOMERS = (P.VIEW_CUSTOMER, resource_code("CUSTOMERS", "VIEW"))


class CustomerViewSet(BaseViewSet):
    permission_classes = [HasAnyPermission]
    required_permissions = {
        "list": VIEW_CUSTOMERS,
        "retrieve": VIEW_CUSTOMERS,
        "tickets": VIEW_CUSTOMERS,
        "create": (resource_code("CUSTOMERS", "CREATE"),),
        "update": (resource_code("CUSTOMERS", "EDIT"),),
        "partial_update": (resource_code("CUSTOMERS", "EDIT"),),
        "destroy": (resource_code("CUSTOMERS", "DELETE"),),
    }
    serializer_class = CustomerSerializer
    queryset = Customer.objects.annotate(ticket_count=Count("tickets", filter=Q(tickets__is_deleted=False)))

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get("search"):
            term = params["search"]
            qs = qs.filter(Q(name__icontains=term) | Q(mobile__icontains=term) | Q(email__icontains=term))
        if params.get("is_active") in ("true", "false"):
            qs = qs.filter(is_active=params["is_active"] == "true")
        for field in ("state", "city", "pincode"):
            if params.get(field):
                qs = qs.filter(**{f"{field}__iexact": params[field]})
        return qs

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        customer = services.create_customer(
            serializer.validated_data, actor=request.user, source_address=client_address(request)
        )
        return api_response(CustomerSerializer(customer).data, status=status.HTTP_201_CREATED, message="Customer created")

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        customer = self.get_object()
        serializer = self.get_serializer(customer, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        customer = services.update_customer(
            customer, serializer.validated_data, actor=request.user, source_address=client_address(request)
        )
        return api_response(CustomerSerializer(customer).data, message="Customer updated")

    def destroy(self, request, *args, **kwargs):
        removed = services.delete_customer(
            self.get_object(), actor=request.user, source_address=client_address(request)
        )
        message = "Customer deleted successfully" if removed else "Customer deactivated (has associated records)"
        return api_response(None, message=message)

    @action(detail=True, methods=["get"])
    def tickets(self, request, pk=None):
        """Tickets raised for this customer, newest first."""
        customer = self.get_object()
        qs = customer.tickets.alive().select_related("assigned_to", "created_by")
        page = self.paginate_queryset(qs)
        data = TicketListSerializer(page if page is not None else qs, many=True).data
        if page is not None:
            return self.get_paginated_response(data)
        return api_response(data)
