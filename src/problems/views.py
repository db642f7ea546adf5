"""Problem catalogue endpoints."""

from django.db.models import Count, Q
from rest_framework import status
from rest_framework.decorators import action

from access_control.permissions import HasAnyPermission
from access_control.registry import PermissionCode as P
from access_control.registry import resource_code
from core.response import BaseViewSet, api_response, client_address
from .models import Problem
from .serializers import ProblemOptionSerializer, ProblemSerializer
from . import services

VIEW_PROBLEMS = (P.VIEW_PROBLEM, resource_code("PROBLEMS", "VIEW"))
EDIT_PROBLEMS = (resource_code("PROBLEMS", "EDIT"),)


class ProblemViewSet(BaseViewSet):
    permission_classes = [HasAnyPermission]
    required_permissions = {
        "list": VIEW_PROBLEMS,
        "retrieve": VIEW_PROBLEMS,
        "dropdown": VIEW_PROBLEMS,
        "create": (resource_code("PROBLEMS", "CREATE"),),
        "update": EDIT_PROBLEMS,
        "partial_update": EDIT_PROBLEMS,
        "destroy": (resource_code("PROBLEMS", "DELETE"),),
    }
    serializer_class = ProblemSerializer
    queryset = Problem.objects.annotate(ticket_count=Count("tickets", filter=Q(tickets__is_deleted=False)))

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if params.get("search"):
            term = params["search"]
            qs = qs.filter(Q(name__icontains=term) | Q(description__icontains=term))
        if params.get("category"):
            qs = qs.filter(category=params["category"].upper())
        return qs

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        problem = services.create_problem(
            serializer.validated_data, actor=request.user, source_address=client_address(request)
        )
        return api_response(
            ProblemSerializer(problem).data, status=status.HTTP_201_CREATED, message="Problem created"
        )

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        problem = self.get_object()
        serializer = self.get_serializer(problem, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        problem = services.update_problem(
            problem, serializer.validated_data, actor=request.user, source_address=client_address(request)
        )
        return api_response(ProblemSerializer(problem).data, message="Problem updated")

    def destroy(self, request, *args, **kwargs):
        services.delete_problem(self.get_object(), actor=request.user, source_address=client_address(request))
        return api_response(None, message="Problem deleted successfully")

    @action(detail=False, methods=["get"])
    def dropdown(self, request):
        """Every problem as ``id``, ``name`` and ``category``, sorted by name."""
        qs = Problem.objects.order_by("name", "id")
        return api_response(ProblemOptionSerializer(qs, many=True).data)
