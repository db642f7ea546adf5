"""Page/limit pagination that emits the list envelope with ``meta.pagination``."""

from django.conf import settings
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class StandardPagination(PageNumberPagination):
    """Pagination for every list endpoint.

    Query parameters:
    - page: 1-based page number (default 1)
    - limit: items per page (default ``PAGINATION_DEFAULT_LIMIT``, capped at
      ``PAGINATION_MAX_LIMIT``)

    Response::

        {
            "status": "success",
            "message": "",
            "data": [...],
            "meta": {"pagination": {"page": 1, "limit": 10, "total": 42, "pages": 5}}
        }
    """

    page_query_param = "page"
    page_size_query_param = "limit"

    def __init__(self):
        self.page_size = settings.PAGINATION_DEFAULT_LIMIT
        self.max_page_size = settings.PAGINATION_MAX_LIMIT

    def paginate_queryset(self, queryset, request, view=None):
        self.limit = self.get_page_size(request)
        return super().paginate_queryset(queryset, request, view)

    def get_paginated_response(self, data):
        paginator = self.page.paginator
        return Response(
            {
                "status": "success",
                "message": "",
                "data": data,
                "meta": {
                    "pagination": {
                        "page": self.page.number,
                        "limit": self.limit,
                        "total": paginator.count,
                        "pages": paginator.num_pages,
                    }
                },
            }
        )

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "success"},
                "message": {"type": "string"},
                "data": schema,
                "meta": {
                    "type": "object",
                    "properties": {
                        "pagination": {
                            "type": "object",
                            "properties": {
                                "page": {"type": "integer"},
                                "limit": {"type": "integer"},
                                "total": {"type": "integer"},
                                "pages": {"type": "integer"},
                            },
                        }
                    },
                },
            },
        }


__all__ = ["StandardPagination"]
