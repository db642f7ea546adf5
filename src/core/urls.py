"""Root URL configuration for the service desk API."""

from django.conf import settings
from django.conf.urls.static import static
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path("auth/", include("authentication.urls")),
    path("", include("authentication.user_urls")),
    path("", include("access_control.urls")),
    path("", include("tickets.urls")),
    path("", include("customers.urls")),
    path("", include("inventory.urls")),
    path("", include("problems.urls")),
    path("", include("installations.urls")),
    path("dashboard/", include("dashboard.urls")),
    path("logs/", include("audit.urls")),
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
]

urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
