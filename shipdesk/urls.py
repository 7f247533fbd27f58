"""ShipDesk root URL configuration."""

from django.conf import settings
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path("admin/", admin.site.urls),

    # OpenAPI / Interactive Docs
    path("api/schema/",  SpectacularAPIView.as_view(),       name="schema"),
    path("api/docs/",    SpectacularSwaggerView.as_view(), name="swagger-ui"),

    # Auth
    path("api/auth/token/",         TokenObtainPairView.as_view(), name="token-obtain"),
    path("api/auth/token/refresh/", TokenRefreshView.as_view(),    name="token-refresh"),

    # Carrier integration
    path("api/", include("apps.shipments.urls")),
    path("api/", include("apps.waybills.urls")),
    path("api/", include("apps.warehouses.urls")),
]

# Prometheus metrics (production settings only)
if "django_prometheus" in settings.INSTALLED_APPS:
    urlpatterns += [path("", include("django_prometheus.urls"))]
