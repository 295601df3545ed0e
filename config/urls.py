from django.conf import settings
from django.urls import include
from django.urls import path
from django.views import defaults as default_views
from drf_spectacular.views import SpectacularAPIView
from drf_spectacular.views import SpectacularSwaggerView

from .health import health as health_view

urlpatterns = [
    path("health/", health_view, name="health"),
]

# API URLS (only version v1 retained)
urlpatterns += [
    # Compatibility prefix for clients that call `/api/...`.
    # Prefer `/api/v1/...` long-term.
    path("api/", include(("config.api_router", "api"), namespace="api")),
    # API v1 (namespace 'api_v1')
    path("api/v1/", include(("config.api_router", "api"), namespace="api_v1")),
    # v1 schema/docs
    path("api/v1/schema/", SpectacularAPIView.as_view(), name="api-schema-v1"),
    path(
        "api/v1/docs/",
        SpectacularSwaggerView.as_view(url_name="api-schema-v1"),
        name="api-docs-v1",
    ),
]

if settings.DEBUG:
    # This allows the error pages to be debugged during development, just visit
    # these url in browser to see how these error pages look like.
    urlpatterns += [
        path(
            "400/",
            default_views.bad_request,
            kwargs={"exception": Exception("Bad Request!")},
        ),
        path(
            "404/",
            default_views.page_not_found,
            kwargs={"exception": Exception("Page not Found")},
        ),
        path("500/", default_views.server_error),
    ]
