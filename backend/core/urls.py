from django.contrib import admin
from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenRefreshView

from accounts.views import AuditLogViewSet, ClientTokenObtainPairView, ClientViewSet, MeView, UserViewSet
from analytics.views import CampaignAnalyticsView, ClientAnalyticsView, DashboardConfigView
from campaigns.views import CampaignViewSet
from leads.views import LeadViewSet, PipelineViewSet
from spend.views import (
    HeaderValidationView,
    ImportHistoryView,
    MappingTemplateViewSet,
    SpendImportView,
    SpendLogViewSet,
    SpendUploadView,
)
from . import views as core_views

router = DefaultRouter()
router.register(r"clients", ClientViewSet, basename="client")
router.register(r"users", UserViewSet, basename="user")
router.register(r"audit-logs", AuditLogViewSet, basename="auditlog")
router.register(r"campaigns", CampaignViewSet, basename="campaign")
router.register(r"spend-logs", SpendLogViewSet, basename="spendlog")
router.register(r"mappings", MappingTemplateViewSet, basename="mapping")
router.register(r"pipelines", PipelineViewSet, basename="pipeline")
router.register(r"leads", LeadViewSet, basename="lead")

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/auth/login/", ClientTokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("api/token/refresh/", TokenRefreshView.as_view(), name="jwt_token_refresh"),
    path("api/me/", MeView.as_view(), name="me"),
    path("api/health/", core_views.health, name="health"),
    path("api/health/version/", core_views.health_version, name="health-version"),
    path("api/health/db/", core_views.database_health, name="health-db"),
    path("api/timezone/", core_views.timezone_view, name="timezone"),
    path("api/spend/import/", SpendImportView.as_view(), name="spend-import"),
    path(
        "api/spend/import/validate/",
        HeaderValidationView.as_view(),
        name="spend-import-validate",
    ),
    path("api/spend/upload/", SpendUploadView.as_view(), name="spend-upload"),
    path("api/spend/imports/", ImportHistoryView.as_view(), name="spend-imports"),
    path(
        "api/analytics/<uuid:client_id>/",
        ClientAnalyticsView.as_view(),
        name="client-analytics",
    ),
    path(
        "api/analytics/<uuid:client_id>/campaigns/",
        CampaignAnalyticsView.as_view(),
        name="client-analytics-campaigns",
    ),
    path(
        "api/analytics/<uuid:client_id>/config/",
        DashboardConfigView.as_view(),
        name="client-analytics-config",
    ),
    path("metrics/app/", core_views.prometheus_metrics, name="metrics-app"),
    path("api/", include(router.urls)),
]

handler404 = "core.views.not_found"
handler500 = "core.views.server_error"
