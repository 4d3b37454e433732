from __future__ import annotations

import logging

from rest_framework.permissions import SAFE_METHODS
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.models import Client
from accounts.permissions import IsClientAdmin, IsTenantUser, resolve_target_client

from . import aggregation, presets
from .models import DashboardConfig
from .serializers import AnalyticsQuerySerializer, DashboardConfigSerializer

logger = logging.getLogger(__name__)


def get_or_create_config(client: Client, platform: str | None = None) -> DashboardConfig:
    """Return the client's dashboard config, creating it from a preset on first use."""

    preset = presets.preset_for_platform(platform)
    config, created = DashboardConfig.objects.get_or_create(
        client=client,
        defaults={
            "preset": preset,
            "metrics": presets.preset_metrics(preset),
            "charts": presets.default_charts(),
        },
    )
    if created:
        logger.info(
            "analytics.config_created",
            extra={"tenant_id": str(client.id), "preset": preset},
        )
    return config


class ClientAnalyticsMixin:
    permission_classes = [IsTenantUser]

    def get_client(self, request, client_id) -> Client:
        return resolve_target_client(request.user, client_id)

    def get_filters(self, request, client: Client) -> aggregation.MetricFilters:
        params = request.query_params
        serializer = AnalyticsQuerySerializer(
            data={
                key: value
                for key, value in {
                    "start_date": params.get("start_date") or params.get("startDate"),
                    "end_date": params.get("end_date") or params.get("endDate"),
                    "platform": params.get("platform"),
                }.items()
                if value is not None
            }
        )
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        return aggregation.MetricFilters(
            client_id=client.id,
            start_date=data.get("start_date"),
            end_date=data.get("end_date"),
            platform=data.get("platform"),
        )


class ClientAnalyticsView(ClientAnalyticsMixin, APIView):
    def get(self, request, client_id):
        client = self.get_client(request, client_id)
        filters = self.get_filters(request, client)
        config = get_or_create_config(client, filters.platform)
        return Response(
            {
                "client": {
                    "id": str(client.id),
                    "name": client.name,
                    "logo": client.logo,
                    "currency": client.currency,
                },
                "config": DashboardConfigSerializer(config).data,
                "metrics": aggregation.compute_totals(filters),
                "charts": {"monthly": aggregation.monthly_breakdown(filters)},
                "presets": presets.METRIC_PRESETS,
            }
        )


class CampaignAnalyticsView(ClientAnalyticsMixin, APIView):
    def get(self, request, client_id):
        client = self.get_client(request, client_id)
        filters = self.get_filters(request, client)
        return Response(
            {
                "stats": aggregation.campaign_breakdown(filters),
                "stages": aggregation.default_pipeline_stages(client.id),
            }
        )


class DashboardConfigView(ClientAnalyticsMixin, APIView):
    def get_permissions(self):  # noqa: D401 - DRF API
        """Only admins may change what a client's dashboard shows."""

        if self.request.method in SAFE_METHODS:
            return [IsTenantUser()]
        return [IsClientAdmin()]

    def get(self, request, client_id):
        client = self.get_client(request, client_id)
        return Response(DashboardConfigSerializer(get_or_create_config(client)).data)

    def patch(self, request, client_id):
        client = self.get_client(request, client_id)
        config = get_or_create_config(client)
        serializer = DashboardConfigSerializer(config, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)
