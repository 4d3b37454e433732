from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from accounts.audit import log_audit_event
from accounts.permissions import IsClientAdmin, IsTenantUser, resolve_target_client
from core.viewsets import TenantScopedQuerysetMixin

from .models import Campaign
from .resolver import merge_campaigns, with_counts
from .serializers import CampaignMergeSerializer, CampaignSerializer


class CampaignViewSet(TenantScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = CampaignSerializer
    permission_classes = [IsTenantUser]

    def get_permissions(self):  # noqa: D401 - DRF API
        """Deleting and merging campaigns is reserved for admins."""

        if self.action in {"destroy", "merge"}:
            return [IsClientAdmin()]
        return super().get_permissions()

    def get_queryset(self):  # type: ignore[override]
        queryset = self.scope_queryset(with_counts(Campaign.objects.all()))
        params = self.request.query_params
        platform = params.get("platform")
        if platform:
            queryset = queryset.filter(platform=platform.upper())
        is_active = params.get("is_active")
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() in {"1", "true", "yes"})
        search = params.get("search")
        if search:
            queryset = queryset.filter(name__icontains=search)
        return queryset.order_by("name", "created_at")

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if self.action == "create":
            context["client"] = resolve_target_client(
                self.request.user,
                self.request.data.get("client_id"),
                require_explicit_for_super_admin=True,
            )
        return context

    def perform_create(self, serializer):
        serializer.save(client=serializer.context["client"])

    def create(self, request, *args, **kwargs):  # noqa: D401 - DRF API
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        self.perform_create(serializer)
        campaign = with_counts(Campaign.objects.filter(pk=serializer.instance.pk)).get()
        output = self.get_serializer(campaign).data
        return Response(output, status=status.HTTP_201_CREATED)

    def perform_destroy(self, instance):
        client = instance.client
        campaign_id = instance.id
        name = instance.name
        super().perform_destroy(instance)
        log_audit_event(
            client=client,
            user=self.request.user,
            action="campaign_deleted",
            resource_type="campaign",
            resource_id=campaign_id,
            metadata={"name": name},
        )

    @action(detail=False, methods=["post"], url_path="merge")
    def merge(self, request):
        serializer = CampaignMergeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        target_id = serializer.validated_data["target_id"]
        target = self.scope_queryset(Campaign.objects.all()).filter(pk=target_id).first()
        if target is None:
            raise NotFound("Campaign not found.")
        merged = merge_campaigns(
            client=target.client,
            target_id=target_id,
            source_ids=serializer.validated_data["source_ids"],
            user=request.user,
        )
        return Response(self.get_serializer(merged).data)

