from __future__ import annotations

from django.db.models import Q
from django.utils.dateparse import parse_date
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from accounts.permissions import IsClientAdminOrReadOnly, IsTenantUser, resolve_target_client
from core.viewsets import TenantScopedQuerysetMixin

from . import services
from .models import Lead, Pipeline
from .serializers import (
    LeadImportRowSerializer,
    LeadImportSerializer,
    LeadSerializer,
    LeadStageHistorySerializer,
    PipelineSerializer,
    StageTransitionSerializer,
)

LEAD_LIST_LIMIT = 500


class PipelineViewSet(TenantScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = PipelineSerializer
    permission_classes = [IsClientAdminOrReadOnly]

    def get_permissions(self):  # noqa: D401 - DRF API
        """Every client user may import leads into a visible pipeline."""

        if self.action == "import_leads":
            return [IsTenantUser()]
        return super().get_permissions()

    def get_queryset(self):  # type: ignore[override]
        queryset = self.scope_queryset(Pipeline.objects.select_related("client"))
        is_active = self.request.query_params.get("is_active")
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() in {"1", "true", "yes"})
        return queryset.order_by("-is_default", "-created_at")

    def perform_create(self, serializer):
        client = resolve_target_client(
            self.request.user,
            self.request.data.get("client_id"),
            require_explicit_for_super_admin=True,
        )
        serializer.save(client=client)

    @action(detail=True, methods=["post"], url_path="leads/import")
    def import_leads(self, request, pk=None):
        pipeline = self.get_object()
        serializer = LeadImportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        cleaned = []
        errors = []
        for index, row in enumerate(serializer.validated_data["leads"], start=1):
            row_serializer = LeadImportRowSerializer(data=row, context={"pipeline": pipeline})
            if row_serializer.is_valid():
                cleaned.append(row_serializer.validated_data)
            else:
                errors.append({"row": index, "errors": row_serializer.errors})
        if errors:
            return Response({"leads": errors}, status=status.HTTP_400_BAD_REQUEST)

        leads = services.import_leads(pipeline, cleaned, user=request.user)
        return Response(
            {
                "count": len(leads),
                "pipeline": str(pipeline.id),
                "stage": leads[0].current_stage if leads else None,
            },
            status=status.HTTP_201_CREATED,
        )


class LeadViewSet(TenantScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = LeadSerializer
    permission_classes = [IsTenantUser]

    def get_queryset(self):  # type: ignore[override]
        queryset = self.scope_queryset(
            Lead.objects.select_related("pipeline", "campaign")
        )
        params = self.request.query_params
        pipeline_id = params.get("pipeline")
        if pipeline_id:
            queryset = queryset.filter(pipeline_id=pipeline_id)
        stage = params.get("stage")
        if stage:
            queryset = queryset.filter(current_stage=stage)
        search = params.get("search")
        if search:
            queryset = queryset.filter(
                Q(customer_name__icontains=search) | Q(phone__icontains=search)
            )
        date_from = self._date_param("date_from")
        if date_from:
            queryset = queryset.filter(lead_date__gte=date_from)
        date_to = self._date_param("date_to")
        if date_to:
            queryset = queryset.filter(lead_date__lte=date_to)
        return queryset.order_by("-created_at")

    def _date_param(self, name: str):
        raw = self.request.query_params.get(name)
        if not raw:
            return None
        try:
            parsed = parse_date(raw)
        except ValueError:
            parsed = None
        if parsed is None:
            raise ValidationError({name: ["Use the YYYY-MM-DD format."]})
        return parsed

    def list(self, request, *args, **kwargs):
        queryset = self.get_queryset()[:LEAD_LIST_LIMIT]
        return Response(self.get_serializer(queryset, many=True).data)

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if self.action == "create":
            context["client"] = resolve_target_client(self.request.user)
        return context

    @action(detail=True, methods=["get", "post"], url_path="stage")
    def stage(self, request, pk=None):
        lead = self.get_object()
        if request.method == "GET":
            history = lead.stage_history.all().order_by("-moved_at")
            return Response(LeadStageHistorySerializer(history, many=True).data)

        serializer = StageTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        lead, _history = services.transition_stage(
            lead, serializer.validated_data["stage_id"], user=request.user
        )
        return Response(self.get_serializer(lead).data)
