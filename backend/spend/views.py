from __future__ import annotations

import json
from typing import Any, Mapping, Optional, Sequence

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.utils.dateparse import parse_date
from rest_framework import status, viewsets
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.models import Client
from accounts.permissions import IsTenantUser, resolve_target_client
from core.viewsets import TenantScopedQuerysetMixin

from . import matching
from .ingest import collect_headers, create_pending_batch, execute_import, record_rejected_import
from .models import ImportBatch, MappingTemplate, SpendLog
from .readers import SpreadsheetError, read_spreadsheet
from .serializers import (
    HeaderValidationSerializer,
    ImportBatchSerializer,
    MappingTemplateSerializer,
    SpendImportSerializer,
    SpendLogSerializer,
    SpendUploadSerializer,
)
from .tasks import run_spend_import

IMPORT_HISTORY_LIMIT = 50


def _truthy(value: Optional[str]) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


class SpendImportMixin:
    """Shared gate + dispatch for JSON row imports and file uploads."""

    def _column_mappings(self, client: Client, options: Mapping[str, Any]) -> dict[str, str]:
        mapping_id = options.get("mapping_id")
        if mapping_id:
            template = MappingTemplate.objects.filter(client=client, pk=mapping_id).first()
            if template is None:
                raise NotFound("Mapping template not found.")
            return dict(template.column_mappings)
        if options.get("column_mappings"):
            return dict(options["column_mappings"])
        platform = options.get("platform")
        if platform:
            template = MappingTemplate.objects.filter(
                client=client, platform=platform, is_default=True
            ).first()
            if template is not None:
                return dict(template.column_mappings)
            return dict(matching.PLATFORM_DEFAULTS.get(platform, {}))
        return {}

    def run_import(
        self,
        request,
        *,
        options: Mapping[str, Any],
        headers: Sequence[str],
        rows: list[dict[str, Any]],
        file_name: str = "",
    ) -> Response:
        client = resolve_target_client(
            request.user,
            options.get("client_id"),
            require_explicit_for_super_admin=True,
        )
        column_mappings = self._column_mappings(client, options)
        platform = options.get("platform") or None

        validation = matching.validate_headers(headers, overrides=column_mappings)
        if not validation.is_valid:
            batch = record_rejected_import(
                client=client,
                validation=validation,
                user=request.user,
                file_name=file_name,
                total_rows=len(rows),
            )
            return Response(
                {
                    "detail": validation.error,
                    "code": "import_rejected",
                    "batch_id": batch.batch_id,
                    "validation": validation.as_dict(),
                },
                status=status.HTTP_400_BAD_REQUEST,
            )

        if options.get("async") and len(rows) >= settings.SPEND_IMPORT_ASYNC_THRESHOLD:
            batch = create_pending_batch(
                client=client,
                user=request.user,
                file_name=file_name,
                platform=platform,
                total_rows=len(rows),
            )
            payload = json.loads(json.dumps(rows, cls=DjangoJSONEncoder))
            run_spend_import.delay(batch.batch_id, payload, platform, column_mappings or None)
            batch.refresh_from_db()
            return Response(
                {"batch_id": batch.batch_id, "status": batch.status, "queued": True},
                status=status.HTTP_202_ACCEPTED,
            )

        _, result = execute_import(
            client=client,
            rows=rows,
            user=request.user,
            platform=platform,
            file_name=file_name,
            column_mappings=column_mappings or None,
        )
        return Response(result.as_dict(), status=status.HTTP_201_CREATED)


class SpendImportView(SpendImportMixin, APIView):
    permission_classes = [IsTenantUser]

    def post(self, request):
        serializer = SpendImportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        rows = serializer.validated_data["rows"]
        return self.run_import(
            request,
            options=serializer.validated_data,
            headers=collect_headers(rows),
            rows=rows,
        )


class SpendUploadView(SpendImportMixin, APIView):
    permission_classes = [IsTenantUser]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        serializer = SpendUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        upload = serializer.validated_data["file"]
        try:
            sheet = read_spreadsheet(upload, max_rows=settings.SPEND_IMPORT_MAX_ROWS)
        except SpreadsheetError as exc:
            raise ValidationError({"file": [str(exc)]}) from exc
        if not sheet.rows:
            raise ValidationError({"file": ["The file has no data rows."]})
        return self.run_import(
            request,
            options=serializer.validated_data,
            headers=sheet.headers,
            rows=sheet.rows,
            file_name=upload.name,
        )


class HeaderValidationView(APIView):
    permission_classes = [IsTenantUser]
    parser_classes = [JSONParser]

    def post(self, request):
        serializer = HeaderValidationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        validation = matching.validate_headers(serializer.validated_data["headers"])
        return Response(validation.as_dict())


class ImportHistoryView(TenantScopedQuerysetMixin, APIView):
    permission_classes = [IsTenantUser]

    def get(self, request):
        queryset = self.scope_queryset(
            ImportBatch.objects.select_related("client", "imported_by")
        ).order_by("-created_at")[:IMPORT_HISTORY_LIMIT]
        return Response(ImportBatchSerializer(queryset, many=True).data)


class SpendLogPagination(LimitOffsetPagination):
    default_limit = 100
    max_limit = 1000


class SpendLogViewSet(TenantScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = SpendLogSerializer
    permission_classes = [IsTenantUser]
    pagination_class = SpendLogPagination
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    def get_queryset(self):  # type: ignore[override]
        queryset = self.scope_queryset(
            SpendLog.objects.select_related("campaign")
        )
        params = self.request.query_params
        campaign_id = params.get("campaign")
        if campaign_id:
            queryset = queryset.filter(campaign_id=campaign_id)
        platform = params.get("platform")
        if platform:
            queryset = queryset.filter(platform=platform.upper())
        start_date = self._date_param("start_date")
        if start_date:
            queryset = queryset.filter(date__gte=start_date)
        end_date = self._date_param("end_date")
        if end_date:
            queryset = queryset.filter(date__lte=end_date)
        batch_id = params.get("batch_id")
        if batch_id:
            queryset = queryset.filter(import_batch_id=batch_id)
        return queryset.order_by("-date", "campaign_name", "id")

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

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if self.action == "create":
            context["client"] = resolve_target_client(self.request.user)
        return context


class MappingTemplateViewSet(TenantScopedQuerysetMixin, viewsets.ModelViewSet):
    serializer_class = MappingTemplateSerializer
    permission_classes = [IsTenantUser]

    def get_queryset(self):  # type: ignore[override]
        queryset = self.scope_queryset(MappingTemplate.objects.all())
        platform = self.request.query_params.get("platform")
        if platform:
            queryset = queryset.filter(platform=platform.upper())
        return queryset.order_by("-is_default", "name")

    def list(self, request, *args, **kwargs):  # noqa: D401 - DRF API
        """List templates, or suggest a mapping when ``auto_detect=true``."""

        params = request.query_params
        if _truthy(params.get("auto_detect")):
            columns = [column.strip() for column in params.get("columns", "").split(",")]
            columns = [column for column in columns if column]
            if not columns:
                raise ValidationError({"columns": ["Provide a comma separated header list."]})
            return Response(matching.auto_detect(columns, params.get("platform")))

        serializer = self.get_serializer(self.get_queryset(), many=True)
        return Response(
            {"results": serializer.data, "platform_defaults": matching.PLATFORM_DEFAULTS}
        )

    def perform_create(self, serializer):
        client = resolve_target_client(
            self.request.user,
            self.request.data.get("client_id"),
            require_explicit_for_super_admin=True,
        )
        serializer.save(client=client)
