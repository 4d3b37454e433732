from __future__ import annotations

import json
from typing import Any

from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from rest_framework import serializers

from campaigns.models import Campaign

from . import services
from .models import DEFAULT_STAGE_COLOR, Lead, LeadStageHistory, Pipeline


def _plain(value: Any) -> Any:
    return json.loads(json.dumps(value, cls=DjangoJSONEncoder))


class StageSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=120)
    color = serializers.CharField(max_length=32, default=DEFAULT_STAGE_COLOR)
    order = serializers.IntegerField()
    is_goal = serializers.BooleanField(default=False)


class CustomFieldSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=120)
    type = serializers.ChoiceField(choices=services.FIELD_TYPES)
    options = serializers.ListField(
        child=serializers.CharField(max_length=120), required=False, default=list
    )
    required = serializers.BooleanField(default=False)

    def validate(self, attrs):
        if attrs["type"] == services.FIELD_SELECT and not attrs.get("options"):
            raise serializers.ValidationError({"options": ["Select fields need at least one option."]})
        return attrs


def _duplicates(items) -> list[str]:
    seen: set[str] = set()
    duplicates: list[str] = []
    for item in items:
        key = str(item["id"])
        if key in seen and key not in duplicates:
            duplicates.append(key)
        seen.add(key)
    return duplicates


class PipelineSerializer(serializers.ModelSerializer):
    name = serializers.CharField(min_length=3, max_length=255)
    stages = StageSerializer(many=True, allow_empty=False)
    custom_fields = CustomFieldSerializer(many=True, required=False)
    client_name = serializers.CharField(source="client.name", read_only=True)

    class Meta:
        model = Pipeline
        fields = [
            "id",
            "client",
            "client_name",
            "name",
            "description",
            "stages",
            "custom_fields",
            "is_default",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "client", "created_at", "updated_at"]

    def validate_stages(self, value):
        duplicates = _duplicates(value)
        if duplicates:
            raise serializers.ValidationError(f"Duplicate stage ids: {', '.join(duplicates)}.")
        return _plain(value)

    def validate_custom_fields(self, value):
        duplicates = _duplicates(value)
        if duplicates:
            raise serializers.ValidationError(f"Duplicate custom field ids: {', '.join(duplicates)}.")
        return _plain(value)

    def validate(self, attrs):
        if self.instance is not None and "stages" in attrs:
            kept = {str(stage["id"]) for stage in attrs["stages"]}
            removed = self.instance.stage_ids - kept
            in_use = sorted(
                Lead.objects.filter(pipeline=self.instance, current_stage__in=removed)
                .values_list("current_stage", flat=True)
                .distinct()
            )
            if in_use:
                raise serializers.ValidationError(
                    {"stages": [f"Stages still hold leads: {', '.join(in_use)}."]}
                )
        return attrs

    def _clear_other_defaults(self, pipeline: Pipeline) -> None:
        Pipeline.objects.filter(client_id=pipeline.client_id, is_default=True).exclude(
            pk=pipeline.pk
        ).update(is_default=False)

    def create(self, validated_data):
        with transaction.atomic():
            pipeline = Pipeline.objects.create(**validated_data)
            if pipeline.is_default:
                self._clear_other_defaults(pipeline)
        return pipeline

    def update(self, instance, validated_data):
        with transaction.atomic():
            for attr, value in validated_data.items():
                setattr(instance, attr, value)
            instance.save()
            if instance.is_default:
                self._clear_other_defaults(instance)
        return instance


class LeadSerializer(serializers.ModelSerializer):
    pipeline = serializers.PrimaryKeyRelatedField(queryset=Pipeline.objects.all())
    pipeline_name = serializers.CharField(source="pipeline.name", read_only=True)
    current_stage = serializers.CharField(max_length=64, required=False)
    stage_name = serializers.SerializerMethodField()
    campaign = serializers.PrimaryKeyRelatedField(
        queryset=Campaign.objects.all(), required=False, allow_null=True
    )
    campaign_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    value = serializers.DecimalField(
        max_digits=18, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    custom_data = serializers.DictField(required=False)

    class Meta:
        model = Lead
        fields = [
            "id",
            "client",
            "pipeline",
            "pipeline_name",
            "current_stage",
            "stage_name",
            "customer_name",
            "phone",
            "email",
            "campaign",
            "campaign_name",
            "cs_number",
            "notes",
            "value",
            "custom_data",
            "lead_date",
            "created_by",
            "updated_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "client", "created_by", "updated_by", "created_at", "updated_at"]

    def get_stage_name(self, obj: Lead):
        for stage in obj.pipeline.stages or []:
            if str(stage.get("id")) == obj.current_stage:
                return stage.get("name")
        return None

    def validate_pipeline(self, value: Pipeline) -> Pipeline:
        if self.instance is not None:
            client_id = self.instance.client_id
        else:
            client = self.context.get("client")
            client_id = client.id if client is not None else value.client_id
        if value.client_id != client_id:
            raise serializers.ValidationError("Pipeline does not belong to this client.")
        return value

    def validate(self, attrs):
        instance = self.instance
        pipeline = attrs.get("pipeline") or instance.pipeline

        if "current_stage" in attrs:
            attrs["current_stage"] = services.validate_stage(pipeline, attrs["current_stage"])
        elif instance is None:
            entry = pipeline.entry_stage
            if entry is None:
                raise serializers.ValidationError({"pipeline": ["Pipeline has no stages."]})
            attrs["current_stage"] = str(entry["id"])
        elif pipeline.pk != instance.pipeline_id:
            services.validate_stage(pipeline, instance.current_stage)

        if instance is None or "custom_data" in attrs or pipeline.pk != instance.pipeline_id:
            source = attrs.get("custom_data", instance.custom_data if instance else {})
            attrs["custom_data"] = services.validate_custom_data(pipeline, source)

        if "campaign" in attrs or "campaign_name" in attrs:
            campaign, campaign_name = services.attribute_campaign(
                pipeline.client_id,
                campaign=attrs.get("campaign"),
                campaign_name=attrs.get("campaign_name"),
            )
            attrs["campaign"] = campaign
            attrs["campaign_name"] = campaign_name or services.MANUAL_ENTRY
        elif instance is None:
            attrs["campaign_name"] = services.MANUAL_ENTRY
        return attrs

    def _actor(self):
        request = self.context.get("request")
        user = getattr(request, "user", None)
        return user if getattr(user, "is_authenticated", False) else None

    def create(self, validated_data):
        validated_data["client"] = validated_data["pipeline"].client
        validated_data["created_by"] = self._actor()
        validated_data["updated_by"] = validated_data["created_by"]
        return super().create(validated_data)

    def update(self, instance, validated_data):
        previous = instance.current_stage
        validated_data["updated_by"] = self._actor()
        with transaction.atomic():
            lead = super().update(instance, validated_data)
            if lead.current_stage != previous:
                LeadStageHistory.objects.create(
                    lead=lead,
                    from_stage=previous,
                    to_stage=lead.current_stage,
                    moved_by=validated_data["updated_by"],
                )
        return lead


class LeadStageHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = LeadStageHistory
        fields = ["id", "lead", "from_stage", "to_stage", "moved_by", "moved_at"]
        read_only_fields = fields


class StageTransitionSerializer(serializers.Serializer):
    stage_id = serializers.CharField(max_length=64)


class LeadImportRowSerializer(serializers.Serializer):
    """One spreadsheet-style lead row.

    ``name``/``source``/``campaign`` are accepted as aliases. Keys matching a
    pipeline custom field (by id or name) are validated into ``custom_data``;
    other columns are kept there as-is.
    """

    ALIASES = {"name": "customer_name", "source": "campaign_name", "campaign": "campaign_name"}

    customer_name = serializers.CharField(max_length=255)
    phone = serializers.CharField(max_length=64, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    value = serializers.DecimalField(
        max_digits=18, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    notes = serializers.CharField(required=False, allow_blank=True)
    cs_number = serializers.CharField(max_length=64, required=False, allow_blank=True)
    campaign_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    lead_date = serializers.DateField(required=False, allow_null=True)
    custom_data = serializers.DictField(required=False)

    def to_internal_value(self, data):
        if not isinstance(data, dict):
            return super().to_internal_value(data)
        pipeline: Pipeline = self.context["pipeline"]
        by_name = {
            str(spec.get("name", "")).strip().lower(): str(spec.get("id"))
            for spec in pipeline.custom_fields or []
        }
        field_ids = {str(spec.get("id")) for spec in pipeline.custom_fields or []}
        payload: dict[str, Any] = {}
        custom = dict(data.get("custom_data") or {})
        for key, value in data.items():
            if key == "custom_data":
                continue
            target = self.ALIASES.get(key, key)
            if target in self.fields:
                payload.setdefault(target, value)
            elif key in field_ids:
                custom[key] = value
            elif str(key).strip().lower() in by_name:
                custom[by_name[str(key).strip().lower()]] = value
            else:
                custom[key] = value
        payload["custom_data"] = custom
        return super().to_internal_value(payload)

    def validate(self, attrs):
        attrs["custom_data"] = services.validate_custom_data(
            self.context["pipeline"], attrs.get("custom_data"), keep_unknown=True
        )
        return attrs


class LeadImportSerializer(serializers.Serializer):
    leads = serializers.ListField(child=serializers.DictField(), allow_empty=False, max_length=5000)
