from __future__ import annotations

from django.db import transaction
from rest_framework import serializers

from campaigns.models import Campaign
from campaigns.platforms import PLATFORM_CHOICES

from . import matching
from .models import ImportBatch, MappingTemplate, SpendLog


class ColumnMappingsField(serializers.DictField):
    """``header -> canonical field`` map restricted to known fields."""

    def __init__(self, **kwargs):
        super().__init__(child=serializers.CharField(), **kwargs)

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        unknown = sorted({target for target in value.values() if target not in matching.CANONICAL_FIELDS})
        if unknown:
            raise serializers.ValidationError(
                f"Unknown target fields: {', '.join(unknown)}. "
                f"Expected one of: {', '.join(matching.CANONICAL_FIELDS)}."
            )
        return value


class _ImportOptionsMixin(serializers.Serializer):
    client_id = serializers.UUIDField(required=False, allow_null=True)
    platform = serializers.ChoiceField(choices=PLATFORM_CHOICES, required=False, allow_blank=True)
    mapping_id = serializers.UUIDField(required=False, allow_null=True)
    column_mappings = ColumnMappingsField(required=False)

    def get_fields(self):
        fields = super().get_fields()
        # ``async`` is a keyword, so it cannot be declared as a class attribute.
        fields["async"] = serializers.BooleanField(required=False, default=False)
        return fields


class SpendImportSerializer(_ImportOptionsMixin):
    rows = serializers.ListField(child=serializers.DictField(), allow_empty=False)


class SpendUploadSerializer(_ImportOptionsMixin):
    file = serializers.FileField()


class HeaderValidationSerializer(serializers.Serializer):
    headers = serializers.ListField(
        child=serializers.CharField(allow_blank=True, trim_whitespace=False)
    )


class SpendLogSerializer(serializers.ModelSerializer):
    campaign = serializers.PrimaryKeyRelatedField(
        queryset=Campaign.objects.all(), required=False
    )
    spend = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=0)
    impressions = serializers.IntegerField(min_value=0, required=False)
    clicks = serializers.IntegerField(min_value=0, required=False)
    reach = serializers.IntegerField(min_value=0, required=False)

    class Meta:
        model = SpendLog
        fields = [
            "id",
            "client",
            "campaign",
            "campaign_name",
            "date",
            "platform",
            "spend",
            "impressions",
            "clicks",
            "reach",
            "import_batch_id",
            "raw_data",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "client",
            "campaign_name",
            "platform",
            "import_batch_id",
            "raw_data",
            "created_at",
            "updated_at",
        ]

    def validate_campaign(self, value: Campaign) -> Campaign:
        if self.instance is not None:
            client_id = self.instance.client_id
        else:
            client = self.context.get("client")
            client_id = client.id if client is not None else value.client_id
        if value.client_id != client_id:
            raise serializers.ValidationError("Campaign does not belong to this client.")
        return value

    def validate(self, attrs):
        if self.instance is None and attrs.get("campaign") is None:
            raise serializers.ValidationError({"campaign": "This field is required."})
        return attrs

    def create(self, validated_data):
        campaign = validated_data["campaign"]
        validated_data["client"] = campaign.client
        validated_data["campaign_name"] = campaign.original_name
        validated_data["platform"] = campaign.platform
        return super().create(validated_data)

    def update(self, instance, validated_data):
        campaign = validated_data.get("campaign")
        if campaign is not None:
            validated_data["campaign_name"] = campaign.original_name
        return super().update(instance, validated_data)


class ImportBatchSerializer(serializers.ModelSerializer):
    imported_by_email = serializers.EmailField(
        source="imported_by.email", read_only=True, default=None
    )
    client_name = serializers.CharField(source="client.name", read_only=True)

    class Meta:
        model = ImportBatch
        fields = [
            "id",
            "batch_id",
            "client",
            "client_name",
            "imported_by",
            "imported_by_email",
            "file_name",
            "platform_override",
            "status",
            "total_rows",
            "inserted",
            "skipped",
            "failed",
            "new_campaigns",
            "timed_out",
            "errors",
            "created_at",
            "completed_at",
        ]
        read_only_fields = fields


class MappingTemplateSerializer(serializers.ModelSerializer):
    column_mappings = ColumnMappingsField()
    transformations = serializers.DictField(required=False)

    class Meta:
        model = MappingTemplate
        fields = [
            "id",
            "client",
            "name",
            "description",
            "platform",
            "column_mappings",
            "transformations",
            "is_default",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "client", "created_at", "updated_at"]

    def _clear_other_defaults(self, template: MappingTemplate) -> None:
        MappingTemplate.objects.filter(
            client_id=template.client_id,
            platform=template.platform,
            is_default=True,
        ).exclude(pk=template.pk).update(is_default=False)

    def create(self, validated_data):
        with transaction.atomic():
            template = super().create(validated_data)
            if template.is_default:
                self._clear_other_defaults(template)
        return template

    def update(self, instance, validated_data):
        with transaction.atomic():
            template = super().update(instance, validated_data)
            if template.is_default:
                self._clear_other_defaults(template)
        return template
