"""Serializers for analytics endpoints."""

from __future__ import annotations

from rest_framework import serializers

from campaigns.platforms import PLATFORMS

from . import presets
from .models import DashboardConfig


class MetricCardSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    label = serializers.CharField(max_length=120)
    formula = serializers.CharField(max_length=120)
    format = serializers.ChoiceField(choices=presets.METRIC_FORMATS)
    visible = serializers.BooleanField(default=True)
    order = serializers.IntegerField()


class ChartSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    type = serializers.CharField(max_length=32)
    title = serializers.CharField(max_length=120)
    visible = serializers.BooleanField(default=True)
    order = serializers.IntegerField()


class DashboardConfigSerializer(serializers.ModelSerializer):
    metrics = MetricCardSerializer(many=True, required=False)
    charts = ChartSerializer(many=True, required=False)

    class Meta:
        model = DashboardConfig
        fields = ["id", "client", "preset", "metrics", "charts", "created_at", "updated_at"]
        read_only_fields = ["id", "client", "created_at", "updated_at"]

    def validate(self, attrs):
        # Switching preset without explicit cards adopts the preset's cards.
        if "preset" in attrs and "metrics" not in attrs:
            attrs["metrics"] = presets.preset_metrics(attrs["preset"])
        # Nested defaults are skipped on partial updates, so fill them here.
        for key in ("metrics", "charts"):
            if key in attrs:
                attrs[key] = [{"visible": True, **dict(item)} for item in attrs[key]]
        return attrs

    def update(self, instance, validated_data):
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()
        return instance


class AnalyticsQuerySerializer(serializers.Serializer):
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    platform = serializers.CharField(required=False, allow_blank=True)

    def validate_platform(self, value: str):
        value = (value or "").strip().upper()
        if value in ("", "ALL"):
            return None
        if value not in PLATFORMS:
            raise serializers.ValidationError(f"Unknown platform '{value}'.")
        return value

    def validate(self, attrs):
        start, end = attrs.get("start_date"), attrs.get("end_date")
        if start and end and start > end:
            raise serializers.ValidationError({"end_date": ["Must not be before start_date."]})
        return attrs
