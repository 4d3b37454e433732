from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from accounts.models import Client

DEFAULT_STAGE_COLOR = "#3B82F6"


def _today():
    return timezone.localdate()


class Pipeline(models.Model):
    """A client's ordered lead stages plus the custom fields its leads carry.

    ``stages`` holds ``{id, name, color, order, is_goal}`` dicts and
    ``custom_fields`` holds ``{id, name, type, options, required}`` dicts.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client = models.ForeignKey(
        Client, on_delete=models.CASCADE, related_name="pipelines"
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    stages = models.JSONField(default=list)
    custom_fields = models.JSONField(default=list, blank=True)
    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = models.Manager()

    class Meta:
        ordering = ("-created_at",)

    def __str__(self) -> str:  # pragma: no cover - debug helper
        return self.name

    def ordered_stages(self) -> list[dict]:
        return sorted(self.stages or [], key=lambda stage: stage.get("order", 0))

    @property
    def stage_ids(self) -> set[str]:
        return {str(stage.get("id")) for stage in self.stages or []}

    @property
    def entry_stage(self) -> dict | None:
        stages = self.ordered_stages()
        return stages[0] if stages else None


class Lead(models.Model):
    """A prospective customer sitting at one stage of a pipeline."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name="leads")
    pipeline = models.ForeignKey(
        Pipeline, on_delete=models.CASCADE, related_name="leads"
    )
    current_stage = models.CharField(max_length=64)
    customer_name = models.CharField(max_length=255)
    phone = models.CharField(max_length=64, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    campaign = models.ForeignKey(
        "campaigns.Campaign",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="leads",
    )
    campaign_name = models.CharField(max_length=255, blank=True, default="")
    cs_number = models.CharField(max_length=64, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    value = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    custom_data = models.JSONField(default=dict, blank=True)
    lead_date = models.DateField(default=_today)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="leads_created",
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="leads_updated",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = models.Manager()

    class Meta:
        ordering = ("-created_at",)
        indexes = [
            models.Index(fields=["client", "lead_date"], name="lead_client_date"),
            models.Index(fields=["client", "campaign_name"], name="lead_client_campaign"),
            models.Index(fields=["pipeline", "current_stage"], name="lead_pipeline_stage"),
        ]

    def __str__(self) -> str:  # pragma: no cover - debug helper
        return f"{self.customer_name} @ {self.current_stage}"


class LeadStageHistory(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    lead = models.ForeignKey(Lead, on_delete=models.CASCADE, related_name="stage_history")
    from_stage = models.CharField(max_length=64, blank=True, default="")
    to_stage = models.CharField(max_length=64)
    moved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="lead_stage_moves",
    )
    moved_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ("-moved_at",)

    def __str__(self) -> str:  # pragma: no cover - debug helper
        return f"{self.from_stage or '-'} -> {self.to_stage}"
