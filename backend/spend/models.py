from __future__ import annotations

import uuid

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.db import models

from accounts.models import Client
from campaigns.platforms import OTHER, PLATFORM_CHOICES


class SpendLog(models.Model):
    """One (campaign, date, platform) observation of ad platform metrics."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client = models.ForeignKey(
        Client, on_delete=models.CASCADE, related_name="spend_logs"
    )
    campaign = models.ForeignKey(
        "campaigns.Campaign",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="spend_logs",
    )
    campaign_name = models.CharField(max_length=255)
    date = models.DateField()
    platform = models.CharField(max_length=32, choices=PLATFORM_CHOICES, default=OTHER)
    spend = models.DecimalField(
        max_digits=18,
        decimal_places=2,
        default=0,
        validators=[MinValueValidator(0)],
    )
    impressions = models.PositiveBigIntegerField(default=0)
    clicks = models.PositiveBigIntegerField(default=0)
    reach = models.PositiveBigIntegerField(default=0)
    import_batch_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    raw_data = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = models.Manager()

    class Meta:
        ordering = ("-date", "campaign_name")
        indexes = [
            models.Index(fields=["client", "date"], name="spend_log_client_date"),
            models.Index(fields=["client", "campaign_name"], name="spend_log_client_campaign"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(spend__gte=0), name="spend_log_spend_non_negative"
            )
        ]

    def __str__(self) -> str:  # pragma: no cover - debug helper
        return f"{self.campaign_name} {self.date} {self.spend}"


class ImportBatch(models.Model):
    """Bookkeeping for one spend import run."""

    STATUS_PENDING = "pending"
    STATUS_RUNNING = "running"
    STATUS_COMPLETED = "completed"
    STATUS_PARTIAL = "partial"
    STATUS_REJECTED = "rejected"
    STATUS_FAILED = "failed"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_RUNNING, "Running"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_PARTIAL, "Partially completed"),
        (STATUS_REJECTED, "Rejected"),
        (STATUS_FAILED, "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    batch_id = models.CharField(max_length=64, unique=True)
    client = models.ForeignKey(
        Client, on_delete=models.CASCADE, related_name="import_batches"
    )
    imported_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="spend_imports",
    )
    file_name = models.CharField(max_length=255, blank=True, default="")
    platform_override = models.CharField(max_length=32, blank=True, default="")
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)
    total_rows = models.PositiveIntegerField(default=0)
    inserted = models.PositiveIntegerField(default=0)
    skipped = models.PositiveIntegerField(default=0)
    failed = models.PositiveIntegerField(default=0)
    new_campaigns = models.PositiveIntegerField(default=0)
    timed_out = models.BooleanField(default=False)
    errors = models.JSONField(default=list, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    objects = models.Manager()

    class Meta:
        ordering = ("-created_at",)

    def __str__(self) -> str:  # pragma: no cover - debug helper
        return f"ImportBatch<{self.batch_id} {self.status}>"


class MappingTemplate(models.Model):
    """A saved ``header -> field`` map for a client's platform exports."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client = models.ForeignKey(
        Client, on_delete=models.CASCADE, related_name="mapping_templates"
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    platform = models.CharField(max_length=32, choices=PLATFORM_CHOICES, default=OTHER)
    column_mappings = models.JSONField(default=dict)
    transformations = models.JSONField(default=dict, blank=True)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = models.Manager()

    class Meta:
        ordering = ("platform", "name")

    def __str__(self) -> str:  # pragma: no cover - debug helper
        return self.name
