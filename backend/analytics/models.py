"""Analytics domain models."""

from __future__ import annotations

import uuid

from django.db import models

from accounts.models import Client

from .presets import CUSTOM, PRESET_CHOICES


class DashboardConfig(models.Model):
    """Which metric cards and charts a client's dashboard shows."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client = models.OneToOneField(
        Client, on_delete=models.CASCADE, related_name="dashboard_config"
    )
    preset = models.CharField(max_length=16, choices=PRESET_CHOICES, default=CUSTOM)
    metrics = models.JSONField(default=list)
    charts = models.JSONField(default=list)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = models.Manager()

    def __str__(self) -> str:  # pragma: no cover - debug helper
        return f"DashboardConfig<{self.client_id}:{self.preset}>"
