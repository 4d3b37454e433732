from __future__ import annotations

import uuid

from django.db import models

from accounts.models import Client

from .platforms import OTHER, PLATFORM_CHOICES


class Campaign(models.Model):
    """Canonical campaign identity for a client.

    ``original_name`` is the first-seen name and the dedup key used by imports;
    ``name`` is the editable display label.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client = models.ForeignKey(
        Client, on_delete=models.CASCADE, related_name="campaigns"
    )
    name = models.CharField(max_length=255)
    original_name = models.CharField(max_length=255, editable=False)
    platform = models.CharField(max_length=32, choices=PLATFORM_CHOICES, default=OTHER)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = models.Manager()

    class Meta:
        ordering = ("name", "created_at")
        constraints = [
            models.UniqueConstraint(
                fields=["client", "original_name"],
                name="campaigns_campaign_client_original_name",
            )
        ]

    def __str__(self) -> str:  # pragma: no cover - debug helper
        return f"{self.name} ({self.platform})"

    @property
    def aliases(self) -> list[str]:
        return [alias.name for alias in self.alias_rows.all()]


class CampaignAlias(models.Model):
    """A former campaign name absorbed by ``campaign`` through a merge."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client = models.ForeignKey(
        Client, on_delete=models.CASCADE, related_name="campaign_aliases"
    )
    campaign = models.ForeignKey(
        Campaign, on_delete=models.CASCADE, related_name="alias_rows"
    )
    name = models.CharField(max_length=255)
    position = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = models.Manager()

    class Meta:
        ordering = ("position", "created_at")
        constraints = [
            models.UniqueConstraint(
                fields=["client", "name"],
                name="campaigns_alias_client_name",
            )
        ]

    def __str__(self) -> str:  # pragma: no cover - debug helper
        return self.name
