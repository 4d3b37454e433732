from __future__ import annotations

import uuid

from django.conf import settings
from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models


def default_currency() -> str:
    return getattr(settings, "DEFAULT_CURRENCY", "IDR")


class Client(models.Model):
    """An advertiser organisation; the unit of tenancy for every record."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    currency = models.CharField(max_length=8, default=default_currency)
    logo = models.URLField(max_length=500, blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:  # pragma: no cover - repr helper
        return self.name


class User(AbstractUser):
    SUPER_ADMIN = "SUPER_ADMIN"
    CLIENT_ADMIN = "CLIENT_ADMIN"
    CS = "CS"
    ROLE_CHOICES = [
        (SUPER_ADMIN, "Super admin"),
        (CLIENT_ADMIN, "Client admin"),
        (CS, "Customer service"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client = models.ForeignKey(
        Client,
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="users",
    )
    role = models.CharField(max_length=32, choices=ROLE_CHOICES, default=CS)

    objects = UserManager()

    REQUIRED_FIELDS = ["email"]

    def save(self, *args, **kwargs):
        if not self.username:
            self.username = str(self.id)
        super().save(*args, **kwargs)

    @property
    def is_super_admin(self) -> bool:
        return self.is_superuser or self.role == self.SUPER_ADMIN

    @property
    def is_client_admin(self) -> bool:
        return self.role == self.CLIENT_ADMIN and self.client_id is not None

    @property
    def can_manage_client(self) -> bool:
        return self.is_super_admin or self.is_client_admin


class AuditLog(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    client = models.ForeignKey(
        Client, on_delete=models.CASCADE, related_name="audit_logs"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL
    )
    action = models.CharField(max_length=128)
    resource_type = models.CharField(max_length=64)
    resource_id = models.CharField(max_length=64)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = models.Manager()

    class Meta:
        ordering = ["-created_at"]
