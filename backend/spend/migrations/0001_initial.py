from __future__ import annotations

import uuid

import django.core.serializers.json
import django.core.validators
from django.conf import settings
from django.db import migrations, models

PLATFORM_CHOICES = [
    ("META", "Meta"),
    ("GOOGLE", "Google"),
    ("TIKTOK", "TikTok"),
    ("SHOPEE", "Shopee"),
    ("TOKOPEDIA", "Tokopedia"),
    ("OTHER", "Other"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        ("campaigns", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="SpendLog",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("campaign_name", models.CharField(max_length=255)),
                ("date", models.DateField()),
                (
                    "platform",
                    models.CharField(choices=PLATFORM_CHOICES, default="OTHER", max_length=32),
                ),
                (
                    "spend",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        max_digits=18,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("impressions", models.PositiveBigIntegerField(default=0)),
                ("clicks", models.PositiveBigIntegerField(default=0)),
                ("reach", models.PositiveBigIntegerField(default=0)),
                (
                    "import_batch_id",
                    models.CharField(blank=True, db_index=True, default="", max_length=64),
                ),
                (
                    "raw_data",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "campaign",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=models.deletion.SET_NULL,
                        related_name="spend_logs",
                        to="campaigns.campaign",
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=models.deletion.CASCADE,
                        related_name="spend_logs",
                        to="accounts.client",
                    ),
                ),
            ],
            options={
                "ordering": ("-date", "campaign_name"),
                "indexes": [
                    models.Index(fields=["client", "date"], name="spend_log_client_date"),
                    models.Index(
                        fields=["client", "campaign_name"], name="spend_log_client_campaign"
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(spend__gte=0), name="spend_log_spend_non_negative"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="ImportBatch",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("batch_id", models.CharField(max_length=64, unique=True)),
                ("file_name", models.CharField(blank=True, default="", max_length=255)),
                (
                    "platform_override",
                    models.CharField(blank=True, default="", max_length=32),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("running", "Running"),
                            ("completed", "Completed"),
                            ("partial", "Partially completed"),
                            ("rejected", "Rejected"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("total_rows", models.PositiveIntegerField(default=0)),
                ("inserted", models.PositiveIntegerField(default=0)),
                ("skipped", models.PositiveIntegerField(default=0)),
                ("failed", models.PositiveIntegerField(default=0)),
                ("new_campaigns", models.PositiveIntegerField(default=0)),
                ("timed_out", models.BooleanField(default=False)),
                (
                    "errors",
                    models.JSONField(
                        blank=True,
                        default=list,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=models.deletion.CASCADE,
                        related_name="import_batches",
                        to="accounts.client",
                    ),
                ),
                (
                    "imported_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=models.deletion.SET_NULL,
                        related_name="spend_imports",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-created_at",),
            },
        ),
        migrations.CreateModel(
            name="MappingTemplate",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "platform",
                    models.CharField(choices=PLATFORM_CHOICES, default="OTHER", max_length=32),
                ),
                ("column_mappings", models.JSONField(default=dict)),
                ("transformations", models.JSONField(blank=True, default=dict)),
                ("is_default", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=models.deletion.CASCADE,
                        related_name="mapping_templates",
                        to="accounts.client",
                    ),
                ),
            ],
            options={
                "ordering": ("platform", "name"),
            },
        ),
    ]
