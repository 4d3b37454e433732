from __future__ import annotations

import uuid

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
    ]

    operations = [
        migrations.CreateModel(
            name="Campaign",
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
                ("original_name", models.CharField(editable=False, max_length=255)),
                (
                    "platform",
                    models.CharField(choices=PLATFORM_CHOICES, default="OTHER", max_length=32),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=models.deletion.CASCADE,
                        related_name="campaigns",
                        to="accounts.client",
                    ),
                ),
            ],
            options={
                "ordering": ("name", "created_at"),
                "constraints": [
                    models.UniqueConstraint(
                        fields=("client", "original_name"),
                        name="campaigns_campaign_client_original_name",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="CampaignAlias",
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
                ("position", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "campaign",
                    models.ForeignKey(
                        on_delete=models.deletion.CASCADE,
                        related_name="alias_rows",
                        to="campaigns.campaign",
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=models.deletion.CASCADE,
                        related_name="campaign_aliases",
                        to="accounts.client",
                    ),
                ),
            ],
            options={
                "ordering": ("position", "created_at"),
                "constraints": [
                    models.UniqueConstraint(
                        fields=("client", "name"),
                        name="campaigns_alias_client_name",
                    )
                ],
            },
        ),
    ]
