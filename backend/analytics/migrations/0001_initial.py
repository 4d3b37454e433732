from __future__ import annotations

import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="DashboardConfig",
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
                (
                    "preset",
                    models.CharField(
                        choices=[
                            ("META", "Meta Ads"),
                            ("GOOGLE", "Google Ads"),
                            ("TIKTOK", "TikTok Ads"),
                            ("CUSTOM", "Custom"),
                        ],
                        default="CUSTOM",
                        max_length=16,
                    ),
                ),
                ("metrics", models.JSONField(default=list)),
                ("charts", models.JSONField(default=list)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "client",
                    models.OneToOneField(
                        on_delete=models.deletion.CASCADE,
                        related_name="dashboard_config",
                        to="accounts.client",
                    ),
                ),
            ],
        ),
    ]
