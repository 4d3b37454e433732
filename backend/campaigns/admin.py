from __future__ import annotations

from django.contrib import admin

from .models import Campaign, CampaignAlias


class CampaignAliasInline(admin.TabularInline):
    model = CampaignAlias
    extra = 0
    fields = ("name", "position", "created_at")
    readonly_fields = ("created_at",)


@admin.register(Campaign)
class CampaignAdmin(admin.ModelAdmin):
    list_display = ("name", "original_name", "platform", "client", "is_active")
    list_filter = ("platform", "is_active", "client")
    search_fields = ("name", "original_name")
    inlines = [CampaignAliasInline]
