from __future__ import annotations

from django.contrib import admin

from .models import Lead, LeadStageHistory, Pipeline


@admin.register(Pipeline)
class PipelineAdmin(admin.ModelAdmin):
    list_display = ("name", "client", "is_default", "is_active", "created_at")
    list_filter = ("is_default", "is_active")


class LeadStageHistoryInline(admin.TabularInline):
    model = LeadStageHistory
    extra = 0
    readonly_fields = ("from_stage", "to_stage", "moved_by", "moved_at")


@admin.register(Lead)
class LeadAdmin(admin.ModelAdmin):
    list_display = ("customer_name", "phone", "pipeline", "current_stage", "campaign_name", "lead_date")
    list_filter = ("pipeline", "current_stage")
    search_fields = ("customer_name", "phone", "email")
    inlines = [LeadStageHistoryInline]
