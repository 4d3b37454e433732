from __future__ import annotations

from django.contrib import admin

from .models import ImportBatch, MappingTemplate, SpendLog


@admin.register(SpendLog)
class SpendLogAdmin(admin.ModelAdmin):
    list_display = ("campaign_name", "date", "platform", "spend", "client")
    list_filter = ("platform", "client")
    search_fields = ("campaign_name", "import_batch_id")
    date_hierarchy = "date"


@admin.register(ImportBatch)
class ImportBatchAdmin(admin.ModelAdmin):
    list_display = ("batch_id", "client", "status", "inserted", "skipped", "failed", "created_at")
    list_filter = ("status",)
    readonly_fields = ("errors",)


@admin.register(MappingTemplate)
class MappingTemplateAdmin(admin.ModelAdmin):
    list_display = ("name", "platform", "client", "is_default")
    list_filter = ("platform", "is_default")
