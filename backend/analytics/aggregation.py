"""Read-only spend and lead aggregates for client dashboards.

Spend and lead populations are filtered independently: leads are counted by
``lead_date`` membership in the range, never joined to spend rows by key.
Every ratio goes through :func:`safe_ratio` so empty denominators yield 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from django.db.models import Count, Q, QuerySet, Sum
from django.db.models.functions import TruncMonth

from leads.models import Lead, Pipeline
from spend.models import SpendLog

ZERO = Decimal("0")


@dataclass(frozen=True)
class MetricFilters:
    client_id: Any
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    platform: Optional[str] = None


def safe_ratio(numerator, denominator, scale: int = 1) -> float:
    """``numerator / denominator * scale``, or 0.0 when the denominator is zero."""

    denominator = Decimal(denominator or 0)
    if denominator == 0:
        return 0.0
    return float(Decimal(numerator or 0) / denominator * scale)


def derived_metrics(*, spend, impressions, clicks, leads, revenue=ZERO) -> dict[str, float]:
    return {
        "ctr": safe_ratio(clicks, impressions, 100),
        "cpc": safe_ratio(spend, clicks),
        "cpm": safe_ratio(spend, impressions, 1000),
        "cpl": safe_ratio(spend, leads),
        "roas": safe_ratio(revenue, spend),
    }


def spend_queryset(filters: MetricFilters) -> QuerySet:
    queryset = SpendLog.objects.filter(client_id=filters.client_id)
    if filters.start_date:
        queryset = queryset.filter(date__gte=filters.start_date)
    if filters.end_date:
        queryset = queryset.filter(date__lte=filters.end_date)
    if filters.platform:
        queryset = queryset.filter(platform=filters.platform)
    return queryset


def lead_queryset(filters: MetricFilters) -> QuerySet:
    queryset = Lead.objects.filter(client_id=filters.client_id)
    if filters.start_date:
        queryset = queryset.filter(lead_date__gte=filters.start_date)
    if filters.end_date:
        queryset = queryset.filter(lead_date__lte=filters.end_date)
    return queryset


def _goal_stage_filter(client_id) -> Q:
    condition = Q(pk__in=[])
    for pipeline in Pipeline.objects.filter(client_id=client_id).only("id", "stages"):
        goal_ids = [str(stage.get("id")) for stage in pipeline.stages or [] if stage.get("is_goal")]
        if goal_ids:
            condition |= Q(pipeline_id=pipeline.id, current_stage__in=goal_ids)
    return condition


def compute_totals(filters: MetricFilters) -> dict[str, Any]:
    sums = spend_queryset(filters).aggregate(
        spend=Sum("spend"),
        impressions=Sum("impressions"),
        clicks=Sum("clicks"),
        reach=Sum("reach"),
    )
    leads = lead_queryset(filters)
    lead_stats = leads.aggregate(count=Count("id"), revenue=Sum("value"))
    conversions = leads.filter(_goal_stage_filter(filters.client_id)).count()

    spend = sums["spend"] or ZERO
    impressions = sums["impressions"] or 0
    clicks = sums["clicks"] or 0
    lead_count = lead_stats["count"] or 0
    revenue = lead_stats["revenue"] or ZERO

    return {
        "spend": float(spend),
        "impressions": impressions,
        "clicks": clicks,
        "reach": sums["reach"] or 0,
        "leads": lead_count,
        "conversions": conversions,
        "revenue": float(revenue),
        **derived_metrics(
            spend=spend,
            impressions=impressions,
            clicks=clicks,
            leads=lead_count,
            revenue=revenue,
        ),
    }


def monthly_breakdown(filters: MetricFilters) -> list[dict[str, Any]]:
    """Spend and lead series bucketed by ``YYYY-MM``; a month in either series is kept."""

    buckets: dict[str, dict[str, Any]] = {}

    def bucket(month: str) -> dict[str, Any]:
        return buckets.setdefault(
            month, {"month": month, "spend": 0.0, "impressions": 0, "clicks": 0, "leads": 0}
        )

    spend_rows = (
        spend_queryset(filters)
        .annotate(month=TruncMonth("date"))
        .values("month")
        .annotate(spend=Sum("spend"), impressions=Sum("impressions"), clicks=Sum("clicks"))
        .order_by("month")
    )
    for row in spend_rows:
        entry = bucket(row["month"].strftime("%Y-%m"))
        entry["spend"] += float(row["spend"] or 0)
        entry["impressions"] += row["impressions"] or 0
        entry["clicks"] += row["clicks"] or 0

    lead_rows = (
        lead_queryset(filters)
        .annotate(month=TruncMonth("lead_date"))
        .values("month")
        .annotate(count=Count("id"))
        .order_by("month")
    )
    for row in lead_rows:
        if row["month"] is None:
            continue
        bucket(row["month"].strftime("%Y-%m"))["leads"] += row["count"]

    return [buckets[month] for month in sorted(buckets)]


def campaign_breakdown(filters: MetricFilters) -> list[dict[str, Any]]:
    """Per ``(campaign_name, platform)`` stats, leads joined by campaign name, highest spend first."""

    spend_rows = (
        spend_queryset(filters)
        .values("campaign_name", "platform")
        .annotate(spend=Sum("spend"), impressions=Sum("impressions"), clicks=Sum("clicks"))
    )

    lead_stats: dict[str, dict[str, Any]] = {}
    lead_rows = (
        lead_queryset(filters)
        .exclude(campaign_name="")
        .values("campaign_name", "current_stage")
        .annotate(count=Count("id"), revenue=Sum("value"))
    )
    for row in lead_rows:
        stat = lead_stats.setdefault(
            row["campaign_name"], {"count": 0, "revenue": ZERO, "by_stage": {}}
        )
        stat["count"] += row["count"]
        stat["revenue"] += row["revenue"] or ZERO
        if row["current_stage"]:
            by_stage = stat["by_stage"]
            by_stage[row["current_stage"]] = by_stage.get(row["current_stage"], 0) + row["count"]

    stats = []
    for row in spend_rows:
        name = row["campaign_name"]
        spend = row["spend"] or ZERO
        impressions = row["impressions"] or 0
        clicks = row["clicks"] or 0
        lead_stat = lead_stats.get(name, {"count": 0, "revenue": ZERO, "by_stage": {}})
        ratios = derived_metrics(
            spend=spend,
            impressions=impressions,
            clicks=clicks,
            leads=lead_stat["count"],
            revenue=lead_stat["revenue"],
        )
        stats.append(
            {
                "id": f"{name}-{row['platform']}",
                "name": name,
                "platform": row["platform"],
                "spend": float(spend),
                "impressions": impressions,
                "clicks": clicks,
                "leads": lead_stat["count"],
                "revenue": float(lead_stat["revenue"]),
                "ctr": ratios["ctr"],
                "cpc": ratios["cpc"],
                "cpl": ratios["cpl"],
                "roas": ratios["roas"],
                "breakdown": dict(lead_stat["by_stage"]),
            }
        )

    stats.sort(key=lambda item: (-item["spend"], item["name"], item["platform"]))
    return stats


def default_pipeline_stages(client_id) -> list[dict]:
    pipeline = (
        Pipeline.objects.filter(client_id=client_id, is_default=True)
        .order_by("-updated_at")
        .first()
    )
    return pipeline.ordered_stages() if pipeline is not None else []
