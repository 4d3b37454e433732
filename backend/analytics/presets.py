"""Metric card and chart presets for client dashboards."""

from __future__ import annotations

import copy
from typing import Optional

from campaigns.platforms import GOOGLE, META, TIKTOK

CUSTOM = "CUSTOM"
PRESET_CHOICES = [
    (META, "Meta Ads"),
    (GOOGLE, "Google Ads"),
    (TIKTOK, "TikTok Ads"),
    (CUSTOM, "Custom"),
]

FORMAT_CURRENCY = "currency"
FORMAT_NUMBER = "number"
FORMAT_PERCENT = "percent"
METRIC_FORMATS = (FORMAT_CURRENCY, FORMAT_NUMBER, FORMAT_PERCENT)


def _metric(metric_id: str, label: str, formula: str, fmt: str, order: int) -> dict:
    return {
        "id": metric_id,
        "label": label,
        "formula": formula,
        "format": fmt,
        "visible": True,
        "order": order,
    }


METRIC_PRESETS: dict[str, list[dict]] = {
    META: [
        _metric("spend", "Total Ad Spent", "sum:spend", FORMAT_CURRENCY, 1),
        _metric("impressions", "Impressions", "sum:impressions", FORMAT_NUMBER, 2),
        _metric("clicks", "Clicks", "sum:clicks", FORMAT_NUMBER, 3),
        _metric("reach", "Reach", "sum:reach", FORMAT_NUMBER, 4),
        _metric("ctr", "CTR", "clicks/impressions*100", FORMAT_PERCENT, 5),
        _metric("cpc", "CPC", "spend/clicks", FORMAT_CURRENCY, 6),
        _metric("cpm", "CPM", "spend/impressions*1000", FORMAT_CURRENCY, 7),
        _metric("leads", "Total Leads", "count:leads", FORMAT_NUMBER, 8),
        _metric("cpl", "Cost Per Lead", "spend/leads", FORMAT_CURRENCY, 9),
    ],
    GOOGLE: [
        _metric("spend", "Total Cost", "sum:spend", FORMAT_CURRENCY, 1),
        _metric("impressions", "Impressions", "sum:impressions", FORMAT_NUMBER, 2),
        _metric("clicks", "Clicks", "sum:clicks", FORMAT_NUMBER, 3),
        _metric("ctr", "CTR", "clicks/impressions*100", FORMAT_PERCENT, 4),
        _metric("cpc", "CPC", "spend/clicks", FORMAT_CURRENCY, 5),
        _metric("conversions", "Conversions", "count:conversions", FORMAT_NUMBER, 6),
        _metric("roas", "ROAS", "revenue/spend", FORMAT_NUMBER, 7),
    ],
    TIKTOK: [
        _metric("spend", "Total Spend", "sum:spend", FORMAT_CURRENCY, 1),
        _metric("impressions", "Impressions", "sum:impressions", FORMAT_NUMBER, 2),
        _metric("clicks", "Clicks", "sum:clicks", FORMAT_NUMBER, 3),
        _metric("reach", "Reach", "sum:reach", FORMAT_NUMBER, 4),
        _metric("ctr", "CTR", "clicks/impressions*100", FORMAT_PERCENT, 5),
        _metric("cpc", "CPC", "spend/clicks", FORMAT_CURRENCY, 6),
    ],
    CUSTOM: [
        _metric("spend", "Total Ad Spent", "sum:spend", FORMAT_CURRENCY, 1),
        _metric("leads", "Total Leads", "count:leads", FORMAT_NUMBER, 2),
        _metric("cpl", "Cost Per Lead", "spend/leads", FORMAT_CURRENCY, 3),
    ],
}

DEFAULT_CHARTS: list[dict] = [
    {"id": "spend", "type": "area", "title": "Amount Spent", "visible": True, "order": 1},
    {"id": "leads", "type": "bar", "title": "Potential Leads", "visible": True, "order": 2},
    {"id": "qualified", "type": "bar", "title": "Leads Acquired", "visible": True, "order": 3},
    {"id": "conversion", "type": "bar", "title": "Conversion to Sample", "visible": True, "order": 4},
]


def preset_for_platform(platform: Optional[str]) -> str:
    key = (platform or "").strip().upper()
    return key if key in METRIC_PRESETS and key != CUSTOM else CUSTOM


def preset_metrics(preset: str) -> list[dict]:
    return copy.deepcopy(METRIC_PRESETS.get(preset, METRIC_PRESETS[CUSTOM]))


def default_charts() -> list[dict]:
    return copy.deepcopy(DEFAULT_CHARTS)
