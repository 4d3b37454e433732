"""Header to canonical field matching shared by previews, templates and imports."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence

from django.conf import settings

DATE = "date"
CAMPAIGN_NAME = "campaign_name"
SPEND = "spend"
IMPRESSIONS = "impressions"
CLICKS = "clicks"
REACH = "reach"
LEADS = "leads"
PLATFORM = "platform"
CTR = "ctr"
CPC = "cpc"
CPM = "cpm"
COST_PER_RESULT = "cost_per_result"

# Ordered: a header goes to the first group whose pattern matches and whose
# field is still unclaimed. Ratio groups precede ``spend`` so "Cost per click"
# never claims the spend column.
FIELD_PATTERNS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (DATE, (r"date", r"\bday\b", r"tanggal", r"period", r"\btime\b")),
    (CAMPAIGN_NAME, (r"campaign", r"kampanye", r"ad ?set", r"\bnama\b", r"^name$")),
    (CTR, (r"\bctr\b", r"click.*rate")),
    (CPC, (r"\bcpc\b", r"cost.*click")),
    (CPM, (r"\bcpm\b", r"cost per (1 ?000|mille|thousand)")),
    (COST_PER_RESULT, (r"cost per", r"\bcpl\b", r"\bcpr\b")),
    (SPEND, (r"spend", r"spent", r"cost", r"amount", r"biaya", r"budget")),
    (IMPRESSIONS, (r"impression", r"\bimpr\b", r"views", r"tayang")),
    (CLICKS, (r"click", r"klik")),
    (REACH, (r"reach", r"jangkauan")),
    (LEADS, (r"lead", r"result", r"konversi", r"conversion", r"hasil")),
    (PLATFORM, (r"platform", r"source", r"publisher")),
)

_COMPILED: tuple[tuple[str, tuple[re.Pattern[str], ...]], ...] = tuple(
    (name, tuple(re.compile(pattern) for pattern in patterns))
    for name, patterns in FIELD_PATTERNS
)

CANONICAL_FIELDS = tuple(name for name, _patterns in FIELD_PATTERNS)

PLATFORM_DEFAULTS: dict[str, dict[str, str]] = {
    "META": {
        "Date": DATE,
        "Campaign name": CAMPAIGN_NAME,
        "Amount spent (IDR)": SPEND,
        "Impressions": IMPRESSIONS,
        "Link clicks": CLICKS,
        "Reach": REACH,
    },
    "GOOGLE": {
        "Day": DATE,
        "Campaign": CAMPAIGN_NAME,
        "Cost": SPEND,
        "Impr.": IMPRESSIONS,
        "Clicks": CLICKS,
    },
    "TIKTOK": {
        "Date": DATE,
        "Campaign Name": CAMPAIGN_NAME,
        "Cost": SPEND,
        "Impression": IMPRESSIONS,
        "Clicks": CLICKS,
        "Reach": REACH,
    },
    "SHOPEE": {
        "Date": DATE,
        "Campaign Name": CAMPAIGN_NAME,
        "Budget Spent": SPEND,
        "Impressions": IMPRESSIONS,
        "Clicks": CLICKS,
    },
}

_SEPARATORS = re.compile(r"[^0-9a-z]+")


def normalize_header(value) -> str:
    """Lowercase, trim and collapse every run of separators to one space."""

    if value is None:
        return ""
    return _SEPARATORS.sub(" ", str(value).lower()).strip()


def matching_fields(header) -> list[str]:
    """Every canonical field whose patterns match ``header``, in priority order."""

    normalized = normalize_header(header)
    if not normalized:
        return []
    return [
        name
        for name, patterns in _COMPILED
        if any(pattern.search(normalized) for pattern in patterns)
    ]


def map_headers(headers: Iterable) -> dict[str, str]:
    """Propose a ``header -> field`` map, first come first served."""

    mapping: dict[str, str] = {}
    claimed: set[str] = set()
    for header in headers:
        if header is None or str(header) in mapping:
            continue
        for name in matching_fields(header):
            if name not in claimed:
                mapping[str(header)] = name
                claimed.add(name)
                break
    return mapping


@dataclass(frozen=True)
class HeaderValidation:
    is_valid: bool
    error: Optional[str]
    total_columns: int
    matched_columns: int
    unknown_columns: int
    has_campaign: bool
    mapping: dict[str, str] = field(default_factory=dict)
    unknown_headers: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "error": self.error,
            "total_columns": self.total_columns,
            "matched_columns": self.matched_columns,
            "unknown_columns": self.unknown_columns,
            "has_campaign": self.has_campaign,
            "mapping": dict(self.mapping),
            "unknown_headers": list(self.unknown_headers),
        }


def validate_headers(
    headers: Sequence,
    *,
    overrides: Optional[Mapping[str, str]] = None,
    min_match_ratio: Optional[float] = None,
    max_unknown_columns: Optional[int] = None,
) -> HeaderValidation:
    """Coarse wrong-format filter applied before any row is ingested.

    Headers pinned by ``overrides`` (a saved template) count as recognised.
    """

    if min_match_ratio is None:
        min_match_ratio = getattr(settings, "IMPORT_MIN_MATCH_RATIO", 0.4)
    if max_unknown_columns is None:
        max_unknown_columns = getattr(settings, "IMPORT_MAX_UNKNOWN_COLUMNS", 10)

    pinned = {
        str(header): target
        for header, target in (overrides or {}).items()
        if target in CANONICAL_FIELDS
    }

    def fields_for(header: str) -> list[str]:
        if header in pinned:
            return [pinned[header]]
        return matching_fields(header)

    present = [str(header) for header in headers if normalize_header(header)]
    total = len(present)
    recognised = [header for header in present if fields_for(header)]
    unknown = [header for header in present if header not in recognised]
    has_campaign = any(CAMPAIGN_NAME in fields_for(header) for header in present)
    matched = len(recognised)
    mapping = resolve_mapping(present, pinned)

    def result(error: Optional[str]) -> HeaderValidation:
        return HeaderValidation(
            is_valid=error is None,
            error=error,
            total_columns=total,
            matched_columns=matched,
            unknown_columns=len(unknown),
            has_campaign=has_campaign,
            mapping=mapping,
            unknown_headers=unknown,
        )

    if total == 0:
        return result("The file has no header row.")
    if not has_campaign:
        return result("Missing required column: Campaign Name.")
    if matched / total < min_match_ratio or len(unknown) > max_unknown_columns:
        return result(
            "The uploaded columns do not look like an ad platform export. "
            "Remove unrelated columns and try again."
        )
    return result(None)


def auto_detect(columns: Sequence[str], platform: Optional[str] = None) -> dict[str, dict[str, str]]:
    """Suggested mapping merged over the platform's default export template."""

    detected = map_headers(columns)
    platform_default = dict(PLATFORM_DEFAULTS.get((platform or "").upper(), {}))
    return {
        "detected": detected,
        "platform_default": platform_default,
        "merged": {**platform_default, **detected},
    }


def resolve_mapping(
    headers: Iterable, overrides: Optional[Mapping[str, str]] = None
) -> dict[str, str]:
    """Auto map ``headers`` and let an explicit template win per header and field."""

    headers = [str(header) for header in headers if header is not None]
    if not overrides:
        return map_headers(headers)
    pinned = {
        header: target
        for header, target in overrides.items()
        if header in headers and target in CANONICAL_FIELDS
    }
    claimed = set(pinned.values())
    remaining = [header for header in headers if header not in pinned]
    auto = {
        header: target
        for header, target in map_headers(remaining).items()
        if target not in claimed
    }
    return {**auto, **pinned}
