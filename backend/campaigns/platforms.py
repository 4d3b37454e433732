"""Normalise free-text platform labels onto the supported ad platforms."""

from __future__ import annotations

from typing import Optional

META = "META"
GOOGLE = "GOOGLE"
TIKTOK = "TIKTOK"
SHOPEE = "SHOPEE"
TOKOPEDIA = "TOKOPEDIA"
OTHER = "OTHER"

PLATFORM_CHOICES = [
    (META, "Meta"),
    (GOOGLE, "Google"),
    (TIKTOK, "TikTok"),
    (SHOPEE, "Shopee"),
    (TOKOPEDIA, "Tokopedia"),
    (OTHER, "Other"),
]

PLATFORMS = frozenset(value for value, _label in PLATFORM_CHOICES)

# Evaluated in order; the first rule with a matching substring wins.
PLATFORM_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    (META, ("meta", "facebook", "ig")),
    (GOOGLE, ("google", "youtube")),
    (TIKTOK, ("tiktok",)),
    (SHOPEE, ("shopee",)),
    (TOKOPEDIA, ("tokopedia",)),
)


def classify_platform(label: Optional[str]) -> str:
    """Return the platform tag for ``label``; anything unrecognised is ``OTHER``."""

    if label is None:
        return OTHER
    lowered = str(label).strip().lower()
    if not lowered:
        return OTHER
    for platform, needles in PLATFORM_RULES:
        if any(needle in lowered for needle in needles):
            return platform
    return OTHER
