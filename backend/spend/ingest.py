"""Spend import: drive raw spreadsheet rows into SpendLog records.

Rows are processed independently. Each row gets its own atomic block, so a
database failure on row N leaves rows 1..N-1 committed and is reported in the
result instead of aborting the batch. Campaign names are resolved once per
import and memoised for the remaining rows.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, Sequence

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from accounts.audit import log_audit_event
from accounts.models import Client
from campaigns.models import Campaign
from campaigns.platforms import OTHER, PLATFORMS, classify_platform
from campaigns.resolver import normalize_campaign_name, resolve_campaign
from core.metrics import observe_spend_import

from . import matching
from .models import ImportBatch, SpendLog

logger = logging.getLogger("spend.ingest")

SPREADSHEET_EPOCH_OFFSET_DAYS = 25569
SECONDS_PER_DAY = 86400
MAX_SERIAL_DATE = 2958465  # 9999-12-31
MAX_REPORTED_ERRORS = 100

REASON_MISSING_CAMPAIGN = "missing_campaign"
REASON_INVALID_DATE = "invalid_date"
REASON_DATABASE_ERROR = "database_error"
REASON_TIMEOUT = "timeout"

INVALID_DATE_SKIP = "skip"
INVALID_DATE_TODAY = "today"

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
)
_NUMBER_NOISE = re.compile(r"[^0-9,.\-]")
_THOUSANDS_COMMA = re.compile(r"^-?\d{1,3}(,\d{3})+$")
_THOUSANDS_DOT = re.compile(r"^-?[1-9]\d{0,2}(\.\d{3})+$")


@dataclass(frozen=True)
class RowError:
    """Why a single row was skipped or failed. Collected, never raised."""

    row: int
    reason: str
    message: str

    def as_dict(self) -> dict[str, Any]:
        return {"row": self.row, "reason": self.reason, "message": self.message}


@dataclass
class ImportResult:
    batch_id: str
    total_rows: int = 0
    count: int = 0
    skipped: int = 0
    failed: int = 0
    new_campaigns: int = 0
    timed_out: bool = False
    errors: list[RowError] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.total_rows and not self.count:
            return ImportBatch.STATUS_FAILED
        if self.failed:
            return ImportBatch.STATUS_PARTIAL
        return ImportBatch.STATUS_COMPLETED

    def as_dict(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "status": self.status,
            "total_rows": self.total_rows,
            "count": self.count,
            "skipped": self.skipped,
            "failed": self.failed,
            "new_campaigns": self.new_campaigns,
            "timed_out": self.timed_out,
            "errors": [error.as_dict() for error in self.errors[:MAX_REPORTED_ERRORS]],
        }


def generate_batch_id() -> str:
    stamp = timezone.now().astimezone(dt_timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return f"{stamp}-{uuid.uuid4().hex[:8]}"


def serial_to_date(serial: float) -> date:
    """Convert a spreadsheet serial day number (1899-12-30 epoch) to a date."""

    seconds = round((serial - SPREADSHEET_EPOCH_OFFSET_DAYS) * SECONDS_PER_DAY)
    epoch = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)
    return (epoch + timedelta(seconds=seconds)).date()


def parse_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float, Decimal)):
        serial = float(value)
        if 0 < serial <= MAX_SERIAL_DATE:
            return serial_to_date(serial)
        return None

    text = str(value).strip()
    if not text:
        return None
    try:
        serial = float(text)
    except ValueError:
        pass
    else:
        return parse_date(serial)
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse a spreadsheet number; ``None`` when the value is not numeric."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        try:
            parsed = Decimal(str(value))
        except InvalidOperation:
            return None
        return parsed if parsed.is_finite() else None

    text = _NUMBER_NOISE.sub("", str(value))
    if not text or text in {"-", ".", ","}:
        return None
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", "") if _THOUSANDS_COMMA.match(text) else text.replace(",", ".")
    elif _THOUSANDS_DOT.match(text):
        text = text.replace(".", "")
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return None
    if not parsed.is_finite():
        return None
    return parsed


def coerce_amount(value: Any) -> Decimal:
    """Non-negative money amount; anything unparseable becomes zero."""

    parsed = parse_decimal(value)
    if parsed is None or parsed < 0:
        return Decimal("0")
    try:
        return parsed.quantize(Decimal("0.01"))
    except InvalidOperation:
        return Decimal("0")


def coerce_count(value: Any) -> int:
    """Non-negative integer count; anything unparseable becomes zero."""

    parsed = parse_decimal(value)
    if parsed is None or parsed < 0:
        return 0
    return int(parsed)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class _RowReader:
    """Pull canonical field values out of raw rows, caching mappings per key set."""

    def __init__(self, column_mappings: Optional[Mapping[str, str]] = None):
        self._overrides = dict(column_mappings or {})
        self._cache: dict[tuple[str, ...], dict[str, str]] = {}

    def fields(self, row: Mapping[str, Any]) -> dict[str, Any]:
        keys = tuple(str(key) for key in row.keys())
        mapping = self._cache.get(keys)
        if mapping is None:
            mapping = matching.resolve_mapping(keys, self._overrides)
            self._cache[keys] = mapping
        values: dict[str, Any] = {}
        for key, value in row.items():
            target = mapping.get(str(key))
            if target is not None:
                values[target] = value
        return values


def _resolve_platform(row_value: Any, override: Optional[str]) -> str:
    if not _blank(row_value):
        return classify_platform(str(row_value))
    if override:
        upper = str(override).strip().upper()
        return upper if upper in PLATFORMS else classify_platform(override)
    return OTHER


def ingest_spend_rows(
    rows: Sequence[Mapping[str, Any]],
    *,
    client: Client,
    platform: Optional[str] = None,
    batch_id: Optional[str] = None,
    column_mappings: Optional[Mapping[str, str]] = None,
    max_seconds: Optional[float] = None,
    invalid_date_policy: Optional[str] = None,
) -> ImportResult:
    """Insert one SpendLog per usable row and report what happened to the rest."""

    if max_seconds is None:
        max_seconds = getattr(settings, "SPEND_IMPORT_MAX_SECONDS", 120.0)
    if invalid_date_policy is None:
        invalid_date_policy = getattr(settings, "SPEND_IMPORT_INVALID_DATE_POLICY", INVALID_DATE_SKIP)

    result = ImportResult(batch_id=batch_id or generate_batch_id(), total_rows=len(rows))
    reader = _RowReader(column_mappings)
    campaigns: dict[str, Campaign] = {}
    started = time.monotonic()

    for index, row in enumerate(rows, start=1):
        if max_seconds and time.monotonic() - started > max_seconds:
            remaining = result.total_rows - index + 1
            result.failed += remaining
            result.timed_out = True
            result.errors.append(
                RowError(
                    row=index,
                    reason=REASON_TIMEOUT,
                    message=(
                        f"Import stopped after {max_seconds:g}s; rows {index}-{result.total_rows} "
                        "were not processed."
                    ),
                )
            )
            break

        values = reader.fields(row)
        campaign_name = normalize_campaign_name(values.get(matching.CAMPAIGN_NAME))
        if not campaign_name:
            result.skipped += 1
            result.errors.append(
                RowError(row=index, reason=REASON_MISSING_CAMPAIGN, message="No campaign name.")
            )
            continue

        row_date = parse_date(values.get(matching.DATE))
        if row_date is None:
            if invalid_date_policy == INVALID_DATE_TODAY:
                row_date = timezone.localdate()
            else:
                result.skipped += 1
                result.errors.append(
                    RowError(
                        row=index,
                        reason=REASON_INVALID_DATE,
                        message=f"Unreadable or missing date: {values.get(matching.DATE)!r}.",
                    )
                )
                continue

        row_platform = _resolve_platform(values.get(matching.PLATFORM), platform)

        try:
            with transaction.atomic():
                campaign = campaigns.get(campaign_name)
                created = False
                if campaign is None:
                    campaign, created = resolve_campaign(
                        client, campaign_name, platform=row_platform
                    )
                SpendLog.objects.create(
                    client=client,
                    campaign=campaign,
                    campaign_name=campaign_name,
                    date=row_date,
                    platform=row_platform,
                    spend=coerce_amount(values.get(matching.SPEND)),
                    impressions=coerce_count(values.get(matching.IMPRESSIONS)),
                    clicks=coerce_count(values.get(matching.CLICKS)),
                    reach=coerce_count(values.get(matching.REACH)),
                    import_batch_id=result.batch_id,
                    raw_data=dict(row),
                )
        except DatabaseError as exc:
            result.failed += 1
            result.errors.append(
                RowError(row=index, reason=REASON_DATABASE_ERROR, message=str(exc) or exc.__class__.__name__)
            )
            logger.warning(
                "spend.import.row_failed",
                extra={
                    "tenant_id": str(client.id),
                    "batch_id": result.batch_id,
                    "row": index,
                    "exception_class": exc.__class__.__name__,
                },
            )
            continue

        campaigns[campaign_name] = campaign
        if created:
            result.new_campaigns += 1
        result.count += 1

    return result


def collect_headers(rows: Iterable[Mapping[str, Any]]) -> list[str]:
    headers: list[str] = []
    seen: set[str] = set()
    for row in rows:
        for key in row.keys():
            name = str(key)
            if name not in seen:
                seen.add(name)
                headers.append(name)
    return headers


def record_rejected_import(
    *,
    client: Client,
    validation: matching.HeaderValidation,
    user=None,
    file_name: str = "",
    total_rows: int = 0,
) -> ImportBatch:
    batch = ImportBatch.objects.create(
        batch_id=generate_batch_id(),
        client=client,
        imported_by=user if getattr(user, "is_authenticated", False) else None,
        file_name=file_name,
        status=ImportBatch.STATUS_REJECTED,
        total_rows=total_rows,
        errors=[{"row": 0, "reason": "rejected", "message": validation.error}],
        completed_at=timezone.now(),
    )
    observe_spend_import(
        status=ImportBatch.STATUS_REJECTED, inserted=0, skipped=0, failed=0, duration_seconds=None
    )
    logger.info(
        "spend.import.rejected",
        extra={
            "tenant_id": str(client.id),
            "batch_id": batch.batch_id,
            "file_name": file_name,
            "total_columns": validation.total_columns,
            "matched_columns": validation.matched_columns,
            "unknown_columns": validation.unknown_columns,
            "has_campaign": validation.has_campaign,
        },
    )
    return batch


def create_pending_batch(
    *, client: Client, user=None, file_name: str = "", platform: Optional[str] = None, total_rows: int = 0
) -> ImportBatch:
    return ImportBatch.objects.create(
        batch_id=generate_batch_id(),
        client=client,
        imported_by=user if getattr(user, "is_authenticated", False) else None,
        file_name=file_name,
        platform_override=platform or "",
        status=ImportBatch.STATUS_PENDING,
        total_rows=total_rows,
    )


def execute_import(
    *,
    client: Client,
    rows: Sequence[Mapping[str, Any]],
    user=None,
    platform: Optional[str] = None,
    file_name: str = "",
    column_mappings: Optional[Mapping[str, str]] = None,
    batch: Optional[ImportBatch] = None,
) -> tuple[ImportBatch, ImportResult]:
    """Run an import and persist its ImportBatch bookkeeping, metrics and audit entry."""

    if batch is None:
        batch = create_pending_batch(
            client=client, user=user, file_name=file_name, platform=platform, total_rows=len(rows)
        )
    batch.status = ImportBatch.STATUS_RUNNING
    batch.save(update_fields=["status"])

    started = time.monotonic()
    result = ingest_spend_rows(
        rows,
        client=client,
        platform=platform,
        batch_id=batch.batch_id,
        column_mappings=column_mappings,
    )
    duration = time.monotonic() - started

    batch.status = result.status
    batch.total_rows = result.total_rows
    batch.inserted = result.count
    batch.skipped = result.skipped
    batch.failed = result.failed
    batch.new_campaigns = result.new_campaigns
    batch.timed_out = result.timed_out
    batch.errors = [error.as_dict() for error in result.errors[:MAX_REPORTED_ERRORS]]
    batch.completed_at = timezone.now()
    batch.save()

    observe_spend_import(
        status=result.status,
        inserted=result.count,
        skipped=result.skipped,
        failed=result.failed,
        duration_seconds=duration,
    )
    log_audit_event(
        client=client,
        user=user,
        action="spend_imported",
        resource_type="import_batch",
        resource_id=batch.batch_id,
        metadata={
            "file_name": file_name,
            "count": result.count,
            "skipped": result.skipped,
            "failed": result.failed,
            "new_campaigns": result.new_campaigns,
        },
    )
    logger.info(
        "spend.import.completed",
        extra={
            "tenant_id": str(client.id),
            "batch_id": batch.batch_id,
            "status": result.status,
            "total_rows": result.total_rows,
            "count": result.count,
            "skipped": result.skipped,
            "failed": result.failed,
            "new_campaigns": result.new_campaigns,
            "timed_out": result.timed_out,
            "duration_ms": round(duration * 1000, 2),
        },
    )
    return batch, result
