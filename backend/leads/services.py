"""Lead stage rules, custom field checks, stage transitions and bulk import."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Sequence

from django.db import DatabaseError, transaction
from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError

from accounts.audit import log_audit_event
from campaigns.models import Campaign
from campaigns.resolver import find_campaign, normalize_campaign_name
from core.exceptions import TransactionFailure

from .models import Lead, LeadStageHistory, Pipeline

logger = logging.getLogger("leads")

FIELD_TEXT = "text"
FIELD_NUMBER = "number"
FIELD_SELECT = "select"
FIELD_DATE = "date"
FIELD_TYPES = (FIELD_TEXT, FIELD_NUMBER, FIELD_SELECT, FIELD_DATE)

MANUAL_ENTRY = "Manual Entry"


def _acting_user(user):
    return user if getattr(user, "is_authenticated", False) else None


def validate_stage(pipeline: Pipeline, stage_id: Any) -> str:
    stage_id = "" if stage_id is None else str(stage_id)
    if stage_id not in pipeline.stage_ids:
        raise ValidationError(
            {"current_stage": [f"Stage '{stage_id}' does not exist in pipeline '{pipeline.name}'."]}
        )
    return stage_id


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_custom_value(spec: Mapping[str, Any], value: Any) -> Any:
    field_type = spec.get("type", FIELD_TEXT)
    if field_type == FIELD_NUMBER:
        if isinstance(value, bool):
            raise ValueError("must be a number")
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError("must be a number") from exc
        if not number.is_finite():
            raise ValueError("must be a number")
        return int(number) if number == number.to_integral_value() else float(number)
    if field_type == FIELD_DATE:
        if isinstance(value, date):
            return value.isoformat()
        try:
            parsed = parse_date(str(value).strip())
        except ValueError:
            parsed = None
        if parsed is None:
            raise ValueError("must be a date in YYYY-MM-DD format")
        return parsed.isoformat()
    if field_type == FIELD_SELECT:
        options = [str(option) for option in spec.get("options") or []]
        if str(value) not in options:
            raise ValueError(f"must be one of: {', '.join(options)}")
        return str(value)
    return str(value)


def validate_custom_data(
    pipeline: Pipeline,
    data: Optional[Mapping[str, Any]],
    *,
    partial: bool = False,
    keep_unknown: bool = False,
) -> dict[str, Any]:
    """Check ``data`` against the pipeline's custom field schema.

    Required fields must be present (unless ``partial``) and values are
    coerced to the field type. Unknown keys are rejected, or carried through
    untouched when ``keep_unknown`` is set (spreadsheet imports).
    """

    data = dict(data or {})
    fields = {str(spec.get("id")): spec for spec in pipeline.custom_fields or []}
    errors: dict[str, list[str]] = {}
    cleaned: dict[str, Any] = {}

    for key, value in data.items():
        if key in fields:
            continue
        if keep_unknown:
            if not _blank(value):
                cleaned[key] = value
        else:
            errors[key] = ["Unknown custom field."]

    for field_id, spec in fields.items():
        value = data.get(field_id)
        if _blank(value):
            if spec.get("required") and not partial:
                errors[field_id] = [f"{spec.get('name', field_id)} is required."]
            continue
        try:
            cleaned[field_id] = _coerce_custom_value(spec, value)
        except ValueError as exc:
            errors[field_id] = [f"{spec.get('name', field_id)} {exc}."]

    if errors:
        raise ValidationError({"custom_data": errors})
    return cleaned


def attribute_campaign(
    client_id, *, campaign: Optional[Campaign] = None, campaign_name: Any = None
) -> tuple[Optional[Campaign], str]:
    """Work out ``(campaign, campaign_name)`` for a lead.

    An explicit campaign wins and must belong to ``client_id``. A bare name is
    looked up against original names and aliases; misses keep the name without
    creating a campaign.
    """

    if campaign is not None:
        if str(campaign.client_id) != str(client_id):
            raise ValidationError({"campaign": ["Campaign does not belong to this client."]})
        return campaign, campaign.original_name
    name = normalize_campaign_name(campaign_name)
    if not name:
        return None, ""
    return find_campaign(client_id, name), name


def transition_stage(lead: Lead, stage_id: Any, *, user=None) -> tuple[Lead, LeadStageHistory]:
    """Move ``lead`` to ``stage_id`` and record the move."""

    pipeline = lead.pipeline
    try:
        target = validate_stage(pipeline, stage_id)
    except ValidationError as exc:
        raise ValidationError({"stage_id": exc.detail["current_stage"]}) from exc
    previous = lead.current_stage
    actor = _acting_user(user)

    try:
        with transaction.atomic():
            lead.current_stage = target
            lead.updated_by = actor
            lead.save(update_fields=["current_stage", "updated_by", "updated_at"])
            history = LeadStageHistory.objects.create(
                lead=lead, from_stage=previous, to_stage=target, moved_by=actor
            )
            log_audit_event(
                client=lead.client,
                user=actor,
                action="lead_stage_changed",
                resource_type="lead",
                resource_id=lead.id,
                metadata={"from_stage": previous, "to_stage": target},
            )
    except DatabaseError as exc:
        raise TransactionFailure() from exc

    logger.info(
        "lead.stage_changed",
        extra={
            "tenant_id": str(lead.client_id),
            "lead_id": str(lead.id),
            "pipeline_id": str(pipeline.id),
            "from_stage": previous,
            "to_stage": target,
        },
    )
    return lead, history


def import_leads(
    pipeline: Pipeline, rows: Sequence[Mapping[str, Any]], *, user=None
) -> list[Lead]:
    """Create every lead in the pipeline's entry stage, all or nothing.

    ``rows`` are already validated; each carries ``customer_name`` plus the
    optional contact, value, attribution and ``custom_data`` keys.
    """

    entry = pipeline.entry_stage
    if entry is None:
        raise ValidationError({"pipeline": ["Pipeline has no stages to import into."]})
    actor = _acting_user(user)

    try:
        with transaction.atomic():
            created = []
            for row in rows:
                campaign, campaign_name = attribute_campaign(
                    pipeline.client_id, campaign_name=row.get("campaign_name")
                )
                lead = Lead.objects.create(
                    client_id=pipeline.client_id,
                    pipeline=pipeline,
                    current_stage=str(entry["id"]),
                    customer_name=row["customer_name"],
                    phone=row.get("phone") or "",
                    email=row.get("email") or "",
                    value=row.get("value"),
                    notes=row.get("notes") or "",
                    cs_number=row.get("cs_number") or "",
                    campaign=campaign,
                    campaign_name=campaign_name,
                    custom_data=dict(row.get("custom_data") or {}),
                    **({"lead_date": row["lead_date"]} if row.get("lead_date") else {}),
                    created_by=actor,
                    updated_by=actor,
                )
                created.append(lead)
            log_audit_event(
                client=pipeline.client,
                user=actor,
                action="leads_imported",
                resource_type="pipeline",
                resource_id=pipeline.id,
                metadata={"count": len(created), "entry_stage": str(entry["id"])},
            )
    except DatabaseError as exc:
        raise TransactionFailure() from exc

    logger.info(
        "leads.import.completed",
        extra={
            "tenant_id": str(pipeline.client_id),
            "pipeline_id": str(pipeline.id),
            "count": len(created),
            "entry_stage": str(entry["id"]),
        },
    )
    return created
