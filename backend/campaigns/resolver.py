"""Campaign identity resolution and merge."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Count, Max
from rest_framework.exceptions import NotFound

from accounts.audit import log_audit_event
from accounts.models import Client
from core.exceptions import MergeConflict, TransactionFailure
from core.metrics import observe_campaign_merge
from leads.models import Lead
from spend.models import SpendLog

from .models import Campaign, CampaignAlias
from .platforms import OTHER

logger = logging.getLogger("campaigns.resolver")


def normalize_campaign_name(value) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split())


def find_campaign(client_id, name: str) -> Optional[Campaign]:
    """Look a name up against original names first, then merged aliases."""

    campaign = Campaign.objects.filter(client_id=client_id, original_name=name).first()
    if campaign is not None:
        return campaign
    alias = (
        CampaignAlias.objects.select_related("campaign")
        .filter(client_id=client_id, name=name)
        .first()
    )
    return alias.campaign if alias is not None else None


def resolve_campaign(
    client: Client, name: str, *, platform: str = OTHER
) -> tuple[Campaign, bool]:
    """Find or create the campaign called ``name`` for ``client``.

    Returns ``(campaign, created)``. A concurrent insert of the same name trips
    the ``(client, original_name)`` constraint; the loser re-reads the winner's
    row instead of failing.
    """

    name = normalize_campaign_name(name)
    if not name:
        raise ValueError("Campaign name must not be empty.")

    existing = find_campaign(client.id, name)
    if existing is not None:
        return existing, False

    try:
        with transaction.atomic():
            campaign = Campaign.objects.create(
                client=client,
                name=name,
                original_name=name,
                platform=platform,
                is_active=True,
            )
    except IntegrityError:
        campaign = find_campaign(client.id, name)
        if campaign is None:
            raise
        logger.info(
            "campaign.create_race_resolved",
            extra={
                "tenant_id": str(client.id),
                "campaign_id": str(campaign.id),
                "campaign_name": name,
            },
        )
        return campaign, False

    logger.info(
        "campaign.created",
        extra={
            "tenant_id": str(client.id),
            "campaign_id": str(campaign.id),
            "campaign_name": name,
            "platform": platform,
        },
    )
    return campaign, True


def with_counts(queryset):
    return queryset.annotate(
        spend_count=Count("spend_logs", distinct=True),
        lead_count=Count("leads", distinct=True),
    ).prefetch_related("alias_rows")


def _unique_ids(values: Iterable) -> list[str]:
    seen: list[str] = []
    for value in values:
        key = str(value)
        if key not in seen:
            seen.append(key)
    return seen


def _append_aliases(target: Campaign, names: Sequence[str]) -> list[str]:
    existing = set(
        CampaignAlias.objects.filter(campaign=target).values_list("name", flat=True)
    )
    position = (
        CampaignAlias.objects.filter(campaign=target).aggregate(top=Max("position"))["top"]
    )
    position = -1 if position is None else position
    added: list[str] = []
    for name in names:
        if not name or name == target.original_name or name in existing:
            continue
        position += 1
        CampaignAlias.objects.create(
            client_id=target.client_id,
            campaign=target,
            name=name,
            position=position,
        )
        existing.add(name)
        added.append(name)
    return added


def merge_campaigns(
    *,
    client: Client,
    target_id,
    source_ids: Sequence,
    user=None,
) -> Campaign:
    """Fold ``source_ids`` into ``target_id`` as one transaction.

    Source names (original name, then aliases) become aliases of the target,
    spend logs and leads are re-pointed at the target, and the sources are
    deleted. Either every step commits or none does.
    """

    sources_requested = _unique_ids(source_ids)
    if not sources_requested:
        observe_campaign_merge("rejected")
        raise MergeConflict("At least one source campaign is required.")
    if str(target_id) in sources_requested:
        observe_campaign_merge("rejected")
        raise MergeConflict("A campaign cannot be merged into itself.")

    try:
        with transaction.atomic():
            target = (
                Campaign.objects.select_for_update()
                .filter(client=client, pk=target_id)
                .first()
            )
            if target is None:
                raise NotFound("Campaign not found.")
            sources = list(
                Campaign.objects.select_for_update()
                .filter(client=client, pk__in=sources_requested)
                .order_by("created_at")
            )
            if len(sources) != len(sources_requested):
                raise NotFound("One or more source campaigns were not found.")

            absorbed: list[str] = []
            for source in sources:
                absorbed.append(source.original_name)
                absorbed.extend(
                    CampaignAlias.objects.filter(campaign=source)
                    .order_by("position", "created_at")
                    .values_list("name", flat=True)
                )
            # Free the (client, name) slots before the target claims them.
            CampaignAlias.objects.filter(campaign__in=sources).delete()
            added = _append_aliases(target, absorbed)

            spend_moved = SpendLog.objects.filter(campaign__in=sources).update(
                campaign=target
            )
            leads_moved = Lead.objects.filter(campaign__in=sources).update(
                campaign=target
            )
            merged_ids = [str(source.id) for source in sources]
            Campaign.objects.filter(pk__in=merged_ids).delete()
            target.save(update_fields=["updated_at"])

            log_audit_event(
                client=client,
                user=user,
                action="campaign_merged",
                resource_type="campaign",
                resource_id=target.id,
                metadata={
                    "source_ids": merged_ids,
                    "aliases_added": added,
                    "spend_logs_moved": spend_moved,
                    "leads_moved": leads_moved,
                },
            )
    except DatabaseError as exc:
        observe_campaign_merge("failed")
        logger.error(
            "campaign.merge_failed",
            extra={"tenant_id": str(client.id), "target_id": str(target_id)},
            exc_info=exc,
        )
        raise TransactionFailure() from exc
    except NotFound:
        observe_campaign_merge("rejected")
        raise

    observe_campaign_merge("merged")
    logger.info(
        "campaign.merged",
        extra={
            "tenant_id": str(client.id),
            "target_id": str(target.id),
            "source_ids": merged_ids,
            "spend_logs_moved": spend_moved,
            "leads_moved": leads_moved,
        },
    )
    return with_counts(Campaign.objects.filter(pk=target.pk)).get()
