from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

import pytest

from analytics import aggregation, presets
from analytics.aggregation import MetricFilters
from analytics.models import DashboardConfig
from campaigns.models import Campaign
from campaigns.platforms import GOOGLE, META, TIKTOK
from leads.models import Lead, Pipeline
from spend.models import SpendLog

STAGES = [
    {"id": "new", "name": "New", "color": "#3B82F6", "order": 0, "is_goal": False},
    {"id": "won", "name": "Won", "color": "#10B981", "order": 1, "is_goal": True},
]


def _spend(client, name, platform, day, spend, impressions=0, clicks=0):
    campaign, _ = Campaign.objects.get_or_create(
        client=client, original_name=name, defaults={"name": name, "platform": platform}
    )
    return SpendLog.objects.create(
        client=client,
        campaign=campaign,
        campaign_name=name,
        date=day,
        platform=platform,
        spend=Decimal(spend),
        impressions=impressions,
        clicks=clicks,
    )


def _lead(pipeline, day, stage="new", campaign_name="Promo A", value=None):
    return Lead.objects.create(
        client=pipeline.client,
        pipeline=pipeline,
        current_stage=stage,
        customer_name="Siti",
        campaign_name=campaign_name,
        lead_date=day,
        value=value,
    )


@pytest.fixture
def dataset(tenant, other_tenant):
    pipeline = Pipeline.objects.create(
        client=tenant, name="Clinic sales", stages=STAGES, is_default=True
    )
    _spend(tenant, "Promo A", META, date(2024, 1, 10), "100", impressions=1000, clicks=50)
    _spend(tenant, "Promo A", META, date(2024, 3, 5), "50", impressions=500, clicks=10)
    _spend(tenant, "Search", GOOGLE, date(2024, 1, 20), "200", impressions=2000, clicks=100)
    _lead(pipeline, date(2024, 1, 11), stage="won", value=Decimal("1000000"))
    _lead(pipeline, date(2024, 1, 12))
    _lead(pipeline, date(2024, 2, 3))

    foreign = Pipeline.objects.create(client=other_tenant, name="Theirs", stages=STAGES)
    _spend(other_tenant, "Promo A", META, date(2024, 1, 10), "999", impressions=9, clicks=9)
    _lead(foreign, date(2024, 1, 10), stage="won", value=Decimal("5"))
    return pipeline


@pytest.mark.parametrize(
    "numerator, denominator, scale, expected",
    [
        (5, 0, 1, 0.0),
        (None, None, 1, 0.0),
        (Decimal("1"), Decimal("4"), 100, 25.0),
        (150, 3, 1, 50.0),
    ],
)
def test_safe_ratio(numerator, denominator, scale, expected):
    assert aggregation.safe_ratio(numerator, denominator, scale) == expected


def test_derived_metrics_on_empty_population():
    ratios = aggregation.derived_metrics(spend=0, impressions=0, clicks=0, leads=0)
    assert ratios == {"ctr": 0.0, "cpc": 0.0, "cpm": 0.0, "cpl": 0.0, "roas": 0.0}


@pytest.mark.django_db
def test_compute_totals(tenant, dataset):
    totals = aggregation.compute_totals(MetricFilters(client_id=tenant.id))

    assert totals["spend"] == 350.0
    assert totals["impressions"] == 3500
    assert totals["clicks"] == 160
    assert totals["leads"] == 3
    assert totals["conversions"] == 1
    assert totals["revenue"] == 1000000.0
    assert totals["ctr"] == pytest.approx(160 / 3500 * 100)
    assert totals["cpc"] == pytest.approx(350 / 160)
    assert totals["cpm"] == pytest.approx(100.0)
    assert totals["cpl"] == pytest.approx(350 / 3)
    assert totals["roas"] == pytest.approx(1000000 / 350)


@pytest.mark.django_db
def test_compute_totals_for_empty_client(tenant):
    totals = aggregation.compute_totals(MetricFilters(client_id=tenant.id))

    assert totals["spend"] == 0.0
    assert totals["leads"] == 0
    assert totals["cpl"] == 0.0
    assert totals["ctr"] == 0.0


@pytest.mark.django_db
def test_platform_filter_applies_to_spend_only(tenant, dataset):
    totals = aggregation.compute_totals(MetricFilters(client_id=tenant.id, platform=GOOGLE))

    assert totals["spend"] == 200.0
    assert totals["leads"] == 3


@pytest.mark.django_db
def test_date_range_filters_both_populations(tenant, dataset):
    totals = aggregation.compute_totals(
        MetricFilters(client_id=tenant.id, start_date=date(2024, 2, 1), end_date=date(2024, 3, 31))
    )

    assert totals["spend"] == 50.0
    assert totals["leads"] == 1
    assert totals["conversions"] == 0


@pytest.mark.django_db
def test_monthly_breakdown_keeps_months_from_either_series(tenant, dataset):
    months = aggregation.monthly_breakdown(MetricFilters(client_id=tenant.id))

    assert [entry["month"] for entry in months] == ["2024-01", "2024-02", "2024-03"]
    january, february, march = months
    assert (january["spend"], january["clicks"], january["leads"]) == (300.0, 150, 2)
    assert (february["spend"], february["leads"]) == (0.0, 1)
    assert (march["spend"], march["leads"]) == (50.0, 0)


@pytest.mark.django_db
def test_campaign_breakdown_joins_leads_by_name(tenant, dataset):
    stats = aggregation.campaign_breakdown(MetricFilters(client_id=tenant.id))

    assert [(item["name"], item["platform"]) for item in stats] == [
        ("Search", GOOGLE),
        ("Promo A", META),
    ]
    search, promo = stats
    assert search["id"] == "Search-GOOGLE"
    assert search["leads"] == 0
    assert search["cpl"] == 0.0
    assert promo["spend"] == 150.0
    assert promo["leads"] == 3
    assert promo["revenue"] == 1000000.0
    assert promo["cpl"] == pytest.approx(50.0)
    assert promo["breakdown"] == {"new": 2, "won": 1}


@pytest.mark.django_db
def test_campaign_breakdown_ties_sort_by_name(tenant):
    _spend(tenant, "Beta", META, date(2024, 1, 1), "10")
    _spend(tenant, "Alpha", META, date(2024, 1, 1), "10")

    stats = aggregation.campaign_breakdown(MetricFilters(client_id=tenant.id))

    assert [item["name"] for item in stats] == ["Alpha", "Beta"]


@pytest.mark.django_db
def test_default_pipeline_stages(tenant, dataset):
    assert [stage["id"] for stage in aggregation.default_pipeline_stages(tenant.id)] == [
        "new",
        "won",
    ]


# API


@pytest.mark.django_db
def test_client_analytics_payload(cs_client, tenant, dataset, caplog):
    with caplog.at_level(logging.INFO, logger="analytics.views"):
        response = cs_client.get(f"/api/analytics/{tenant.id}/", {"platform": "meta"})

    assert response.status_code == 200
    body = response.json()
    assert body["client"]["name"] == tenant.name
    assert body["metrics"]["spend"] == 150.0
    assert [entry["month"] for entry in body["charts"]["monthly"]] == [
        "2024-01",
        "2024-02",
        "2024-03",
    ]
    assert body["config"]["preset"] == META
    assert set(body["presets"]) == {META, GOOGLE, TIKTOK, presets.CUSTOM}
    assert any(record.getMessage() == "analytics.config_created" for record in caplog.records)

    config = DashboardConfig.objects.get(client=tenant)
    assert [card["id"] for card in config.metrics] == [
        card["id"] for card in presets.METRIC_PRESETS[META]
    ]


@pytest.mark.django_db
def test_client_analytics_accepts_camel_case_dates(auth_client, tenant, dataset):
    response = auth_client.get(
        f"/api/analytics/{tenant.id}/", {"startDate": "2024-02-01", "endDate": "2024-02-29"}
    )

    assert response.status_code == 200
    assert response.json()["metrics"]["leads"] == 1
    assert response.json()["metrics"]["spend"] == 0.0


@pytest.mark.django_db
@pytest.mark.parametrize(
    "params, field",
    [
        ({"platform": "myspace"}, "platform"),
        ({"start_date": "2024-03-01", "end_date": "2024-01-01"}, "end_date"),
        ({"start_date": "March"}, "start_date"),
    ],
)
def test_client_analytics_rejects_bad_filters(auth_client, tenant, params, field):
    response = auth_client.get(f"/api/analytics/{tenant.id}/", params)

    assert response.status_code == 400
    assert field in response.json()


@pytest.mark.django_db
def test_analytics_for_foreign_client_is_denied(auth_client, other_tenant):
    response = auth_client.get(f"/api/analytics/{other_tenant.id}/")

    assert response.status_code == 403
    assert response.json()["code"] == "access_denied"
    assert not DashboardConfig.objects.exists()


@pytest.mark.django_db
def test_super_admin_reads_any_client(super_client, other_tenant):
    response = super_client.get(f"/api/analytics/{other_tenant.id}/campaigns/")

    assert response.status_code == 200
    assert response.json() == {"stats": [], "stages": []}


@pytest.mark.django_db
def test_campaign_analytics(auth_client, tenant, dataset):
    response = auth_client.get(f"/api/analytics/{tenant.id}/campaigns/")

    assert response.status_code == 200
    body = response.json()
    assert [item["name"] for item in body["stats"]] == ["Search", "Promo A"]
    assert [stage["id"] for stage in body["stages"]] == ["new", "won"]


@pytest.mark.django_db
def test_dashboard_config_preset_switch(auth_client, tenant):
    initial = auth_client.get(f"/api/analytics/{tenant.id}/config/")
    assert initial.status_code == 200
    assert initial.json()["preset"] == presets.CUSTOM

    response = auth_client.patch(
        f"/api/analytics/{tenant.id}/config/", {"preset": GOOGLE}, format="json"
    )

    assert response.status_code == 200
    assert response.json()["preset"] == GOOGLE
    assert [card["id"] for card in response.json()["metrics"]] == [
        card["id"] for card in presets.METRIC_PRESETS[GOOGLE]
    ]


@pytest.mark.django_db
def test_dashboard_config_custom_cards(auth_client, tenant):
    cards = [
        {"id": "spend", "label": "Budget used", "formula": "sum:spend", "format": "currency", "order": 1}
    ]

    response = auth_client.patch(
        f"/api/analytics/{tenant.id}/config/", {"metrics": cards}, format="json"
    )

    assert response.status_code == 200
    config = DashboardConfig.objects.get(client=tenant)
    assert config.metrics == [{**cards[0], "visible": True}]

    invalid = auth_client.patch(
        f"/api/analytics/{tenant.id}/config/",
        {"metrics": [{**cards[0], "format": "emoji"}]},
        format="json",
    )
    assert invalid.status_code == 400


@pytest.mark.django_db
def test_customer_service_cannot_change_dashboard(cs_client, tenant):
    assert cs_client.get(f"/api/analytics/{tenant.id}/config/").status_code == 200

    response = cs_client.patch(
        f"/api/analytics/{tenant.id}/config/", {"preset": GOOGLE}, format="json"
    )

    assert response.status_code == 403
    assert DashboardConfig.objects.get(client=tenant).preset == presets.CUSTOM


@pytest.mark.django_db
def test_dashboard_config_partial_chart_update_keeps_defaults(auth_client, tenant):
    charts = [{"id": "spend", "type": "line", "title": "Spend trend", "order": 1}]

    response = auth_client.patch(
        f"/api/analytics/{tenant.id}/config/", {"charts": charts}, format="json"
    )

    assert response.status_code == 200
    config = DashboardConfig.objects.get(client=tenant)
    assert config.charts == [{**charts[0], "visible": True}]
    assert config.preset == presets.CUSTOM
