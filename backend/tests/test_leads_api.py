from __future__ import annotations

import logging
from datetime import date

import pytest
from django.db import DatabaseError
from rest_framework.exceptions import ValidationError

from accounts.models import AuditLog
from campaigns.models import Campaign, CampaignAlias
from core.exceptions import TransactionFailure
from leads import services
from leads.models import Lead, LeadStageHistory, Pipeline

STAGES = [
    {"id": "won", "name": "Won", "color": "#10B981", "order": 2, "is_goal": True},
    {"id": "new", "name": "New", "color": "#3B82F6", "order": 0, "is_goal": False},
    {"id": "consult", "name": "Consultation", "color": "#F59E0B", "order": 1, "is_goal": False},
]
CUSTOM_FIELDS = [
    {
        "id": "treatment",
        "name": "Treatment",
        "type": "select",
        "options": ["Botox", "Filler"],
        "required": True,
    },
    {"id": "age", "name": "Age", "type": "number", "required": False},
    {"id": "visit", "name": "Visit date", "type": "date", "required": False},
]


@pytest.fixture
def pipeline(tenant) -> Pipeline:
    return Pipeline.objects.create(
        client=tenant,
        name="Clinic sales",
        stages=STAGES,
        custom_fields=CUSTOM_FIELDS,
        is_default=True,
    )


@pytest.fixture
def foreign_pipeline(other_tenant) -> Pipeline:
    return Pipeline.objects.create(
        client=other_tenant, name="Their sales", stages=STAGES, is_default=True
    )


def _lead(pipeline, stage="new", **extra) -> Lead:
    return Lead.objects.create(
        client=pipeline.client,
        pipeline=pipeline,
        current_stage=stage,
        customer_name=extra.pop("customer_name", "Siti"),
        phone=extra.pop("phone", "0812000111"),
        custom_data=extra.pop("custom_data", {"treatment": "Botox"}),
        **extra,
    )


# Pipelines


@pytest.mark.django_db
def test_create_pipeline(auth_client, tenant):
    response = auth_client.post(
        "/api/pipelines/",
        {"name": "Sales", "stages": STAGES, "custom_fields": CUSTOM_FIELDS},
        format="json",
    )

    assert response.status_code == 201
    pipeline = Pipeline.objects.get(pk=response.json()["id"])
    assert pipeline.client == tenant
    assert pipeline.entry_stage["id"] == "new"
    assert [field["id"] for field in pipeline.custom_fields] == ["treatment", "age", "visit"]


@pytest.mark.django_db
@pytest.mark.parametrize(
    "payload, field",
    [
        ({"name": "Sales", "stages": []}, "stages"),
        ({"name": "Sa", "stages": STAGES}, "name"),
        ({"name": "Sales", "stages": STAGES + [STAGES[0]]}, "stages"),
        (
            {
                "name": "Sales",
                "stages": STAGES,
                "custom_fields": [{"id": "kind", "name": "Kind", "type": "select"}],
            },
            "custom_fields",
        ),
        (
            {
                "name": "Sales",
                "stages": STAGES,
                "custom_fields": [{"id": "x", "name": "X", "type": "color"}],
            },
            "custom_fields",
        ),
    ],
)
def test_create_pipeline_validation(auth_client, payload, field):
    response = auth_client.post("/api/pipelines/", payload, format="json")

    assert response.status_code == 400
    assert field in response.json()


@pytest.mark.django_db
def test_customer_service_cannot_edit_pipelines(cs_client, pipeline):
    listing = cs_client.get("/api/pipelines/")
    assert listing.status_code == 200
    assert [item["id"] for item in listing.json()] == [str(pipeline.id)]

    response = cs_client.patch(
        f"/api/pipelines/{pipeline.id}/", {"name": "Renamed"}, format="json"
    )
    assert response.status_code == 403


@pytest.mark.django_db
def test_new_default_pipeline_clears_previous(auth_client, pipeline):
    response = auth_client.post(
        "/api/pipelines/",
        {"name": "Second funnel", "stages": STAGES, "is_default": True},
        format="json",
    )

    assert response.status_code == 201
    pipeline.refresh_from_db()
    assert pipeline.is_default is False
    assert Pipeline.objects.get(pk=response.json()["id"]).is_default is True


@pytest.mark.django_db
def test_cannot_remove_stage_that_holds_leads(auth_client, pipeline):
    _lead(pipeline, stage="consult")
    remaining = [stage for stage in STAGES if stage["id"] != "consult"]

    response = auth_client.patch(
        f"/api/pipelines/{pipeline.id}/", {"stages": remaining}, format="json"
    )

    assert response.status_code == 400
    assert "consult" in response.json()["stages"][0]

    unused = [stage for stage in STAGES if stage["id"] != "won"]
    assert (
        auth_client.patch(
            f"/api/pipelines/{pipeline.id}/", {"stages": unused}, format="json"
        ).status_code
        == 200
    )


@pytest.mark.django_db
def test_foreign_pipeline_is_not_found(auth_client, foreign_pipeline):
    assert auth_client.get(f"/api/pipelines/{foreign_pipeline.id}/").status_code == 404


@pytest.mark.django_db
def test_super_admin_pipeline_create_requires_client(super_client, tenant):
    missing = super_client.post(
        "/api/pipelines/", {"name": "Sales", "stages": STAGES}, format="json"
    )
    assert missing.status_code == 400

    response = super_client.post(
        "/api/pipelines/",
        {"name": "Sales", "stages": STAGES, "client_id": str(tenant.id)},
        format="json",
    )
    assert response.status_code == 201
    assert response.json()["client"] == str(tenant.id)


# Leads


@pytest.mark.django_db
def test_create_lead_lands_in_entry_stage(cs_client, pipeline, cs_user):
    response = cs_client.post(
        "/api/leads/",
        {
            "pipeline": str(pipeline.id),
            "customer_name": "Siti",
            "phone": "0812000111",
            "custom_data": {"treatment": "Botox", "age": "31", "visit": "2024-03-01"},
        },
        format="json",
    )

    assert response.status_code == 201
    body = response.json()
    assert body["current_stage"] == "new"
    assert body["stage_name"] == "New"
    assert body["campaign_name"] == services.MANUAL_ENTRY
    assert body["custom_data"] == {"treatment": "Botox", "age": 31, "visit": "2024-03-01"}
    assert Lead.objects.get(pk=body["id"]).created_by == cs_user


@pytest.mark.django_db
@pytest.mark.parametrize(
    "custom_data, field",
    [
        ({}, "treatment"),
        ({"treatment": "Laser"}, "treatment"),
        ({"treatment": "Botox", "age": "thirty"}, "age"),
        ({"treatment": "Botox", "visit": "03/01/2024"}, "visit"),
        ({"treatment": "Botox", "favourite_colour": "red"}, "favourite_colour"),
    ],
)
def test_create_lead_validates_custom_data(auth_client, pipeline, custom_data, field):
    response = auth_client.post(
        "/api/leads/",
        {"pipeline": str(pipeline.id), "customer_name": "Siti", "custom_data": custom_data},
        format="json",
    )

    assert response.status_code == 400
    assert field in response.json()["custom_data"]


@pytest.mark.django_db
def test_create_lead_rejects_unknown_stage(auth_client, pipeline):
    response = auth_client.post(
        "/api/leads/",
        {
            "pipeline": str(pipeline.id),
            "customer_name": "Siti",
            "current_stage": "lost",
            "custom_data": {"treatment": "Botox"},
        },
        format="json",
    )

    assert response.status_code == 400
    assert "current_stage" in response.json()


@pytest.mark.django_db
def test_create_lead_rejects_foreign_pipeline(auth_client, foreign_pipeline):
    response = auth_client.post(
        "/api/leads/",
        {"pipeline": str(foreign_pipeline.id), "customer_name": "Siti"},
        format="json",
    )

    assert response.status_code == 400
    assert "pipeline" in response.json()


@pytest.mark.django_db
def test_lead_campaign_attribution_by_alias(auth_client, tenant, pipeline):
    campaign = Campaign.objects.create(
        client=tenant, name="Promo A", original_name="Promo A"
    )
    CampaignAlias.objects.create(client=tenant, campaign=campaign, name="Promo A Lama")

    response = auth_client.post(
        "/api/leads/",
        {
            "pipeline": str(pipeline.id),
            "customer_name": "Siti",
            "campaign_name": "  Promo A   Lama ",
            "custom_data": {"treatment": "Filler"},
        },
        format="json",
    )

    assert response.status_code == 201
    assert response.json()["campaign"] == str(campaign.id)
    assert response.json()["campaign_name"] == "Promo A Lama"


@pytest.mark.django_db
def test_lead_campaign_unknown_name_is_kept_without_creating(auth_client, tenant, pipeline):
    response = auth_client.post(
        "/api/leads/",
        {
            "pipeline": str(pipeline.id),
            "customer_name": "Siti",
            "campaign_name": "Walk-in referral",
            "custom_data": {"treatment": "Filler"},
        },
        format="json",
    )

    assert response.status_code == 201
    assert response.json()["campaign"] is None
    assert response.json()["campaign_name"] == "Walk-in referral"
    assert not Campaign.objects.filter(client=tenant).exists()


@pytest.mark.django_db
def test_lead_rejects_foreign_campaign(auth_client, other_tenant, pipeline):
    foreign = Campaign.objects.create(
        client=other_tenant, name="Theirs", original_name="Theirs"
    )

    response = auth_client.post(
        "/api/leads/",
        {
            "pipeline": str(pipeline.id),
            "customer_name": "Siti",
            "campaign": str(foreign.id),
            "custom_data": {"treatment": "Botox"},
        },
        format="json",
    )

    assert response.status_code == 400
    assert "campaign" in response.json()


@pytest.mark.django_db
def test_lead_list_filters(auth_client, pipeline, foreign_pipeline):
    _lead(pipeline, customer_name="Siti", phone="0811", lead_date=date(2024, 1, 10))
    _lead(pipeline, stage="won", customer_name="Dewi", phone="0822", lead_date=date(2024, 2, 10))
    _lead(foreign_pipeline, customer_name="Siti", custom_data={})

    everything = auth_client.get("/api/leads/")
    assert everything.status_code == 200
    assert len(everything.json()) == 2

    won = auth_client.get("/api/leads/", {"stage": "won"})
    assert [item["customer_name"] for item in won.json()] == ["Dewi"]

    by_phone = auth_client.get("/api/leads/", {"search": "0811"})
    assert [item["customer_name"] for item in by_phone.json()] == ["Siti"]

    february = auth_client.get(
        "/api/leads/", {"date_from": "2024-02-01", "date_to": "2024-02-29"}
    )
    assert [item["customer_name"] for item in february.json()] == ["Dewi"]

    bad = auth_client.get("/api/leads/", {"date_from": "yesterday"})
    assert bad.status_code == 400


@pytest.mark.django_db
def test_lead_update_with_stage_change_writes_history(auth_client, pipeline, user):
    lead = _lead(pipeline)

    response = auth_client.patch(
        f"/api/leads/{lead.id}/", {"current_stage": "consult", "notes": "Called"}, format="json"
    )

    assert response.status_code == 200
    history = LeadStageHistory.objects.get(lead=lead)
    assert (history.from_stage, history.to_stage, history.moved_by) == ("new", "consult", user)


@pytest.mark.django_db
def test_foreign_lead_is_not_found(auth_client, foreign_pipeline):
    lead = _lead(foreign_pipeline, custom_data={})

    assert auth_client.get(f"/api/leads/{lead.id}/").status_code == 404
    assert (
        auth_client.post(
            f"/api/leads/{lead.id}/stage/", {"stage_id": "won"}, format="json"
        ).status_code
        == 404
    )
    lead.refresh_from_db()
    assert lead.current_stage == "new"


# Stage transitions


@pytest.mark.django_db
def test_stage_transition_records_history_and_audit(cs_client, pipeline, cs_user, caplog):
    lead = _lead(pipeline)

    with caplog.at_level(logging.INFO, logger="leads"):
        response = cs_client.post(
            f"/api/leads/{lead.id}/stage/", {"stage_id": "won"}, format="json"
        )

    assert response.status_code == 200
    assert response.json()["current_stage"] == "won"
    lead.refresh_from_db()
    assert lead.current_stage == "won"
    assert lead.updated_by == cs_user

    audit = AuditLog.objects.get(action="lead_stage_changed")
    assert audit.resource_id == str(lead.id)
    assert audit.metadata == {"from_stage": "new", "to_stage": "won"}
    assert any(record.getMessage() == "lead.stage_changed" for record in caplog.records)

    history = cs_client.get(f"/api/leads/{lead.id}/stage/")
    assert history.status_code == 200
    assert [(item["from_stage"], item["to_stage"]) for item in history.json()] == [("new", "won")]


@pytest.mark.django_db
def test_stage_transition_rejects_unknown_stage(auth_client, pipeline):
    lead = _lead(pipeline)

    response = auth_client.post(
        f"/api/leads/{lead.id}/stage/", {"stage_id": "lost"}, format="json"
    )

    assert response.status_code == 400
    assert "stage_id" in response.json()
    assert not LeadStageHistory.objects.filter(lead=lead).exists()


@pytest.mark.django_db
def test_stage_transition_rolls_back_on_database_error(pipeline, monkeypatch):
    lead = _lead(pipeline)

    def explode(**kwargs):
        raise DatabaseError("disk full")

    monkeypatch.setattr(services, "log_audit_event", explode)

    with pytest.raises(TransactionFailure):
        services.transition_stage(lead, "won")

    lead.refresh_from_db()
    assert lead.current_stage == "new"
    assert not LeadStageHistory.objects.filter(lead=lead).exists()


# Bulk import


@pytest.mark.django_db
def test_bulk_import_creates_leads_in_entry_stage(auth_client, tenant, pipeline):
    campaign = Campaign.objects.create(
        client=tenant, name="Promo A", original_name="Promo A"
    )
    rows = [
        {"name": "Siti", "phone": "0811", "source": "Promo A", "Treatment": "Botox", "Age": "30"},
        {"customer_name": "Dewi", "treatment": "Filler", "value": "2500000"},
    ]

    response = auth_client.post(
        f"/api/pipelines/{pipeline.id}/leads/import/", {"leads": rows}, format="json"
    )

    assert response.status_code == 201
    assert response.json() == {"count": 2, "pipeline": str(pipeline.id), "stage": "new"}
    siti = Lead.objects.get(customer_name="Siti")
    assert siti.campaign == campaign
    assert siti.custom_data == {"treatment": "Botox", "age": 30}
    dewi = Lead.objects.get(customer_name="Dewi")
    assert dewi.campaign is None
    assert str(dewi.value) == "2500000.00"
    assert AuditLog.objects.filter(action="leads_imported").count() == 1


@pytest.mark.django_db
def test_bulk_import_keeps_undeclared_columns(auth_client, pipeline):
    rows = [{"name": "Budi", "phone": "0812", "Treatment": "Filler", "company": "PT Maju"}]

    response = auth_client.post(
        f"/api/pipelines/{pipeline.id}/leads/import/", {"leads": rows}, format="json"
    )

    assert response.status_code == 201
    budi = Lead.objects.get(customer_name="Budi")
    assert budi.custom_data == {"treatment": "Filler", "company": "PT Maju"}


@pytest.mark.django_db
def test_bulk_import_is_all_or_nothing(cs_client, pipeline):
    rows = [
        {"name": "Siti", "Treatment": "Botox"},
        {"phone": "0822", "Treatment": "Botox"},
        {"name": "Dewi", "Treatment": "Laser"},
    ]

    response = cs_client.post(
        f"/api/pipelines/{pipeline.id}/leads/import/", {"leads": rows}, format="json"
    )

    assert response.status_code == 400
    errors = response.json()["leads"]
    assert [error["row"] for error in errors] == [2, 3]
    assert "customer_name" in errors[0]["errors"]
    assert "custom_data" in errors[1]["errors"]
    assert not Lead.objects.exists()


@pytest.mark.django_db
def test_bulk_import_into_foreign_pipeline_is_not_found(auth_client, foreign_pipeline):
    response = auth_client.post(
        f"/api/pipelines/{foreign_pipeline.id}/leads/import/",
        {"leads": [{"name": "Siti"}]},
        format="json",
    )

    assert response.status_code == 404
    assert not Lead.objects.exists()


@pytest.mark.django_db
def test_import_leads_requires_stages(tenant):
    empty = Pipeline.objects.create(client=tenant, name="Empty", stages=[])

    with pytest.raises(ValidationError) as excinfo:
        services.import_leads(empty, [{"customer_name": "Siti"}])

    assert "pipeline" in excinfo.value.detail
