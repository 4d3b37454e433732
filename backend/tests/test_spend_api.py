from __future__ import annotations

import io
from datetime import date, datetime
from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from openpyxl import Workbook

from campaigns.models import Campaign
from campaigns.platforms import GOOGLE, META
from spend.ingest import create_pending_batch
from spend.models import ImportBatch, MappingTemplate, SpendLog

IMPORT_URL = "/api/spend/import/"
UPLOAD_URL = "/api/spend/upload/"

META_ROW = {
    "Date": "2024-01-05",
    "Campaign name": "Promo Lebaran",
    "Amount spent": "150000",
    "Impressions": "1,000",
    "Link clicks": "20",
}


def _rows(count: int) -> list[dict]:
    return [
        {**META_ROW, "Date": f"2024-01-{day:02d}", "Amount spent": str(day * 10)}
        for day in range(1, count + 1)
    ]


def _campaign(client, name, platform=META):
    return Campaign.objects.create(
        client=client, name=name, original_name=name, platform=platform
    )


def _spend(client, campaign, day, spend="10"):
    return SpendLog.objects.create(
        client=client,
        campaign=campaign,
        campaign_name=campaign.original_name,
        date=day,
        platform=campaign.platform,
        spend=spend,
    )


@pytest.mark.django_db
def test_import_rows_inserts_spend_logs(auth_client, tenant):
    response = auth_client.post(
        IMPORT_URL, {"rows": [META_ROW], "platform": META}, format="json"
    )

    assert response.status_code == 201
    body = response.json()
    assert body["count"] == 1
    assert body["new_campaigns"] == 1
    assert body["status"] == ImportBatch.STATUS_COMPLETED

    log = SpendLog.objects.get(client=tenant)
    assert log.campaign_name == "Promo Lebaran"
    assert log.platform == META
    assert log.spend == Decimal("150000")
    assert log.impressions == 1000
    assert log.import_batch_id == body["batch_id"]


@pytest.mark.django_db
def test_import_rejects_unrelated_columns_and_records_batch(auth_client, tenant):
    rows = [{"Customer": "Budi", "Phone": "0812", "Address": "Jl. Mawar"}]

    response = auth_client.post(IMPORT_URL, {"rows": rows}, format="json")

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "import_rejected"
    assert body["validation"]["has_campaign"] is False
    batch = ImportBatch.objects.get(batch_id=body["batch_id"])
    assert batch.status == ImportBatch.STATUS_REJECTED
    assert batch.client == tenant
    assert not SpendLog.objects.exists()


@pytest.mark.django_db
def test_import_with_saved_template_accepts_custom_headers(auth_client, tenant):
    template = MappingTemplate.objects.create(
        client=tenant,
        name="Agency export",
        column_mappings={"Iklan": "campaign_name", "Total Bayar": "spend", "Tgl": "date"},
    )
    rows = [{"Iklan": "Promo Gigi", "Total Bayar": "Rp 250000", "Tgl": "2024-02-01"}]

    response = auth_client.post(
        IMPORT_URL, {"rows": rows, "mapping_id": str(template.id)}, format="json"
    )

    assert response.status_code == 201
    log = SpendLog.objects.get(client=tenant)
    assert log.campaign_name == "Promo Gigi"
    assert log.date == date(2024, 2, 1)
    assert log.spend == Decimal("250000")


@pytest.mark.django_db
def test_import_with_unknown_template_is_not_found(auth_client, other_tenant):
    template = MappingTemplate.objects.create(
        client=other_tenant, name="Foreign", column_mappings={"Campaign": "campaign_name"}
    )

    response = auth_client.post(
        IMPORT_URL, {"rows": [META_ROW], "mapping_id": str(template.id)}, format="json"
    )

    assert response.status_code == 404


@pytest.mark.django_db
def test_import_for_foreign_client_is_denied(auth_client, other_tenant):
    response = auth_client.post(
        IMPORT_URL,
        {"rows": [META_ROW], "client_id": str(other_tenant.id)},
        format="json",
    )

    assert response.status_code == 403
    assert response.json()["code"] == "access_denied"
    assert not SpendLog.objects.exists()


@pytest.mark.django_db
def test_super_admin_import_requires_client(super_client, tenant):
    missing = super_client.post(IMPORT_URL, {"rows": [META_ROW]}, format="json")
    assert missing.status_code == 400
    assert "client_id" in missing.json()

    response = super_client.post(
        IMPORT_URL, {"rows": [META_ROW], "client_id": str(tenant.id)}, format="json"
    )
    assert response.status_code == 201
    assert SpendLog.objects.filter(client=tenant).count() == 1


@pytest.mark.django_db
def test_large_async_import_is_queued(auth_client, tenant):
    response = auth_client.post(
        IMPORT_URL, {"rows": _rows(6), "platform": META, "async": True}, format="json"
    )

    assert response.status_code == 202
    body = response.json()
    assert body["queued"] is True
    batch = ImportBatch.objects.get(batch_id=body["batch_id"])
    assert batch.status == ImportBatch.STATUS_COMPLETED
    assert batch.inserted == 6
    assert SpendLog.objects.filter(import_batch_id=batch.batch_id).count() == 6


@pytest.mark.django_db
def test_small_async_import_runs_inline(auth_client):
    response = auth_client.post(
        IMPORT_URL, {"rows": _rows(2), "async": True}, format="json"
    )

    assert response.status_code == 201
    assert response.json()["count"] == 2


@pytest.mark.django_db
def test_upload_csv(auth_client, tenant):
    content = (
        "Date,Campaign name,Amount spent,Impressions\n"
        "2024-01-05,Promo A,100,1000\n"
        "2024-01-06,Promo A,50,500\n"
    ).encode("utf-8")
    upload = SimpleUploadedFile("meta.csv", content, content_type="text/csv")

    response = auth_client.post(
        UPLOAD_URL, {"file": upload, "platform": META}, format="multipart"
    )

    assert response.status_code == 201
    assert response.json()["count"] == 2
    batch = ImportBatch.objects.get(batch_id=response.json()["batch_id"])
    assert batch.file_name == "meta.csv"
    assert Campaign.objects.filter(client=tenant).count() == 1


@pytest.mark.django_db
def test_upload_xlsx(auth_client, tenant):
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["Day", "Campaign", "Cost", "Clicks"])
    sheet.append([datetime(2024, 2, 1), "Search Brand", 75.5, 10])
    sheet.append([None, None, None, None])
    sheet.append([datetime(2024, 2, 2), "Search Brand", 24.5, 4])
    buffer = io.BytesIO()
    workbook.save(buffer)
    upload = SimpleUploadedFile(
        "google.xlsx",
        buffer.getvalue(),
        content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )

    response = auth_client.post(
        UPLOAD_URL, {"file": upload, "platform": GOOGLE}, format="multipart"
    )

    assert response.status_code == 201
    assert response.json()["count"] == 2
    logs = SpendLog.objects.filter(client=tenant).order_by("date")
    assert [log.date for log in logs] == [date(2024, 2, 1), date(2024, 2, 2)]
    assert sum(log.spend for log in logs) == Decimal("100.00")
    assert {log.platform for log in logs} == {GOOGLE}


@pytest.mark.django_db
@pytest.mark.parametrize(
    "name, content",
    [
        ("report.pdf", b"%PDF-1.4"),
        ("broken.xlsx", b"not a workbook"),
        ("empty.csv", b"Date,Campaign,Cost\n"),
    ],
)
def test_upload_rejects_unreadable_files(auth_client, name, content):
    upload = SimpleUploadedFile(name, content)

    response = auth_client.post(UPLOAD_URL, {"file": upload}, format="multipart")

    assert response.status_code == 400
    assert "file" in response.json()
    assert not ImportBatch.objects.exists()


@pytest.mark.django_db
def test_validate_headers_endpoint(auth_client):
    response = auth_client.post(
        "/api/spend/import/validate/",
        {"headers": ["Campaign", "Cost", "Date", "Cost per click"]},
        format="json",
    )

    assert response.status_code == 200
    body = response.json()
    assert body["is_valid"] is True
    assert body["mapping"]["Cost"] == "spend"
    assert body["mapping"]["Cost per click"] == "cpc"


@pytest.mark.django_db
def test_import_history_is_scoped_to_client(auth_client, tenant, other_tenant):
    own = create_pending_batch(client=tenant, file_name="mine.csv")
    create_pending_batch(client=other_tenant, file_name="theirs.csv")

    response = auth_client.get("/api/spend/imports/")

    assert response.status_code == 200
    assert [item["batch_id"] for item in response.json()] == [own.batch_id]


@pytest.mark.django_db
def test_spend_log_list_filters_and_paginates(auth_client, tenant, other_tenant):
    meta = _campaign(tenant, "Promo A")
    google = _campaign(tenant, "Search", platform=GOOGLE)
    _spend(tenant, meta, date(2024, 1, 1))
    _spend(tenant, meta, date(2024, 2, 1))
    _spend(tenant, google, date(2024, 2, 15))
    _spend(other_tenant, _campaign(other_tenant, "Promo A"), date(2024, 2, 1))

    everything = auth_client.get("/api/spend-logs/")
    assert everything.status_code == 200
    assert everything.json()["count"] == 3

    february = auth_client.get(
        "/api/spend-logs/", {"start_date": "2024-02-01", "end_date": "2024-02-28"}
    )
    assert february.json()["count"] == 2

    google_only = auth_client.get("/api/spend-logs/", {"platform": "google"})
    assert [item["campaign_name"] for item in google_only.json()["results"]] == ["Search"]

    page = auth_client.get("/api/spend-logs/", {"limit": 1})
    assert page.json()["count"] == 3
    assert len(page.json()["results"]) == 1
    assert page.json()["results"][0]["date"] == "2024-02-15"


@pytest.mark.django_db
def test_spend_log_list_rejects_bad_date(auth_client):
    response = auth_client.get("/api/spend-logs/", {"start_date": "01/02/2024"})

    assert response.status_code == 400
    assert "start_date" in response.json()


@pytest.mark.django_db
def test_create_spend_log_copies_campaign_fields(auth_client, tenant):
    campaign = _campaign(tenant, "Promo A", platform=GOOGLE)

    response = auth_client.post(
        "/api/spend-logs/",
        {"campaign": str(campaign.id), "date": "2024-03-01", "spend": "25.50"},
        format="json",
    )

    assert response.status_code == 201
    body = response.json()
    assert body["campaign_name"] == "Promo A"
    assert body["platform"] == GOOGLE
    assert body["client"] == str(tenant.id)


@pytest.mark.django_db
def test_update_spend_log_campaign_syncs_name(auth_client, tenant):
    first = _campaign(tenant, "Promo A")
    second = _campaign(tenant, "Promo B")
    log = _spend(tenant, first, date(2024, 1, 1))

    response = auth_client.patch(
        f"/api/spend-logs/{log.id}/",
        {"campaign": str(second.id), "spend": "42"},
        format="json",
    )

    assert response.status_code == 200
    log.refresh_from_db()
    assert log.campaign == second
    assert log.campaign_name == "Promo B"
    assert log.spend == Decimal("42")


@pytest.mark.django_db
def test_update_spend_log_rejects_foreign_campaign(auth_client, tenant, other_tenant):
    log = _spend(tenant, _campaign(tenant, "Promo A"), date(2024, 1, 1))
    foreign = _campaign(other_tenant, "Theirs")

    response = auth_client.patch(
        f"/api/spend-logs/{log.id}/", {"campaign": str(foreign.id)}, format="json"
    )

    assert response.status_code == 400
    assert "campaign" in response.json()


@pytest.mark.django_db
def test_foreign_spend_log_is_not_found(auth_client, other_tenant):
    log = _spend(other_tenant, _campaign(other_tenant, "Theirs"), date(2024, 1, 1))

    assert auth_client.get(f"/api/spend-logs/{log.id}/").status_code == 404
    assert auth_client.delete(f"/api/spend-logs/{log.id}/").status_code == 404
    assert SpendLog.objects.filter(pk=log.pk).exists()


@pytest.mark.django_db
def test_mapping_template_default_is_unique_per_platform(auth_client, tenant):
    payload = {
        "name": "Meta export",
        "platform": META,
        "column_mappings": {"Campaign name": "campaign_name"},
        "is_default": True,
    }
    first = auth_client.post("/api/mappings/", payload, format="json")
    second = auth_client.post(
        "/api/mappings/", {**payload, "name": "Meta export v2"}, format="json"
    )

    assert first.status_code == 201
    assert second.status_code == 201
    defaults = MappingTemplate.objects.filter(client=tenant, is_default=True)
    assert [template.name for template in defaults] == ["Meta export v2"]

    listing = auth_client.get("/api/mappings/")
    assert listing.status_code == 200
    assert len(listing.json()["results"]) == 2
    assert "META" in listing.json()["platform_defaults"]


@pytest.mark.django_db
def test_mapping_template_rejects_unknown_target(auth_client):
    response = auth_client.post(
        "/api/mappings/",
        {"name": "Broken", "column_mappings": {"Campaign": "budget_line"}},
        format="json",
    )

    assert response.status_code == 400
    assert "column_mappings" in response.json()


@pytest.mark.django_db
def test_mapping_auto_detect(auth_client):
    response = auth_client.get(
        "/api/mappings/",
        {"auto_detect": "true", "columns": "Campaign, Cost", "platform": "google"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["detected"] == {"Campaign": "campaign_name", "Cost": "spend"}
    assert body["merged"]["Day"] == "date"

    empty = auth_client.get("/api/mappings/", {"auto_detect": "true", "columns": " , "})
    assert empty.status_code == 400
