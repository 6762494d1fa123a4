import httpx
import pytest

from app.main import app
from app.services.certificate_service import certificate_service
from app.services.template_service import template_service

from tests.conftest import FakeConverter, seed_claim


@pytest.fixture
async def client(db, templates_dir, storage, monkeypatch):
    monkeypatch.setattr(certificate_service, "converter", FakeConverter())
    monkeypatch.setattr(certificate_service, "storage", storage)
    monkeypatch.setattr(template_service, "templates_dir", templates_dir)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_generate_immediately(client, cpd_templates):
    claim_id = seed_claim(full_name="A. Khan")

    response = await client.post(f"/api/certificates/generate/{claim_id}", params={"immediate": True})

    assert response.status_code == 200
    body = response.json()
    assert body["registration_number"] == "REG-00001"
    assert body["status"] == "ready"
    assert body["certificate_pdf_url"]


async def test_generate_in_background(client, cpd_templates):
    claim_id = seed_claim()

    response = await client.post(f"/api/certificates/generate/{claim_id}")

    assert response.status_code == 200
    assert response.json()["status"] == "pending"

    # The in-process transport runs background tasks before returning
    record = await client.get(f"/api/certificates/generated/by-claim/{claim_id}")
    assert record.status_code == 200
    assert record.json()["status"] == "ready"
    assert record.json()["registration_number"] == "REG-00001"


async def test_generate_with_overrides(client, cpd_templates):
    claim_id = seed_claim(full_name="A. Khan")

    response = await client.post(
        f"/api/certificates/generate/{claim_id}",
        params={"immediate": True},
        json={"registration_number": "OPS-1", "overrides": {"student_name": "Ayesha K."}},
    )

    assert response.status_code == 200
    record = (await client.get(f"/api/certificates/generated/{response.json()['generated_certificate_id']}")).json()
    assert record["registration_number"] == "OPS-1"
    assert record["field_snapshot"]["certificate"]["STUDENT_NAME"] == "Ayesha K."


async def test_unknown_claim_is_404(client, cpd_templates):
    response = await client.post("/api/certificates/generate/777", params={"immediate": True})
    assert response.status_code == 404
    assert response.json()["error"] == "ClaimNotFoundError"

    response = await client.post("/api/certificates/generate/777")
    assert response.status_code == 404


async def test_missing_templates_is_422(client):
    claim_id = seed_claim()

    response = await client.post(f"/api/certificates/generate/{claim_id}", params={"immediate": True})

    assert response.status_code == 422
    assert response.json()["error"] == "TemplateLookupError"

    failed = await client.get("/api/certificates/generated", params={"status": "failed"})
    assert failed.json()["total"] == 1


async def test_add_registration_number(client, cpd_templates):
    claim_id = seed_claim()
    generated = (await client.post(f"/api/certificates/generate/{claim_id}", params={"immediate": True})).json()
    generated_id = generated["generated_certificate_id"]

    response = await client.post(
        f"/api/certificates/generated/{generated_id}/registration",
        json={"registration_number": "REG-00042", "performed_by": 2},
    )

    assert response.status_code == 200
    assert response.json()["registration_number"] == "REG-00042"

    log = (await client.get(f"/api/certificates/generated/{generated_id}/log")).json()
    assert [entry["action"] for entry in log] == ["generated", "pdf_created", "registration_added", "pdf_created"]
    assert log[2]["details"]["previous_registration_number"] == "REG-00001"


async def test_duplicate_registration_number_is_409(client, cpd_templates):
    first = seed_claim()
    second = seed_claim()
    await client.post(f"/api/certificates/generate/{first}", params={"immediate": True})
    generated = (await client.post(f"/api/certificates/generate/{second}", params={"immediate": True})).json()

    response = await client.post(
        f"/api/certificates/generated/{generated['generated_certificate_id']}/registration",
        json={"registration_number": "REG-00001"},
    )

    assert response.status_code == 409


async def test_resubmitting_own_number_is_allowed(client, cpd_templates):
    claim_id = seed_claim()
    generated = (await client.post(f"/api/certificates/generate/{claim_id}", params={"immediate": True})).json()

    response = await client.post(
        f"/api/certificates/generated/{generated['generated_certificate_id']}/registration",
        json={"registration_number": "REG-00001"},
    )

    assert response.status_code == 200


async def test_unknown_generated_certificate_is_404(client):
    assert (await client.get("/api/certificates/generated/55")).status_code == 404
    assert (await client.get("/api/certificates/generated/55/log")).status_code == 404
    assert (await client.get("/api/certificates/generated/by-claim/55")).status_code == 404
    response = await client.post("/api/certificates/generated/55/registration", json={"registration_number": "X-1"})
    assert response.status_code == 404


async def test_batch_generation(client, cpd_templates):
    claim_ids = [seed_claim(), seed_claim(), 31337]

    response = await client.post("/api/certificates/generate-batch", json={"claim_ids": claim_ids})

    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["success"] for r in results] == [True, True, False]
    assert results[2]["status"] == "failed"
    assert len({r["registration_number"] for r in results[:2]}) == 2


async def test_retry_conversion_endpoint(client, cpd_templates, monkeypatch):
    monkeypatch.setattr(certificate_service, "converter", FakeConverter(error="LibreOffice is not available"))
    claim_id = seed_claim()
    generated = (await client.post(f"/api/certificates/generate/{claim_id}", params={"immediate": True})).json()
    assert generated["certificate_pdf_url"] is None
    assert len(generated["warnings"]) == 2

    monkeypatch.setattr(certificate_service, "converter", FakeConverter())
    response = await client.post(f"/api/certificates/generated/{generated['generated_certificate_id']}/convert")

    assert response.status_code == 200
    assert response.json()["certificate_pdf_url"]


async def test_next_registration_number(client):
    first = await client.get("/api/certificates/next-registration-number")
    second = await client.get("/api/certificates/next-registration-number")
    assert first.json()["registration_number"] == "REG-00001"
    assert second.json()["registration_number"] == "REG-00002"


async def test_list_generated(client, cpd_templates):
    for _ in range(3):
        await client.post(f"/api/certificates/generate/{seed_claim()}", params={"immediate": True})

    response = await client.get("/api/certificates/generated", params={"limit": 2})

    body = response.json()
    assert body["total"] == 3
    assert len(body["certificates"]) == 2


async def test_padded_duplicate_registration_number_is_409(client, cpd_templates):
    first = seed_claim()
    second = seed_claim()
    await client.post(f"/api/certificates/generate/{first}", params={"immediate": True})
    generated = (await client.post(f"/api/certificates/generate/{second}", params={"immediate": True})).json()
    generated_id = generated["generated_certificate_id"]

    response = await client.post(
        f"/api/certificates/generated/{generated_id}/registration",
        json={"registration_number": "  REG-00001 "},
    )

    assert response.status_code == 409
    record = (await client.get(f"/api/certificates/generated/{generated_id}")).json()
    assert record["registration_number"] == "REG-00002"


async def test_blank_registration_number_is_rejected(client, cpd_templates):
    claim_id = seed_claim()
    generated = (await client.post(f"/api/certificates/generate/{claim_id}", params={"immediate": True})).json()
    generated_id = generated["generated_certificate_id"]

    response = await client.post(
        f"/api/certificates/generated/{generated_id}/registration",
        json={"registration_number": "   "},
    )

    assert response.status_code == 422
    record = (await client.get(f"/api/certificates/generated/{generated_id}")).json()
    assert record["status"] == "ready"
    assert record["registration_number"] == "REG-00001"
    log = (await client.get(f"/api/certificates/generated/{generated_id}/log")).json()
    assert "generation_failed" not in [entry["action"] for entry in log]


async def test_blank_number_on_generate_is_rejected(client, cpd_templates):
    claim_id = seed_claim()

    response = await client.post(
        f"/api/certificates/generate/{claim_id}",
        params={"immediate": True},
        json={"registration_number": " "},
    )

    assert response.status_code == 422
    assert (await client.get(f"/api/certificates/generated/by-claim/{claim_id}")).status_code == 404
