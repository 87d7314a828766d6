"""HTTP API tests against the ASGI app with in-memory services."""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from insurance_verification.api.dependencies import build_container
from insurance_verification.config.settings import Settings
from insurance_verification.main import create_app
from insurance_verification.payer.simulated_gateway import SimulatedPayerGateway
from insurance_verification.reasoning.fake_classifier import FakeClassifier

STAFF = {"X-User-Id": "staff-1", "X-User-Role": "staff"}
VIEWER = {"X-User-Id": "viewer-1", "X-User-Role": "user"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}

PATIENT = {
    "firstName": "Jane",
    "lastName": "Doe",
    "dateOfBirth": "1985-04-12",
    "insuranceCompany": "Aetna",
    "policyNumber": "AB12345678",
    "memberID": "MEM998877",
}


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        classifier_provider="fake",
        payer_scenario="approve",
        cors_origins=["http://testserver"],
    )


@pytest_asyncio.fixture
async def container(settings, session_factory):
    container = build_container(
        settings,
        session_factory,
        classifier=FakeClassifier(),
        payer=SimulatedPayerGateway(scenario="approve"),
        channels=[],
    )
    yield container
    await container.close()


@pytest_asyncio.fixture
async def client(settings, container):
    app = create_app(settings=settings, container=container)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-ID" in response.headers

    @pytest.mark.asyncio
    async def test_integrations(self, client):
        response = await client.get("/health/integrations")

        body = response.json()
        assert body["payer_channel"] == "simulated"
        assert body["notification_channels"] == []

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client):
        response = await client.get("/", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"


class TestVerificationRoutes:

    @pytest.mark.asyncio
    async def test_submit_and_fetch(self, client):
        response = await client.post("/api/v1/verifications", json=PATIENT, headers=STAFF)

        assert response.status_code == 201
        created = response.json()
        assert created["status"] == "eligible"
        assert created["patient"]["policy_number"] == "AB12345678"

        fetched = await client.get(f"/api/v1/verifications/{created['id']}", headers=STAFF)
        assert fetched.status_code == 200
        assert fetched.json()["id"] == created["id"]

    @pytest.mark.asyncio
    async def test_validation_errors_list_every_field(self, client):
        response = await client.post(
            "/api/v1/verifications",
            json={"firstName": "Jane", "policyNumber": "A-1"},
            headers=STAFF,
        )

        assert response.status_code == 422
        errors = response.json()["errors"]
        assert "policy_number" in errors
        assert "member_id" in errors
        assert "date_of_birth" in errors

    @pytest.mark.asyncio
    async def test_missing_identity_is_unauthorized(self, client):
        response = await client.post("/api/v1/verifications", json=PATIENT)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_list_masks_identifiers(self, client):
        await client.post("/api/v1/verifications", json=PATIENT, headers=STAFF)

        response = await client.get("/api/v1/verifications", headers=VIEWER)

        assert response.status_code == 200
        patient = response.json()["verifications"][0]["patient"]
        assert patient["policy_number"] == "AB***78"

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, client):
        response = await client.get("/api/v1/verifications?status=approved", headers=STAFF)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_export_requires_permission(self, client):
        await client.post("/api/v1/verifications", json=PATIENT, headers=STAFF)

        denied = await client.get("/api/v1/verifications/export", headers=VIEWER)
        allowed = await client.get("/api/v1/verifications/export", headers=STAFF)

        assert denied.status_code == 403
        assert allowed.status_code == 200
        assert allowed.json()["count"] == 1

    @pytest.mark.asyncio
    async def test_unknown_verification(self, client):
        response = await client.get("/api/v1/verifications/nope", headers=STAFF)
        assert response.status_code == 404


class TestPriorAuthRoutes:

    @pytest.mark.asyncio
    async def test_initiate_and_submit(self, client):
        created = await client.post(
            "/api/v1/verifications",
            json=dict(PATIENT, policyNumber="PA12345678"),
            headers=STAFF,
        )
        verification_id = created.json()["id"]
        assert created.json()["status"] == "requires_auth"

        initiated = await client.post(
            f"/api/v1/verifications/{verification_id}/prior-auth",
            json={"clinicalJustification": "MRI indicated", "urgency": "urgent"},
            headers=STAFF,
        )
        assert initiated.status_code == 201
        request_id = initiated.json()["id"]
        assert initiated.json()["policy_number"] == "PA***78"

        submitted = await client.post(f"/api/v1/prior-auth/{request_id}/submit", headers=STAFF)

        assert submitted.status_code == 200
        body = submitted.json()
        assert body["approved"] is True
        assert body["request"]["status"] == "approved"
        assert body["verification"]["status"] == "eligible"

    @pytest.mark.asyncio
    async def test_payer_outage_is_bad_gateway(self, client, container):
        container.payer.set_scenario("unavailable")
        created = await client.post(
            "/api/v1/verifications",
            json=dict(PATIENT, policyNumber="PA12345678"),
            headers=STAFF,
        )
        initiated = await client.post(
            f"/api/v1/verifications/{created.json()['id']}/prior-auth",
            json={"clinicalJustification": "MRI indicated"},
            headers=STAFF,
        )

        response = await client.post(f"/api/v1/prior-auth/{initiated.json()['id']}/submit", headers=STAFF)

        assert response.status_code == 502
        tracked = await client.get(f"/api/v1/prior-auth/{initiated.json()['id']}", headers=STAFF)
        assert tracked.json()["status"] == "pending"

    @pytest.mark.asyncio
    async def test_initiate_on_eligible_verification_is_rejected(self, client):
        created = await client.post("/api/v1/verifications", json=PATIENT, headers=STAFF)

        response = await client.post(
            f"/api/v1/verifications/{created.json()['id']}/prior-auth",
            json={"clinicalJustification": "MRI indicated"},
            headers=STAFF,
        )

        assert response.status_code == 422


class TestAuditRoutes:

    @pytest.mark.asyncio
    async def test_audit_log_query(self, client):
        await client.post("/api/v1/verifications", json=PATIENT, headers=STAFF)

        response = await client.get("/api/v1/audit-logs?action=create", headers=VIEWER)

        assert response.status_code == 200
        entries = response.json()["entries"]
        assert len(entries) == 1
        assert entries[0]["actor_id"] == "staff-1"

    @pytest.mark.asyncio
    async def test_audit_entry_carries_request_id(self, client):
        await client.post(
            "/api/v1/verifications",
            json=PATIENT,
            headers=dict(STAFF, **{"X-Request-ID": "req-audit-7"}),
        )

        response = await client.get("/api/v1/audit-logs?action=create", headers=VIEWER)

        assert response.json()["entries"][0]["correlation_id"] == "req-audit-7"

    @pytest.mark.asyncio
    async def test_bad_audit_filter(self, client):
        response = await client.get("/api/v1/audit-logs?action=destroy", headers=VIEWER)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_report_and_retention(self, client):
        await client.get("/api/v1/verifications/export", headers=VIEWER)

        report = await client.get("/api/v1/audit-logs/report", headers=ADMIN)
        denied = await client.post("/api/v1/retention/enforce", headers=STAFF)
        enforced = await client.post("/api/v1/retention/enforce", headers=ADMIN)

        assert report.status_code == 200
        assert report.json()["unauthorized_attempts"] == 1
        assert denied.status_code == 403
        assert enforced.json() == {"deleted": {"verification_requests": 0, "prior_auth_requests": 0}}
