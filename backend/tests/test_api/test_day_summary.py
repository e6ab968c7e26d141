"""Tests for the day summary endpoints."""

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from daysummary import models
from daysummary.services.day_summary import DaySummaryService

from tests.factories import DAY, OTHER_USER_ID, USER_ID, FakeLLM, seed_day

URL = "/api/day-summary"


def _body(**overrides) -> dict:
    body = {"userId": USER_ID, "date": DAY.isoformat()}
    body.update(overrides)
    return body


def _credits(db: Session, user_id: str = USER_ID) -> int:
    db.expire_all()
    return db.get(models.UserCredits, user_id).credits_remaining


def _summary_rows(db: Session) -> list[models.DailySummary]:
    db.expire_all()
    return db.query(models.DailySummary).all()


class TestCreateDaySummary:
    """POST /api/day-summary."""

    def test_success_builds_persists_and_bills(
        self, client: TestClient, seeded_day: Session, auth_headers: dict, fake_llm: FakeLLM
    ):
        response = client.post(URL, json=_body(), headers=auth_headers)
        assert response.status_code == 200
        data = response.json()

        assert data["status"] == "success"
        assert data["date"] == "2024-03-10"
        assert data["tokens_used"] == 1500
        assert data["credits_used"] == 2
        assert data["summary_xxl_full"] == fake_llm.content
        assert data["structured_summary"]["day"] == "2024-03-10"
        assert data["debug"]["dataCollected"]["meals"] == 3
        assert data["debug"]["dataCollected"]["failed_sources"] == []
        assert len(fake_llm.calls) == 1

        rows = _summary_rows(seeded_day)
        assert len(rows) == 1
        assert rows[0].summary_xxl_md == fake_llm.content
        assert rows[0].total_calories == 1800
        assert rows[0].text_generated is True
        assert rows[0].summary_struct_json["meta"]["schema_version"] == "2025-08-v1"

        spend = seeded_day.query(models.TokenSpend).one()
        assert spend.tokens_spent == 1500
        assert spend.credits_used == 2
        assert spend.operation_type == "summary_generation"

        usage = seeded_day.query(models.LlmUsageLog).one()
        assert usage.feature == "day_summary"
        assert usage.total_tokens == 1500

        assert _credits(seeded_day) == 8

    def test_short_and_medium_are_word_truncations(
        self, client: TestClient, seeded_day: Session, auth_headers: dict
    ):
        data = client.post(URL, json=_body(), headers=auth_headers).json()
        assert data["debug"]["summaryLengths"] == {"standard": 120, "xl": 240, "xxl": 300}
        assert data["summary_preview"]["xxl"].endswith("...")
        assert len(data["summary_preview"]["standard"]) <= 203

        row = _summary_rows(seeded_day)[0]
        assert len(row.summary_md.split()) == 120
        assert len(row.summary_xl_md.split()) == 240

    def test_second_call_is_skipped_without_rebilling(
        self, client: TestClient, seeded_day: Session, auth_headers: dict, fake_llm: FakeLLM
    ):
        client.post(URL, json=_body(), headers=auth_headers)
        first_text = _summary_rows(seeded_day)[0].summary_xxl_md

        response = client.post(URL, json=_body(), headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {
            "date": "2024-03-10",
            "status": "skipped",
            "reason": "already_exists",
        }
        assert len(fake_llm.calls) == 1
        assert _credits(seeded_day) == 8
        assert _summary_rows(seeded_day)[0].summary_xxl_md == first_text

    def test_force_update_recomputes_and_overwrites(
        self, client: TestClient, seeded_day: Session, auth_headers: dict, fake_llm: FakeLLM
    ):
        client.post(URL, json=_body(), headers=auth_headers)
        fake_llm.content = "Neuer Text für den Tag."

        response = client.post(URL, json=_body(forceUpdate=True), headers=auth_headers)
        assert response.json()["status"] == "success"
        assert len(fake_llm.calls) == 2

        rows = _summary_rows(seeded_day)
        assert len(rows) == 1
        assert rows[0].summary_xxl_md == "Neuer Text für den Tag."
        assert seeded_day.query(models.TokenSpend).count() == 1

    def test_no_data_is_skipped_and_nothing_written(
        self, client: TestClient, test_db: Session, auth_headers: dict, fake_llm: FakeLLM
    ):
        response = client.post(URL, json=_body(), headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"date": "2024-03-10", "status": "skipped", "reason": "no_data"}
        assert _summary_rows(test_db) == []
        assert test_db.query(models.TokenSpend).count() == 0
        assert fake_llm.calls == []

    def test_no_text_header_skips_llm(
        self, client: TestClient, seeded_day: Session, auth_headers: dict, fake_llm: FakeLLM
    ):
        headers = {**auth_headers, "x-no-text": "true"}
        data = client.post(URL, json=_body(), headers=headers).json()

        assert data["status"] == "success"
        assert data["tokens_used"] == 0
        assert data["credits_used"] == 0
        assert data["summary_xxl_full"] == ""
        assert data["debug"]["textStatus"] == "skipped"
        assert fake_llm.calls == []
        assert _credits(seeded_day) == 10

        row = _summary_rows(seeded_day)[0]
        assert row.summary_md == "" and row.summary_xl_md == "" and row.summary_xxl_md == ""
        assert row.text_generated is False

        # A text-less row does not block the narrative on the next normal call
        again = client.post(URL, json=_body(), headers=auth_headers).json()
        assert again["status"] == "success"
        assert again["summary_xxl_full"] == fake_llm.content
        assert len(fake_llm.calls) == 1
        assert _credits(seeded_day) == 8

    def test_llm_failure_falls_back(
        self, client: TestClient, seeded_day: Session, auth_headers: dict, fake_llm: FakeLLM
    ):
        fake_llm.error = RuntimeError("OpenAI API error: 503")

        response = client.post(URL, json=_body(), headers=auth_headers)
        assert response.status_code == 200
        data = response.json()

        assert data["status"] == "partial_error"
        assert data["tokens_used"] == 0
        assert data["credits_used"] == 0
        assert "Mara" in data["summary_xxl_full"]
        assert "2024-03-10" in data["summary_xxl_full"]
        assert _credits(seeded_day) == 10
        assert seeded_day.query(models.LlmUsageLog).count() == 0
        assert _summary_rows(seeded_day)[0].summary_xxl_md == data["summary_xxl_full"]

    def test_billing_failure_does_not_change_status(
        self, client: TestClient, test_db: Session, auth_headers: dict
    ):
        seed_day(test_db)
        test_db.query(models.UserCredits).delete()
        test_db.commit()

        data = client.post(URL, json=_body(), headers=auth_headers).json()
        assert data["status"] == "success"
        assert data["credits_used"] == 2

    def test_invalid_timezone_header_falls_back_to_profile(
        self, client: TestClient, seeded_day: Session, auth_headers: dict
    ):
        headers = {**auth_headers, "x-user-tz": "Mars/Olympus"}
        data = client.post(URL, json=_body(), headers=headers).json()
        assert data["debug"]["timezone"] == "Europe/Berlin"

    def test_timezone_header_is_used(
        self, client: TestClient, seeded_day: Session, auth_headers: dict
    ):
        headers = {**auth_headers, "x-user-tz": "America/New_York"}
        data = client.post(URL, json=_body(), headers=headers).json()
        assert data["structured_summary"]["meta"]["timezone"] == "America/New_York"

    def test_persistence_failure_returns_500(
        self, client: TestClient, seeded_day: Session, auth_headers: dict, mocker
    ):
        mocker.patch.object(DaySummaryService, "persist", side_effect=RuntimeError("db down"))

        response = client.post(URL, json=_body(), headers=auth_headers)
        assert response.status_code == 500
        assert response.json() == {"status": "error", "message": "db down"}


class TestDaySummaryValidation:
    """Request validation."""

    def test_missing_user_id(self, client: TestClient, service_headers: dict):
        response = client.post(URL, json={"date": "2024-03-10"}, headers=service_headers)
        assert response.status_code == 400
        data = response.json()
        assert isinstance(data["error"], str)
        assert data["code"] == "VALIDATION_ERROR"
        assert data["details"]["field"] == "userId"

    def test_missing_date(self, client: TestClient, auth_headers: dict):
        response = client.post(URL, json={"userId": USER_ID}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["details"]["field"] == "date"

    def test_malformed_date(self, client: TestClient, auth_headers: dict):
        response = client.post(URL, json=_body(date="10.03.2024"), headers=auth_headers)
        assert response.status_code == 400

    def test_impossible_date(self, client: TestClient, auth_headers: dict):
        response = client.post(URL, json=_body(date="2024-02-30"), headers=auth_headers)
        assert response.status_code == 400

    def test_wrong_body_types(self, client: TestClient, auth_headers: dict):
        response = client.post(URL, json=_body(forceUpdate={"a": 1}), headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestDaySummaryAuth:
    """Authentication and authorization."""

    def test_requires_token(self, client: TestClient):
        response = client.post(URL, json=_body())
        assert response.status_code == 401
        assert response.json()["code"] == "AUTHENTICATION_ERROR"

    def test_rejects_invalid_token(self, client: TestClient):
        headers = {"Authorization": "Bearer not-a-jwt"}
        response = client.post(URL, json=_body(), headers=headers)
        assert response.status_code == 401

    def test_rejects_other_users_token(self, client: TestClient, auth_headers: dict):
        response = client.post(URL, json=_body(userId=OTHER_USER_ID), headers=auth_headers)
        assert response.status_code == 403
        assert response.json()["code"] == "AUTHORIZATION_ERROR"

    def test_service_token_may_summarize_any_user(
        self, client: TestClient, seeded_day: Session, service_headers: dict
    ):
        response = client.post(URL, json=_body(), headers=service_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "success"


class TestCors:
    """Preflight and response headers."""

    def test_preflight_returns_204_mirroring_origin(self, client: TestClient):
        response = client.options(
            URL,
            headers={
                "Origin": "https://app.example.com",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert response.status_code == 204
        assert response.headers["access-control-allow-origin"] == "https://app.example.com"
        assert "x-user-tz" in response.headers["access-control-allow-headers"]
        assert "x-no-text" in response.headers["access-control-allow-headers"]

    def test_preflight_without_origin_allows_any(self, client: TestClient):
        response = client.options(URL)
        assert response.status_code == 204
        assert response.headers["access-control-allow-origin"] == "*"

    def test_responses_carry_cors_headers(self, client: TestClient):
        response = client.get("/health/live", headers={"Origin": "https://app.example.com"})
        assert response.headers["access-control-allow-origin"] == "https://app.example.com"


class TestGetDaySummary:
    """GET /api/day-summary/{user_id}/{date}."""

    def test_returns_stored_row(self, client: TestClient, seeded_day: Session, auth_headers: dict):
        client.post(URL, json=_body(), headers=auth_headers)

        response = client.get(f"{URL}/{USER_ID}/2024-03-10", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == USER_ID
        assert data["date"] == "2024-03-10"
        assert data["total_calories"] == 1800
        assert data["schema_version"] == "2025-08-v1"
        assert data["summary_struct_json"]["nutrition"]["totals"]["kcal"] == 1800

    def test_missing_row_is_404(self, client: TestClient, auth_headers: dict):
        response = client.get(f"{URL}/{USER_ID}/2024-03-11", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_other_user_is_forbidden(self, client: TestClient, auth_headers: dict):
        response = client.get(f"{URL}/{OTHER_USER_ID}/2024-03-10", headers=auth_headers)
        assert response.status_code == 403
