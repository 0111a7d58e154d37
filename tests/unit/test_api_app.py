"""
Tests for the Flask API

Uses the Flask test client against a temporary database. The classifier
client is injected through client_factory; feed HTTP calls are patched at
requests.get.
"""

import hmac
from unittest.mock import MagicMock, patch

import pytest

from jobfeed import __version__
from jobfeed.api.app import create_app
from jobfeed.config import Settings
from jobfeed.utils.rate_limiter import InMemoryRateLimiter

API_KEY = "test-ingest-key"
AUTH = {"Authorization": f"Bearer {API_KEY}"}
FEED_URL = "https://boards-api.greenhouse.io/v1/boards/acme/jobs"


@pytest.fixture
def settings(test_db_path) -> Settings:
    return Settings(database_path=test_db_path, ingest_api_key=API_KEY)


@pytest.fixture
def mock_client():
    return MagicMock()


@pytest.fixture
def app(settings, mock_client):
    app = create_app(settings, client_factory=MagicMock(return_value=mock_client))
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def acme(client) -> int:
    client.post("/api/ingest/companies", json={"companies": [{"name": "Acme Corp"}]}, headers=AUTH)
    return client.application.extensions["jobfeed.services"].companies.get_company_by_slug(
        "acme-corp"
    )["id"]


class TestHealth:
    def test_home(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "ok"
        assert data["version"] == __version__
        assert "POST /api/ingest/jobs" in data["endpoints"]


class TestIngestAuth:
    def test_missing_server_key(self, test_db_path):
        app = create_app(Settings(database_path=test_db_path))

        response = app.test_client().post("/api/ingest/companies", json={"companies": []})

        assert response.status_code == 500
        assert response.get_json() == {"error": "Server misconfigured"}

    @pytest.mark.parametrize(
        "headers", [{}, {"Authorization": "Bearer wrong"}, {"Authorization": API_KEY}]
    )
    def test_bad_token(self, client, headers):
        response = client.post("/api/ingest/companies", json={"companies": []}, headers=headers)

        assert response.status_code == 401
        assert response.get_json() == {"error": "Unauthorized"}

    @patch("jobfeed.api.app.hmac.compare_digest", wraps=hmac.compare_digest)
    def test_token_compared_in_constant_time(self, mock_compare, client):
        headers = {"Authorization": "Bearer test"}

        response = client.post("/api/ingest/companies", json={"companies": []}, headers=headers)

        assert response.status_code == 401
        mock_compare.assert_called_once_with(b"test", API_KEY.encode("utf-8"))

    def test_rate_limited(self, settings):
        app = create_app(settings, rate_limiter=InMemoryRateLimiter(limit=1, window_seconds=60))
        client = app.test_client()

        first = client.post("/api/ingest/companies", json={"companies": []}, headers=AUTH)
        second = client.post("/api/ingest/companies", json={"companies": []}, headers=AUTH)

        assert first.status_code == 200
        assert second.status_code == 429
        assert second.get_json() == {"error": "Too many requests"}
        assert int(second.headers["Retry-After"]) >= 1


class TestIngestEndpoints:
    def test_invalid_json(self, client):
        response = client.post(
            "/api/ingest/jobs", data="{not json", content_type="application/json", headers=AUTH
        )

        assert response.status_code == 400
        assert response.get_json() == {"error": "Invalid JSON body"}

    def test_missing_array(self, client):
        response = client.post("/api/ingest/jobs", json={"jobs": "nope"}, headers=AUTH)

        assert response.status_code == 400
        assert response.get_json() == {"error": '"jobs" must be an array'}

    def test_companies(self, client):
        response = client.post(
            "/api/ingest/companies",
            json={"companies": [{"name": "Acme Corp"}, {"website": "x"}]},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.get_json() == {
            "created": 1,
            "updated": 0,
            "errors": [{"index": 1, "message": "name is required"}],
        }

    def test_jobs_with_close_missing(self, client, acme):
        jobs = [
            {"company_id": acme, "ats_job_id": "1", "title": "Engineer"},
            {"company_id": acme, "ats_job_id": "2", "title": "Designer"},
        ]
        client.post("/api/ingest/jobs", json={"jobs": jobs}, headers=AUTH)

        response = client.post(
            "/api/ingest/jobs",
            json={"jobs": jobs[:1], "close_missing_for_companies": [acme, "bogus"]},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.get_json() == {"created": 0, "updated": 1, "closed": 1, "errors": []}

    def test_investors_and_fundraises(self, client, acme):
        response = client.post(
            "/api/ingest/investors",
            json={"investors": [{"name": "Accel", "portfolio_company_ids": [acme]}]},
            headers=AUTH,
        )
        assert response.get_json()["created"] == 1

        response = client.post(
            "/api/ingest/fundraises",
            json={"fundraises": [{"company_id": acme, "round_type": "Seed", "amount": 2e6}]},
            headers=AUTH,
        )
        assert response.get_json() == {"created": 1, "updated": 0, "errors": []}

    def test_metrics(self, client, acme):
        response = client.post(
            "/api/ingest/metrics",
            json={"date": "2025-03-01", "metrics": [{"company_id": acme, "active_roles": 3}]},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.get_json() == {"inserted": 1, "errors": []}

    @pytest.mark.parametrize("bad_date", [None, "03/01/2025", "2025-02-30"])
    def test_metrics_bad_date(self, client, bad_date):
        response = client.post(
            "/api/ingest/metrics", json={"date": bad_date, "metrics": []}, headers=AUTH
        )

        assert response.status_code == 400
        assert response.get_json() == {
            "inserted": 0,
            "errors": [{"index": -1, "message": '"date" must be YYYY-MM-DD'}],
        }


class TestBatchEndpoints:
    def test_sync_secret_required_when_set(self, test_db_path):
        settings = Settings(database_path=test_db_path, sync_secret="cron-secret")
        client = create_app(settings).test_client()

        assert client.get("/api/backfill-dates").status_code == 401
        assert client.get("/api/backfill-dates?secret=wrong").status_code == 401
        assert client.get("/api/backfill-dates?secret=cron-secret").status_code == 200

    def test_missing_classifier_key(self, test_db_path):
        client = create_app(Settings(database_path=test_db_path)).test_client()

        response = client.get("/api/backfill-functions")

        assert response.status_code == 500
        assert response.get_json() == {
            "success": False,
            "error": "PERPLEXITY_API_KEY not configured",
        }

    def test_onboard_company_invalid_id(self, client):
        response = client.get("/api/onboard-company?id=abc")
        assert response.status_code == 400

    def test_onboard_company_not_found(self, client):
        response = client.get("/api/onboard-company?id=9999")

        assert response.status_code == 404
        assert response.get_json()["error"] == "Company 9999 not found"

    @patch("jobfeed.parsers.ats_feeds.requests.get")
    def test_onboard_company(self, mock_get, client, acme, mock_client, greenhouse_feed, make_response):
        mock_client.complete.side_effect = [
            FEED_URL,
            '{"funding_stage": "Seed", "employee_count": 12}',
        ]
        mock_get.return_value = make_response(200, greenhouse_feed)

        response = client.get(f"/api/onboard-company?id={acme}")

        assert response.status_code == 200
        data = response.get_json()
        assert data["success"] is True
        assert data["ats_platform"] == "greenhouse"
        assert data["jobs_created"] == 2
        mock_get.assert_called_once()
        assert mock_get.call_args.args[0] == FEED_URL

    def test_onboard_batch_nothing_left(self, client):
        response = client.get("/api/onboard-batch")

        assert response.status_code == 200
        assert response.get_json()["hasMore"] is False

    def test_sync_jobs_empty(self, client):
        response = client.get("/api/sync-jobs?offset=-3")

        assert response.status_code == 200
        data = response.get_json()
        assert data["processed"] == 0
        assert data["nextOffset"] == 0
        assert data["hasMore"] is False

    def test_backfill_functions(self, client, acme, mock_client):
        client.post(
            "/api/ingest/jobs",
            json={"jobs": [{"company_id": acme, "ats_job_id": "1", "title": "Chief of Staff"}]},
            headers=AUTH,
        )
        mock_client.complete.return_value = "Operations"

        response = client.get("/api/backfill-functions")

        data = response.get_json()
        assert data["agent"] == "functions"
        assert data["updated"] == 1
        assert data["hasMore"] is False
        assert data["details"][0]["function"] == "Operations"

    def test_backfill_dates_after_param(self, client):
        data = client.get("/api/backfill-dates?after=abc").get_json()

        assert data["success"] is True
        assert data["message"] == "Nothing to do"
        assert data["nextAfter"] == 0

    def test_enrich_investors_nothing_to_do(self, client):
        data = client.get("/api/enrich-investors").get_json()
        assert data["processed"] == 0

    def test_enrich_companies(self, client, acme, mock_client):
        mock_client.complete.return_value = '{"funding_stage": "Series A", "employee_count": 40}'

        data = client.get("/api/enrich-companies").get_json()

        assert data["updated"] == 1
        assert data["details"][0]["stage"] == "Early Stage"
