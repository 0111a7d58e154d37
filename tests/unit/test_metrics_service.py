"""
Tests for daily metrics ingestion
"""

from unittest.mock import patch

import pytest

from jobfeed.api.metrics_service import MetricsService, is_valid_metric_date


@pytest.fixture
def metrics_service(test_db_path) -> MetricsService:
    return MetricsService(test_db_path)


class TestMetricDate:
    @pytest.mark.parametrize("value", ["2025-03-01", "2024-02-29"])
    def test_valid(self, value):
        assert is_valid_metric_date(value)

    @pytest.mark.parametrize("value", ["2025-3-1", "2025-02-30", "yesterday", None, 20250301])
    def test_invalid(self, value):
        assert not is_valid_metric_date(value)


class TestIngestMetrics:
    def test_upsert_by_company_and_date(self, metrics_service, acme_id):
        metrics_service.ingest_metrics(
            "2025-03-01",
            [{"company_id": acme_id, "active_roles": 5, "roles_by_function": {"Engineering": 3}}],
        )

        result = metrics_service.ingest_metrics(
            "2025-03-01", [{"company_id": acme_id, "active_roles": 7, "new_roles": 2}]
        )

        assert result == {"inserted": 1, "errors": []}
        rows = metrics_service.get_metrics(acme_id)
        assert len(rows) == 1
        assert rows[0]["active_roles"] == 7
        assert rows[0]["new_roles"] == 2
        assert rows[0]["closed_roles"] == 0

    def test_roles_by_function_round_trips(self, metrics_service, acme_id):
        metrics_service.ingest_metrics(
            "2025-03-02", [{"company_id": acme_id, "roles_by_function": {"Sales": 4}}]
        )
        assert metrics_service.get_metrics(acme_id)[0]["roles_by_function"] == {"Sales": 4}

    def test_invalid_items_itemized(self, metrics_service, acme_id):
        result = metrics_service.ingest_metrics(
            "2025-03-01",
            [{"active_roles": 1}, {"company_id": acme_id, "active_roles": "many"}, {"company_id": acme_id}],
        )

        assert result["inserted"] == 1
        assert [e["index"] for e in result["errors"]] == [0, 1]
        assert result["errors"][0]["message"] == "company_id is required"

    def test_failed_chunk_reported_at_first_index(self, metrics_service, acme_id):
        result = metrics_service.ingest_metrics(
            "2025-03-01", [{"company_id": acme_id}, {"company_id": 31337}]
        )

        assert result["inserted"] == 0
        assert len(result["errors"]) == 1
        assert result["errors"][0]["index"] == 0

    @patch("jobfeed.api.metrics_service.WRITE_CHUNK_SIZE", 2)
    def test_chunks_fail_independently(self, metrics_service, acme_id):
        items = [{"company_id": acme_id}, {"company_id": acme_id}, {"company_id": 31337}]

        result = metrics_service.ingest_metrics("2025-03-03", items)

        assert result["inserted"] == 2
        assert [e["index"] for e in result["errors"]] == [2]
