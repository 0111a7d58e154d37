"""
Tests for the enrichment agents

Agents run against a real temporary database with the classifier mocked.
Sleep is injected so tests never wait.
"""

import json
from unittest.mock import MagicMock

import pytest

from jobfeed.api.investor_service import InvestorService
from jobfeed.enrichment import (
    AgentRunResult,
    AtsUrlAgent,
    CompanyProfileAgent,
    Detection,
    EnrichmentAgent,
    FunctionClassifierAgent,
    InvestorProfileAgent,
    PostedDateBackfill,
)
from jobfeed.enrichment.posted_dates import best_posted_date
from jobfeed.exceptions import ClassifierError
from jobfeed.models import NO_ATS_SENTINEL, AtsInfo, Provider
from jobfeed.utils.budget import Budget


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def mock_client():
    return MagicMock()


@pytest.fixture
def mock_sleep():
    return MagicMock()


@pytest.fixture
def unclassified_jobs(reconciler, acme_id) -> list[int]:
    """Three jobs with titles but no function"""
    reconciler.reconcile(
        [
            {"company_id": acme_id, "ats_job_id": "1", "title": "Chief of Staff"},
            {"company_id": acme_id, "ats_job_id": "2", "title": "Founding Generalist"},
            {"company_id": acme_id, "ats_job_id": "3", "title": "Wrangler"},
        ]
    )
    return [job["id"] for job in reconciler.db.get_jobs_for_company(acme_id)]


class TestBaseAgent:
    def test_abstract_methods(self):
        agent = EnrichmentAgent()
        with pytest.raises(NotImplementedError):
            agent.select(10, 0)
        with pytest.raises(NotImplementedError):
            agent.process({"id": 1})

    def test_result_shape(self):
        body = AgentRunResult(agent="x", has_more=True, next_after=7).to_dict()

        assert body["success"] is True
        assert body["hasMore"] is True
        assert body["nextAfter"] == 7
        assert "message" not in body


class TestFunctionClassifierAgent:
    def test_classifies_and_sleeps_between_calls(
        self, test_db, unclassified_jobs, mock_client, mock_sleep
    ):
        mock_client.complete.return_value = "Operations"
        agent = FunctionClassifierAgent(test_db, mock_client, sleep=mock_sleep)

        result = agent.run()

        assert result.processed == 3
        assert result.updated == 3
        assert result.has_more is False
        assert result.next_after == unclassified_jobs[-1]
        assert mock_sleep.call_count == 2
        mock_sleep.assert_called_with(2.0)
        assert test_db.get_job(unclassified_jobs[0])["function"] == "Operations"

    def test_unparseable_answer_leaves_field_empty(
        self, test_db, unclassified_jobs, mock_client, mock_sleep
    ):
        mock_client.complete.return_value = "I'm not sure, could be anything"
        agent = FunctionClassifierAgent(test_db, mock_client, sleep=mock_sleep)

        result = agent.run()

        assert result.updated == 0
        assert result.skipped == 3
        assert result.details[0]["status"].startswith("parse:")
        assert test_db.get_job(unclassified_jobs[0])["function"] is None

    def test_cursor_skips_unenrichable_records(
        self, test_db, unclassified_jobs, mock_client, mock_sleep
    ):
        mock_client.complete.return_value = "???"
        agent = FunctionClassifierAgent(test_db, mock_client, sleep=mock_sleep)

        first = agent.run()
        second = agent.run(after_id=first.next_after)

        assert first.processed == 3
        assert second.processed == 0
        assert second.message == "Nothing to do"
        assert second.has_more is False

    def test_full_batch_reports_has_more(
        self, test_db, unclassified_jobs, mock_client, mock_sleep
    ):
        mock_client.complete.return_value = "Operations"
        agent = FunctionClassifierAgent(test_db, mock_client, sleep=mock_sleep)
        agent.batch_size = 2

        first = agent.run()
        second = agent.run(after_id=first.next_after)

        assert (first.processed, first.has_more) == (2, True)
        assert (second.processed, second.has_more) == (1, False)

    def test_budget_stops_run_early(self, test_db, unclassified_jobs, mock_client, mock_sleep):
        clock = FakeClock()

        def slow_answer(*args, **kwargs):
            clock.now += 5
            return "Operations"

        mock_client.complete.side_effect = slow_answer
        agent = FunctionClassifierAgent(test_db, mock_client, sleep=mock_sleep)

        result = agent.run(budget=Budget(8.0, clock=clock))

        assert result.processed == 2
        assert result.has_more is True
        assert result.next_after == unclassified_jobs[1]

    def test_classifier_error_counted(self, test_db, unclassified_jobs, mock_client, mock_sleep):
        mock_client.complete.side_effect = [ClassifierError("timeout"), "Operations", "Operations"]
        agent = FunctionClassifierAgent(test_db, mock_client, sleep=mock_sleep)

        result = agent.run()

        assert result.errors == 1
        assert result.updated == 2
        assert result.details[0]["status"] == "error: timeout"

    def test_fuzzy_category_accepted(self, test_db, unclassified_jobs, mock_client, mock_sleep):
        mock_client.complete.return_value = "**Operation**"
        agent = FunctionClassifierAgent(test_db, mock_client, sleep=mock_sleep)

        agent.run()

        assert test_db.get_job(unclassified_jobs[0])["function"] == "Operations"


class TestCompanyProfileAgent:
    def test_fills_only_empty_fields(self, company_service, mock_client, mock_sleep):
        company_service.ingest_companies([{"name": "Acme", "stage": "Seed"}])
        mock_client.complete.return_value = (
            '{"funding_stage": "Series C", "employee_count": "201-500"}'
        )
        agent = CompanyProfileAgent(company_service, mock_client, sleep=mock_sleep)

        result = agent.run()

        assert result.updated == 1
        assert result.details[0]["size"] == "201-1000"
        company = company_service.get_company_by_slug("acme")
        assert company["stage"] == "Seed"
        assert company["size"] == "201-1000"

    def test_no_usable_values(self, company_service, mock_client, mock_sleep):
        company_service.ingest_companies([{"name": "Acme"}])
        mock_client.complete.return_value = '{"funding_stage": "unknown", "employee_count": ""}'
        agent = CompanyProfileAgent(company_service, mock_client, sleep=mock_sleep)

        result = agent.run()

        assert result.skipped == 1
        assert result.details[0]["status"] == "no usable stage or size"


class TestInvestorProfileAgent:
    @pytest.fixture
    def investors(self, test_db_path):
        service = InvestorService(test_db_path)
        service.ingest_investors([{"name": "Accel", "location": "Palo Alto, CA"}])
        return service

    def test_fills_bio_keeps_location(self, investors, mock_client, mock_sleep):
        mock_client.complete.return_value = (
            '```json\n{"bio": "Early and growth stage VC.", "location": "London"}\n```'
        )
        agent = InvestorProfileAgent(investors, mock_client, sleep=mock_sleep)

        result = agent.run()

        assert result.updated == 1
        assert result.details[0]["bio"] == "Early and growth stage VC."
        investor_id = result.details[0]["id"]
        assert investors.get_investor(investor_id)["location"] == "Palo Alto, CA"

    def test_empty_answer_skipped(self, investors, mock_client, mock_sleep):
        mock_client.complete.return_value = '{"bio": "", "location": ""}'
        agent = InvestorProfileAgent(investors, mock_client, sleep=mock_sleep)

        result = agent.run()

        assert result.skipped == 1
        assert result.details[0]["status"] == "no data from classifier"


class TestAtsUrlAgent:
    def test_stores_validated_feed(self, company_service, acme_id, mock_sleep):
        detector = MagicMock()
        detector.detect.return_value = Detection(
            found=True,
            ats_info=AtsInfo(
                Provider.ASHBY, "acme", "https://api.ashbyhq.com/posting-api/job-board/acme"
            ),
        )
        agent = AtsUrlAgent(company_service, detector, sleep=mock_sleep)

        result = agent.run()

        assert result.updated == 1
        company = company_service.get_company(acme_id)
        assert company["ats_url"] == "https://api.ashbyhq.com/posting-api/job-board/acme"
        assert company["ats_platform"] == "ashby"
        detector.detect.assert_called_once_with(
            "Acme Corp", website="https://acme.example", existing_url=None
        )

    def test_not_found_is_left_empty(self, company_service, acme_id, mock_sleep):
        detector = MagicMock()
        detector.detect.return_value = Detection(found=False, steps=["ATS not found"])
        agent = AtsUrlAgent(company_service, detector, sleep=mock_sleep)

        result = agent.run()

        assert result.skipped == 1
        assert result.details[0]["status"] == "ATS not found"
        assert company_service.get_company(acme_id)["ats_url"] in (None, "")
        assert company_service.get_company(acme_id)["ats_url"] != NO_ATS_SENTINEL


class TestPostedDateBackfill:
    def test_best_posted_date_order(self):
        assert best_posted_date({"publishedAt": "2025-02-14T12:00:00Z"}, None) == "2025-02-14"
        assert best_posted_date({"createdAt": 1735689600000}, None) == "2025-01-01"
        assert best_posted_date({"first_published": "2024-12-01T00:00:00Z"}, None) == "2024-12-01"
        assert best_posted_date({}, "2025-03-09T08:00:00+00:00") == "2025-03-09"
        assert best_posted_date({}, None) is None

    def test_backfills_from_raw_json(self, reconciler, acme_id, test_db):
        reconciler.reconcile(
            [
                {"company_id": acme_id, "ats_job_id": "l1", "title": "A",
                 "raw_json": json.dumps({"createdAt": 1735689600000})},
                {"company_id": acme_id, "ats_job_id": "a1", "title": "B",
                 "raw_json": json.dumps({"publishedAt": "2025-02-14T12:00:00Z"})},
                {"company_id": acme_id, "ats_job_id": "x1", "title": "C", "raw_json": "not json"},
                {"company_id": acme_id, "ats_job_id": "p1", "title": "D", "posted_date": "2020-01-01",
                 "raw_json": json.dumps({"publishedAt": "2025-01-01"})},
            ]
        )  # fmt: skip

        result = PostedDateBackfill(test_db).run()

        assert result.processed == 3
        assert result.updated == 2
        dates = {j["ats_job_id"]: j["posted_date"] for j in test_db.get_jobs_for_company(acme_id)}
        assert dates == {"l1": "2025-01-01", "a1": "2025-02-14", "x1": None, "p1": "2020-01-01"}

    def test_out_of_range_created_at_falls_back(self):
        stored_at = "2025-03-09T08:00:00+00:00"
        assert best_posted_date({"createdAt": 10**17}, stored_at) == "2025-03-09"
        assert best_posted_date({"createdAt": 10**17}, None) is None

    def test_out_of_range_timestamp_does_not_abort_run(self, reconciler, acme_id, test_db):
        reconciler.reconcile(
            [
                {"company_id": acme_id, "ats_job_id": "big", "title": "A",
                 "raw_json": json.dumps({"createdAt": 10**17})},
                {"company_id": acme_id, "ats_job_id": "ok", "title": "B",
                 "raw_json": json.dumps({"createdAt": 1735689600000})},
            ]
        )  # fmt: skip

        result = PostedDateBackfill(test_db).run()

        assert result.processed == 2
        assert result.updated == 2
        dates = {j["ats_job_id"]: j["posted_date"] for j in test_db.get_jobs_for_company(acme_id)}
        assert dates["ok"] == "2025-01-01"
        assert dates["big"] is not None
