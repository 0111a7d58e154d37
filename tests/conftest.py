"""
Pytest configuration for jobfeed tests.

Adds src/ to sys.path so tests import the jobfeed package without an
install, and points DATABASE_PATH at a temp file so nothing touches the
real database.
"""

import json
import os
import sys
import tempfile
from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock

import pytest

src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Ensure DATABASE_PATH is set for test isolation
if "DATABASE_PATH" not in os.environ:
    os.environ["DATABASE_PATH"] = str(Path(tempfile.gettempdir()) / "pytest_jobfeed.db")

from jobfeed.api.company_service import CompanyService  # noqa: E402
from jobfeed.api.job_service import JobReconciler  # noqa: E402
from jobfeed.database import JobFeedDatabase  # noqa: E402


@pytest.fixture(scope="function")
def test_db_path() -> Generator[str, None, None]:
    """
    Provides an isolated database path per test

    Yields:
        str: Path to a database file inside a temporary directory
    """
    with tempfile.TemporaryDirectory() as temp_dir:
        db_path = Path(temp_dir) / "test_jobfeed.db"
        old_path = os.environ.get("DATABASE_PATH")
        os.environ["DATABASE_PATH"] = str(db_path)

        try:
            yield str(db_path)
        finally:
            if old_path is None:
                os.environ.pop("DATABASE_PATH", None)
            else:
                os.environ["DATABASE_PATH"] = old_path


@pytest.fixture(scope="function")
def test_db(test_db_path) -> JobFeedDatabase:
    """Initialized database with the default job functions seeded"""
    return JobFeedDatabase(test_db_path)


@pytest.fixture
def company_service(test_db_path) -> CompanyService:
    return CompanyService(test_db_path)


@pytest.fixture
def reconciler(test_db_path) -> JobReconciler:
    return JobReconciler(test_db_path)


@pytest.fixture
def acme_id(company_service) -> int:
    """Id of a freshly ingested 'Acme Corp' company"""
    company_service.ingest_companies([{"name": "Acme Corp", "website": "https://acme.example"}])
    return company_service.get_company_by_slug("acme-corp")["id"]


# ----------------------------------------------------------------------
# Feed payload samples
# ----------------------------------------------------------------------


@pytest.fixture
def greenhouse_feed() -> dict:
    return {
        "jobs": [
            {
                "id": 4001,
                "title": "Senior Backend Engineer",
                "location": {"name": "San Francisco, CA"},
                "absolute_url": "https://job-boards.greenhouse.io/acme/jobs/4001",
                "updated_at": "2025-03-02T10:00:00-05:00",
                "content": "&lt;p&gt;Build &lt;strong&gt;APIs&lt;/strong&gt;&lt;/p&gt;",
                "pay": {"min_amount": 150000, "max_amount": 190000, "currency_type": "USD"},
            },
            {
                "id": 4002,
                "title": "Account Executive",
                "location": {"name": "Remote - US"},
                "absolute_url": "https://job-boards.greenhouse.io/acme/jobs/4002",
                "updated_at": "2025-03-05T09:00:00Z",
                "content": "",
            },
        ]
    }


@pytest.fixture
def lever_feed() -> list:
    return [
        {
            "id": "a1b2-c3",
            "text": "Product Designer",
            "categories": {"location": "London", "commitment": "Full-time"},
            "hostedUrl": "https://jobs.lever.co/acme/a1b2-c3",
            "applyUrl": "https://jobs.lever.co/acme/a1b2-c3/apply",
            "createdAt": 1735689600000,
            "descriptionPlain": "Design things.",
            "salaryRange": {"min": 80000, "max": 100000, "currency": "GBP"},
        }
    ]


@pytest.fixture
def ashby_feed() -> dict:
    return {
        "jobs": [
            {
                "id": "f7e6",
                "title": "Data Scientist",
                "location": "New York, NY",
                "isRemote": True,
                "jobUrl": "https://jobs.ashbyhq.com/acme/f7e6",
                "applyUrl": "https://jobs.ashbyhq.com/acme/f7e6/application",
                "publishedAt": "2025-02-14T12:00:00.000+00:00",
                "descriptionPlain": "Models.",
                "compensationTierSummary": "$140K - $170K",
            }
        ]
    }


def _make_response(status_code: int = 200, payload=None, text: str | None = None):
    response = MagicMock()
    response.status_code = status_code
    response.text = text if text is not None else json.dumps(payload)
    return response


@pytest.fixture
def make_response():
    """Factory for stand-ins of requests.Response with .status_code and .text"""
    return _make_response
