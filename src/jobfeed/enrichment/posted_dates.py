"""
Posted date backfill - recover posted dates from stored raw feed JSON

No classifier involved. The best date per provider:
    Ashby       publishedAt
    Lever       createdAt (millisecond epoch)
    Greenhouse  first_published, else when we first stored the job
"""

import json
import logging

from jobfeed.database import JobFeedDatabase
from jobfeed.enrichment.base_agent import EnrichmentAgent, ItemOutcome
from jobfeed.parsers.ats_feeds import epoch_ms_to_date

logger = logging.getLogger(__name__)


def best_posted_date(raw: dict, stored_at: str | None) -> str | None:
    """YYYY-MM-DD from the most trustworthy field available"""
    if raw.get("publishedAt"):
        return str(raw["publishedAt"]).split("T")[0]

    created = raw.get("createdAt")
    if isinstance(created, (int, float)) and not isinstance(created, bool):
        posted = epoch_ms_to_date(created)
        if posted:
            return posted

    if raw.get("first_published"):
        return str(raw["first_published"]).split("T")[0]

    if stored_at:
        return stored_at.split("T")[0]

    return None


class PostedDateBackfill(EnrichmentAgent):
    """Fills jobs.posted_date for jobs that kept their raw JSON"""

    name = "dates"
    batch_size = 100
    delay_seconds = 0
    ceiling_seconds = 8.0

    def __init__(self, db: JobFeedDatabase):
        super().__init__()
        self.db = db

    def select(self, limit: int, after_id: int) -> list[dict]:
        return self.db.get_jobs_missing_posted_date(limit, after_id)

    def describe(self, record: dict) -> str:
        return f"job {record['id']}"

    def process(self, record: dict) -> ItemOutcome:
        try:
            raw = json.loads(record["raw_json"])
        except ValueError:
            return ItemOutcome(status="invalid raw JSON")
        if not isinstance(raw, dict):
            return ItemOutcome(status="invalid raw JSON")

        posted = best_posted_date(raw, record.get("created_at"))
        if not posted:
            return ItemOutcome(status="no date available")

        if not self.db.fill_job_field(record["id"], "posted_date", posted):
            return ItemOutcome(status="already filled")
        return ItemOutcome(status="updated", updated=True, fields={"posted_date": posted})
