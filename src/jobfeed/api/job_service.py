"""
Job reconciliation - merge job batches into the store

Turns a batch of job records (from the ingestion API or a normalized ATS
feed) into upserts keyed by (company_id, ats_job_id), and optionally
closes a company's active jobs that the batch no longer contains.

Reconciling the same batch twice leaves the store unchanged apart from
last_seen_at / updated_at timestamps.
"""

import logging
import sqlite3
from collections.abc import Iterable

from pydantic import ValidationError

from jobfeed.database import JobFeedDatabase
from jobfeed.models import IngestResult, JobPayload, NormalizedJob
from jobfeed.models.records import validation_message
from jobfeed.parsers.location_parser import remote_status
from jobfeed.utils.function_inference import infer_function

logger = logging.getLogger(__name__)


class JobReconciler:
    """Upserts jobs by natural key and closes jobs missing from a full feed"""

    def __init__(self, db_path: str = "data/jobfeed.db"):
        self.db = JobFeedDatabase(db_path)

    def reconcile(self, items: list, close_missing_for: Iterable[int] = ()) -> IngestResult:
        """
        Reconcile a batch of job records

        Each item is validated and written on its own; one bad item is
        reported in errors and never blocks the rest of the batch.

        Args:
            items: Job records (dicts or JobPayload)
            close_missing_for: Company ids whose batch is the complete set of
                open jobs; their active jobs with a provider id not seen in
                this batch are closed

        Returns:
            IngestResult with created, updated, closed (when requested) and errors
        """
        result = IngestResult()
        seen_by_company: dict[int, set[str]] = {}

        for index, item in enumerate(items):
            try:
                payload = item if isinstance(item, JobPayload) else JobPayload.model_validate(item)
            except ValidationError as e:
                result.add_error(index, validation_message(e))
                continue

            if payload.company_id is None or not (payload.title or "").strip():
                result.add_error(index, "company_id and title are required")
                continue

            company_id = payload.company_id
            ats_job_id = payload.ats_job_id

            if ats_job_id:
                seen_by_company.setdefault(company_id, set()).add(ats_job_id)

            fields = payload.model_dump(
                include=payload.model_fields_set - {"company_id", "ats_job_id"}
            )
            fields["title"] = payload.title.strip()
            # A job present in a batch is open unless the producer says otherwise
            if fields.get("status") is None:
                fields["status"] = "active"

            try:
                existed = bool(ats_job_id) and self.db.job_exists(company_id, ats_job_id)
                self.db.upsert_job(company_id, ats_job_id, fields)
            except sqlite3.Error as e:
                logger.warning(f"Job {index} for company {company_id} failed: {e}")
                result.add_error(index, str(e))
                continue

            if existed:
                result.updated += 1
            else:
                result.created += 1

        close_ids = list(dict.fromkeys(close_missing_for))
        if close_ids:
            result.closed = 0
            for company_id in close_ids:
                try:
                    result.closed += self.close_missing(
                        company_id, seen_by_company.get(company_id, set())
                    )
                except sqlite3.Error as e:
                    logger.error(f"close-missing failed for company {company_id}: {e}")
                    result.add_error(-1, f"close-missing for {company_id}: {e}")

        logger.info(
            f"Reconciled {len(items)} jobs: {result.created} created, {result.updated} updated, "
            f"{result.closed or 0} closed, {len(result.errors)} errors"
        )
        return result

    def close_missing(self, company_id: int, seen_ids: set[str]) -> int:
        """
        Close a company's active, provider-keyed jobs not in seen_ids

        Jobs without a provider id are never closed here since there is no
        key to compare them by.

        Returns:
            Number of jobs closed
        """
        active = self.db.get_active_keyed_jobs(company_id)
        stale = [job["id"] for job in active if job["ats_job_id"] not in seen_ids]
        if not stale:
            return 0

        closed = self.db.close_jobs(stale)
        logger.info(f"Company {company_id}: closed {closed} jobs no longer in feed")
        return closed

    def reconcile_feed(
        self,
        company_id: int,
        jobs: list[NormalizedJob],
        close_missing: bool = True,
        feed_url: str | None = None,
    ) -> IngestResult:
        """
        Reconcile normalized ATS jobs for one company

        The function is inferred from the title by keyword so most jobs
        arrive classified; the rest are left for the LLM classifier.

        Args:
            company_id: Owning company
            jobs: Output of the ATS adapter
            close_missing: Treat the feed as the complete open-job set
            feed_url: Stored as ats_url when a job has no posting URL

        Returns:
            IngestResult
        """
        functions = self.db.get_job_functions()
        items = [self.to_payload(company_id, job, functions, feed_url) for job in jobs]
        return self.reconcile(items, close_missing_for=[company_id] if close_missing else [])

    @staticmethod
    def to_payload(
        company_id: int,
        job: NormalizedJob,
        functions: list[str] | None = None,
        feed_url: str | None = None,
    ) -> JobPayload:
        """Map one normalized feed job onto the ingestion record shape"""
        values = {
            "company_id": company_id,
            "title": job.title,
            "ats_job_id": job.provider_job_id,
            "ats_url": job.job_url or feed_url,
            "apply_url": job.apply_url or None,
            "location": job.location or None,
            "country": job.country,
            "remote_status": remote_status(job.location, job.remote),
            "description": job.description or None,
            "salary": job.salary,
            "posted_date": job.posted_date,
            "raw_json": job.raw_json,
        }
        function = infer_function(job.title, functions)
        if function:
            values["function"] = function
        # Only set what the feed actually provided so a re-sync never erases stored values
        return JobPayload(**{k: v for k, v in values.items() if v is not None})
