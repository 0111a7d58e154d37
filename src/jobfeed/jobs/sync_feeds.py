"""
Feed sync - refresh jobs for companies that already have a feed URL

Walks companies with a concrete ats_url in id order, a few per call,
fetching each feed and reconciling it with close-missing enabled. A feed
that fails to fetch is reported and skipped; its jobs are left untouched.
"""

import logging
import time
from collections.abc import Callable

from jobfeed.api.company_service import CompanyService
from jobfeed.api.job_service import JobReconciler
from jobfeed.models import FeedResult
from jobfeed.parsers.ats_feeds import fetch_feed
from jobfeed.utils.budget import Budget

logger = logging.getLogger(__name__)

SYNC_CEILING_SECONDS = 8.0
SYNC_BATCH_SIZE = 5
SYNC_DELAY_SECONDS = 0.2


class FeedSync:
    """Re-fetches known feeds and reconciles them"""

    def __init__(
        self,
        companies: CompanyService,
        reconciler: JobReconciler,
        fetch: Callable[[str], FeedResult] = fetch_feed,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.companies = companies
        self.reconciler = reconciler
        self.fetch = fetch
        self.sleep = sleep

    def sync_feeds(
        self,
        budget: Budget | None = None,
        offset: int = 0,
        batch_size: int = SYNC_BATCH_SIZE,
    ) -> dict:
        """
        Sync one page of companies

        Args:
            budget: Time box (default SYNC_CEILING_SECONDS)
            offset: Companies to skip (from a previous call's nextOffset)
            batch_size: Companies per call

        Returns:
            {success, processed, created, updated, closed, errors, details,
             hasMore, nextOffset, runtime}
        """
        budget = budget or Budget(SYNC_CEILING_SECONDS)
        total = self.companies.count_companies_with_feeds()
        companies = self.companies.get_companies_with_feeds(offset, batch_size)

        summary = {
            "success": True,
            "processed": 0,
            "created": 0,
            "updated": 0,
            "closed": 0,
            "errors": [],
            "details": [],
        }

        stopped_early = False
        for position, company in enumerate(companies):
            if budget.exhausted():
                stopped_early = True
                break
            if position > 0:
                self.sleep(SYNC_DELAY_SECONDS)

            summary["processed"] += 1
            feed = self.fetch(company["ats_url"])
            if not feed.ok:
                logger.warning(
                    f"Sync {company['name']}: feed error {feed.error.kind}: {feed.error}"
                )
                summary["errors"].append(
                    {"company_id": company["id"], "name": company["name"], **feed.error.to_dict()}
                )
                continue

            result = self.reconciler.reconcile_feed(
                company["id"], feed.jobs, close_missing=True, feed_url=company["ats_url"]
            )
            summary["created"] += result.created
            summary["updated"] += result.updated
            summary["closed"] += result.closed or 0
            for error in result.errors:
                summary["errors"].append(
                    {"company_id": company["id"], "name": company["name"], **error.model_dump()}
                )
            summary["details"].append(
                {
                    "company_id": company["id"],
                    "name": company["name"],
                    "jobs": len(feed.jobs),
                    "created": result.created,
                    "updated": result.updated,
                    "closed": result.closed or 0,
                }
            )

        next_offset = offset + summary["processed"]
        summary["hasMore"] = stopped_early or next_offset < total
        summary["nextOffset"] = next_offset
        summary["runtime"] = budget.runtime_ms()
        logger.info(
            f"Synced {summary['processed']} companies: {summary['created']} new, "
            f"{summary['updated']} updated, {summary['closed']} closed, "
            f"{len(summary['errors'])} errors"
        )
        return summary
