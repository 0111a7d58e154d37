"""
Company onboarding pipeline

Processes one company end to end:
    1. Load the company record
    2. Detect and validate its ATS feed
    3. Store the feed URL and platform (unless already set)
    4. Reconcile the feed's jobs, closing jobs no longer listed
    5. Fill stage/size if missing and time remains

The batch entry point (onboard_next) picks the next company without an
ats_url and, when no supported ATS exists, stores the "none" sentinel so
the company isn't picked again. A feed that times out or returns 5xx
leaves the company untouched so a later run retries it.
"""

import logging
from dataclasses import asdict, dataclass, field

from jobfeed.api.company_service import CompanyService
from jobfeed.api.job_service import JobReconciler
from jobfeed.enrichment.ats_detector import AtsDetector
from jobfeed.enrichment.company_profiles import lookup_company_profile
from jobfeed.exceptions import ClassifierError, ClassifierParseError
from jobfeed.extractors.llm_client import PerplexityClient
from jobfeed.models import NO_ATS_SENTINEL
from jobfeed.utils.budget import Budget

logger = logging.getLogger(__name__)

ONBOARD_CEILING_SECONDS = 8.5
BATCH_CEILING_SECONDS = 8.0


@dataclass
class OnboardResult:
    """Outcome of onboarding one company; status_code is set on failure"""

    company_id: int
    success: bool = False
    company_name: str = ""
    ats_platform: str = ""
    ats_url: str = ""
    jobs_fetched: int = 0
    jobs_created: int = 0
    jobs_updated: int = 0
    jobs_closed: int = 0
    company_enriched: bool = False
    ats_not_found: bool = False
    error: str | None = None
    status_code: int | None = None
    errors: list[dict] = field(default_factory=list)
    steps: list[str] = field(default_factory=list)
    runtime: str = "0ms"

    def to_dict(self) -> dict:
        body = asdict(self)
        return {k: v for k, v in body.items() if v is not None}


class OnboardPipeline:
    """Detect, store, reconcile and enrich, one company per call"""

    def __init__(
        self,
        companies: CompanyService,
        reconciler: JobReconciler,
        detector: AtsDetector,
        client: PerplexityClient | None = None,
    ):
        self.companies = companies
        self.reconciler = reconciler
        self.detector = detector
        self.client = client

    def find_next_unprocessed_company(self) -> tuple[dict | None, bool]:
        return self.companies.find_next_unprocessed_company()

    def onboard_company(self, company_id: int, budget: Budget | None = None) -> OnboardResult:
        """
        Run the full pipeline for one company

        Args:
            company_id: Company to onboard
            budget: Time box (default ONBOARD_CEILING_SECONDS)

        Returns:
            OnboardResult; ats_not_found is True when no supported ATS exists.
            A retryable feed failure is a 502 with nothing stored.
        """
        budget = budget or Budget(ONBOARD_CEILING_SECONDS)
        result = OnboardResult(company_id=company_id)

        company = self.companies.get_company(company_id)
        if not company:
            result.error = f"Company {company_id} not found"
            result.status_code = 404
            result.runtime = budget.runtime_ms()
            return result

        name = (company.get("name") or "").strip()
        result.company_name = name
        result.steps.append(f"Fetched company: {name}")
        if not name:
            result.error = "Company record has no name"
            result.status_code = 400
            result.runtime = budget.runtime_ms()
            return result

        # Step 2: detect
        stored_url = company.get("ats_url")
        existing_url = stored_url if stored_url and stored_url != NO_ATS_SENTINEL else None
        detection = self.detector.detect(
            name,
            website=company.get("website"),
            existing_url=existing_url or company.get("careers_url"),
        )
        result.steps.extend(detection.steps)

        feed_error = detection.feed.error if detection.feed else None
        if feed_error and feed_error.retryable:
            result.ats_platform = detection.ats_info.provider.value
            result.ats_url = detection.ats_info.api_url
            result.error = f"Feed validation failed ({feed_error.kind}): {feed_error}"
            result.status_code = 502
            result.runtime = budget.runtime_ms()
            logger.warning(f"Onboarding {name}: feed unreachable, will retry ({feed_error.kind})")
            return result

        if not detection.found:
            result.ats_not_found = True
            result.error = "Could not detect ATS platform (Greenhouse, Lever, or Ashby)"
            result.status_code = 404
            result.runtime = budget.runtime_ms()
            logger.info(f"Onboarding {name}: no supported ATS")
            return result

        info = detection.ats_info
        result.ats_platform = info.provider.value
        result.ats_url = info.api_url

        # Step 3: store
        if self.companies.set_ats_url_if_unset(company_id, info.api_url, info.provider.value):
            result.steps.append(f"Saved ATS platform {info.provider.value} and feed URL")
        else:
            result.steps.append("Company already had an ATS URL, left unchanged")

        # Step 4: reconcile
        jobs = detection.feed.jobs
        result.jobs_fetched = len(jobs)
        ingest = self.reconciler.reconcile_feed(
            company_id, jobs, close_missing=True, feed_url=info.api_url
        )
        result.jobs_created = ingest.created
        result.jobs_updated = ingest.updated
        result.jobs_closed = ingest.closed or 0
        result.errors = [e.model_dump() for e in ingest.errors]
        result.steps.append(
            f"Reconciled {len(jobs)} jobs: {ingest.created} new, {ingest.updated} updated, "
            f"{result.jobs_closed} closed"
        )

        # Step 5: enrich
        if not company.get("stage") or not company.get("size"):
            self._enrich_profile(company_id, name, budget, result)

        result.success = True
        result.runtime = budget.runtime_ms()
        logger.info(f"Onboarded {name}: {'; '.join(result.steps[-2:])}")
        return result

    def _enrich_profile(
        self, company_id: int, name: str, budget: Budget, result: OnboardResult
    ) -> None:
        if self.client is None:
            result.steps.append("Skipped company enrichment (no classifier configured)")
            return
        if budget.exhausted():
            result.steps.append("Skipped company enrichment (time budget reached)")
            return

        try:
            profile = lookup_company_profile(self.client, name)
        except (ClassifierError, ClassifierParseError) as e:
            logger.warning(f"Company enrichment failed for {name}: {e}")
            result.steps.append(f"Company enrichment failed: {e}")
            return

        written = self.companies.fill_empty_fields(
            company_id, {k: v for k, v in profile.items() if v}
        )
        if written:
            result.company_enriched = True
            result.steps.append(f"Enriched company: {', '.join(written)}")

    def onboard_next(self, budget: Budget | None = None) -> dict:
        """
        Onboard the next company without an ats_url

        Returns:
            Response dict with the OnboardResult fields plus hasMore
        """
        budget = budget or Budget(BATCH_CEILING_SECONDS)
        company, has_more = self.find_next_unprocessed_company()
        if not company:
            return {
                "success": True,
                "hasMore": False,
                "message": "All companies have been processed. Nothing left to onboard.",
                "runtime": budget.runtime_ms(),
            }

        result = self.onboard_company(company["id"], budget)
        if result.ats_not_found:
            self.companies.mark_no_ats(company["id"])
            result.steps.append(f'Marked company ats_url = "{NO_ATS_SENTINEL}" (no supported ATS)')

        body = result.to_dict()
        if result.status_code == 502:
            # The company stays unprocessed, so the next call would pick it again
            body["hasMore"] = False
            body["message"] = (
                f'Feed for "{result.company_name}" is unreachable. '
                "Left unprocessed for the next run."
            )
            return body

        body["hasMore"] = has_more
        body["message"] = (
            f'Processed "{result.company_name}". More companies remaining, call again to continue.'
            if has_more
            else f'Processed "{result.company_name}". This was the last unprocessed company.'
        )
        return body
