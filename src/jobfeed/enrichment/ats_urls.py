"""
ATS URL agent - find and store feed URLs for companies without one
"""

import logging
from collections.abc import Callable

from jobfeed.api.company_service import CompanyService
from jobfeed.enrichment.ats_detector import AtsDetector
from jobfeed.enrichment.base_agent import EnrichmentAgent, ItemOutcome

logger = logging.getLogger(__name__)


class AtsUrlAgent(EnrichmentAgent):
    """
    Runs the detector for companies with an empty ats_url

    Only validated feeds are written. A company whose feed can't be found
    is left empty here; the onboarding batch is what marks it "none".
    """

    name = "ats-urls"
    batch_size = 15
    delay_seconds = 1.5
    ceiling_seconds = 50.0

    def __init__(
        self,
        companies: CompanyService,
        detector: AtsDetector,
        sleep: Callable[[float], None] | None = None,
    ):
        super().__init__(sleep)
        self.companies = companies
        self.detector = detector

    def select(self, limit: int, after_id: int) -> list[dict]:
        return self.companies.get_companies_missing_ats_url(limit, after_id)

    def process(self, record: dict) -> ItemOutcome:
        detection = self.detector.detect(
            record["name"],
            website=record.get("website"),
            existing_url=record.get("careers_url"),
        )
        if not detection.found:
            return ItemOutcome(status=detection.steps[-1] if detection.steps else "not found")

        info = detection.ats_info
        if not self.companies.set_ats_url_if_unset(record["id"], info.api_url, info.provider.value):
            return ItemOutcome(status="already set", fields={"ats_url": info.api_url})

        logger.info(f"Company {record['id']} {record['name']}: {info.api_url}")
        return ItemOutcome(
            status="found",
            updated=True,
            fields={"ats_url": info.api_url, "ats_platform": info.provider.value},
        )
