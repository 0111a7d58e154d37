"""
Company profile agent - fill missing funding stage and headcount bucket
"""

import logging
from collections.abc import Callable

from jobfeed.api.company_service import CompanyService
from jobfeed.enrichment.base_agent import EnrichmentAgent, ItemOutcome
from jobfeed.extractors.llm_client import PerplexityClient
from jobfeed.extractors.response_parser import parse_company_profile

logger = logging.getLogger(__name__)

COMPANY_SYSTEM_PROMPT = (
    "You are a concise research assistant. "
    "Return ONLY a JSON object, no markdown, no explanation."
)


def lookup_company_profile(client: PerplexityClient, company_name: str) -> dict:
    """
    Ask the classifier for stage and size buckets

    Returns:
        {"stage": str | None, "size": str | None}

    Raises:
        ClassifierError, ClassifierParseError
    """
    raw = client.complete(
        COMPANY_SYSTEM_PROMPT,
        f"What is the funding stage and approximate employee count for {company_name}? "
        f'Return a short JSON object like: {{"funding_stage": "...", "employee_count": "..."}}. '
        f"Be concise.",
        max_tokens=150,
    )
    return parse_company_profile(raw)


class CompanyProfileAgent(EnrichmentAgent):
    """Writes stage/size into companies where those fields are empty"""

    name = "companies"
    batch_size = 15
    delay_seconds = 1.0
    ceiling_seconds = 8.0

    def __init__(
        self,
        companies: CompanyService,
        client: PerplexityClient,
        sleep: Callable[[float], None] | None = None,
    ):
        super().__init__(sleep)
        self.companies = companies
        self.client = client

    def select(self, limit: int, after_id: int) -> list[dict]:
        return self.companies.get_companies_missing_profile(limit, after_id)

    def process(self, record: dict) -> ItemOutcome:
        profile = lookup_company_profile(self.client, record["name"])
        fields = {k: v for k, v in profile.items() if v}
        if not fields:
            return ItemOutcome(status="no usable stage or size")

        written = self.companies.fill_empty_fields(record["id"], fields)
        if not written:
            return ItemOutcome(status="already filled")

        return ItemOutcome(
            status="updated",
            updated=True,
            fields={column: fields[column] for column in written},
        )
