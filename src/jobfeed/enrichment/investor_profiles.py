"""
Investor profile agent - fill missing investor bio and headquarters
"""

import logging
from collections.abc import Callable

from jobfeed.api.investor_service import InvestorService
from jobfeed.enrichment.base_agent import EnrichmentAgent, ItemOutcome
from jobfeed.extractors.llm_client import PerplexityClient
from jobfeed.extractors.response_parser import parse_investor_profile

logger = logging.getLogger(__name__)

INVESTOR_SYSTEM_PROMPT = (
    "You are a concise research assistant. "
    "Return ONLY a JSON object, no markdown, no explanation."
)


class InvestorProfileAgent(EnrichmentAgent):
    """Writes bio/location into investors where those fields are empty"""

    name = "investors"
    batch_size = 50
    delay_seconds = 0.3
    ceiling_seconds = 9.0

    def __init__(
        self,
        investors: InvestorService,
        client: PerplexityClient,
        sleep: Callable[[float], None] | None = None,
    ):
        super().__init__(sleep)
        self.investors = investors
        self.client = client

    def select(self, limit: int, after_id: int) -> list[dict]:
        return self.investors.get_investors_missing_profile(limit, after_id)

    def process(self, record: dict) -> ItemOutcome:
        name = record["name"]
        raw = self.client.complete(
            INVESTOR_SYSTEM_PROMPT,
            f'Give me a 1-2 sentence bio and the headquarters city for the venture capital '
            f'firm "{name}". Return JSON: {{"bio": "...", "location": "City, State"}}. '
            f"If you cannot find info, use empty strings.",
            max_tokens=200,
        )
        profile = parse_investor_profile(raw)

        if not profile["bio"] and not profile["location"]:
            return ItemOutcome(status="no data from classifier")

        written = self.investors.fill_empty_fields(record["id"], profile)
        if not written:
            return ItemOutcome(status="already filled")

        logger.debug(f"Investor {record['id']} {name}: filled {', '.join(written)}")
        return ItemOutcome(
            status="updated",
            updated=True,
            fields={column: profile[column] for column in written},
        )
