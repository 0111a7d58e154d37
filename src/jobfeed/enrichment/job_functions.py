"""
Function classifier - assign a job function to jobs that have none

The classifier answers with a single category name; the answer is only
accepted if it matches the job_functions vocabulary.
"""

import logging
from collections.abc import Callable

from jobfeed.database import JobFeedDatabase
from jobfeed.enrichment.base_agent import EnrichmentAgent, ItemOutcome
from jobfeed.extractors.llm_client import PerplexityClient
from jobfeed.extractors.response_parser import parse_category

logger = logging.getLogger(__name__)

FUNCTION_SYSTEM_PROMPT = (
    "You classify job titles into job functions. "
    "Respond with ONLY the category name, nothing else."
)


class FunctionClassifierAgent(EnrichmentAgent):
    """Fills jobs.function for titled jobs with an empty function"""

    name = "functions"
    batch_size = 20
    delay_seconds = 2.0
    ceiling_seconds = 55.0

    def __init__(
        self,
        db: JobFeedDatabase,
        client: PerplexityClient,
        sleep: Callable[[float], None] | None = None,
    ):
        super().__init__(sleep)
        self.db = db
        self.client = client
        self._categories: list[str] | None = None

    @property
    def categories(self) -> list[str]:
        if self._categories is None:
            self._categories = self.db.get_job_functions()
        return self._categories

    def select(self, limit: int, after_id: int) -> list[dict]:
        return self.db.get_jobs_missing_function(limit, after_id)

    def process(self, record: dict) -> ItemOutcome:
        title = record["title"]
        prompt = (
            f'Given this job title: "{title}"\n\n'
            f"Classify it into exactly ONE of these categories: {', '.join(self.categories)}\n\n"
            "Respond with ONLY the category name, nothing else. Match the spelling exactly."
        )
        raw = self.client.complete(FUNCTION_SYSTEM_PROMPT, prompt, max_tokens=50)
        function = parse_category(raw, self.categories)

        if not self.db.fill_job_field(record["id"], "function", function):
            return ItemOutcome(status="already filled", fields={"function": function})

        logger.debug(f"Job {record['id']} '{title}' -> {function}")
        return ItemOutcome(status="classified", updated=True, fields={"function": function})
