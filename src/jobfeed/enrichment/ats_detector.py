"""
ATS Detector - find and validate a company's job feed

Detection order:
1. A URL we already have (stored ats_url/careers_url, then the website)
   mapped deterministically through detect_ats_from_url
2. Ask the LLM classifier for the company's jobs API URL
3. Validate the candidate by fetching it; any fetch error means not found.
   The FeedError stays on Detection.feed so callers can tell a dead board
   from a transient failure

The detector never writes anything; callers decide what to persist.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from jobfeed.exceptions import ClassifierError, ClassifierParseError
from jobfeed.extractors.llm_client import PerplexityClient
from jobfeed.extractors.response_parser import extract_url
from jobfeed.models import AtsInfo, FeedResult
from jobfeed.parsers.ats_feeds import fetch_feed
from jobfeed.utils.ats_url_parser import detect_ats_from_url

logger = logging.getLogger(__name__)

ATS_URL_SYSTEM_PROMPT = (
    "You find job board API URLs. Return ONLY the URL, nothing else. "
    "If Greenhouse: https://boards-api.greenhouse.io/v1/boards/COMPANY/jobs. "
    "If Lever: https://api.lever.co/v0/postings/COMPANY. "
    "If Ashby: https://api.ashbyhq.com/posting-api/job-board/COMPANY. "
    "If unknown, return null."
)


@dataclass
class Detection:
    """Detector outcome; feed holds the validating fetch when one was made"""

    found: bool
    ats_info: AtsInfo | None = None
    feed: FeedResult | None = None
    steps: list[str] = field(default_factory=list)


class AtsDetector:
    """Finds a company's Greenhouse/Lever/Ashby feed and checks it responds"""

    def __init__(
        self,
        client: PerplexityClient | None = None,
        fetch: Callable[[str], FeedResult] = fetch_feed,
    ):
        """
        Args:
            client: LLM classifier; without one only known URLs are tried
            fetch: Feed fetcher used for validation
        """
        self.client = client
        self.fetch = fetch

    def detect(
        self,
        name: str,
        website: str | None = None,
        existing_url: str | None = None,
    ) -> Detection:
        steps: list[str] = []

        ats_info = None
        for candidate in (existing_url, website):
            ats_info = detect_ats_from_url(candidate) if candidate else None
            if ats_info:
                steps.append(f"Detected {ats_info.provider.value} from {candidate}")
                break

        if not ats_info:
            ats_info = self._ask_classifier(name, steps)

        if not ats_info:
            steps.append("ATS not found")
            return Detection(found=False, steps=steps)

        feed = self.fetch(ats_info.api_url)
        if not feed.ok:
            steps.append(
                f"Feed validation failed for {ats_info.api_url}: "
                f"{feed.error.kind} ({feed.error})"
            )
            logger.info(f"{name}: candidate feed {ats_info.api_url} rejected ({feed.error.kind})")
            return Detection(found=False, ats_info=ats_info, feed=feed, steps=steps)

        steps.append(f"Validated {ats_info.provider.value} feed ({len(feed.jobs)} jobs)")
        logger.info(f"{name}: {ats_info.provider.value} feed {ats_info.api_url}")
        return Detection(found=True, ats_info=ats_info, feed=feed, steps=steps)

    def _ask_classifier(self, name: str, steps: list[str]) -> AtsInfo | None:
        if self.client is None:
            steps.append("No classifier configured, skipping lookup")
            return None

        try:
            raw = self.client.complete(
                ATS_URL_SYSTEM_PROMPT,
                f"What is the jobs API URL for {name}? Just the URL.",
                max_tokens=100,
            )
        except ClassifierError as e:
            steps.append(f"Classifier request failed: {e}")
            return None

        try:
            url = extract_url(raw)
        except ClassifierParseError as e:
            steps.append(f"Classifier gave no usable URL: {e}")
            return None

        ats_info = detect_ats_from_url(url)
        if not ats_info:
            steps.append(f"Classifier URL is not a supported ATS: {url}")
            return None

        steps.append(f"Classifier suggested {ats_info.provider.value}: {ats_info.api_url}")
        return ats_info
