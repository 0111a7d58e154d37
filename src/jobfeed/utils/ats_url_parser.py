"""
ATS URL Parser - Derive a company's job feed URL from any ATS link

Board pages, individual postings and API endpoints all carry the board
slug, so any one of them is enough to build the canonical JSON feed URL.

Examples:
    Greenhouse:
        Input:  https://job-boards.greenhouse.io/acme/jobs/4123456
        Output: https://boards-api.greenhouse.io/v1/boards/acme/jobs

    Lever:
        Input:  https://jobs.lever.co/acme/abc-123-xyz
        Output: https://api.lever.co/v0/postings/acme

    Ashby:
        Input:  https://jobs.ashbyhq.com/acme/5f1c
        Output: https://api.ashbyhq.com/posting-api/job-board/acme
"""

import re
from urllib.parse import parse_qs, urlparse

from jobfeed.models.feeds import AtsInfo, Provider

FEED_URL_TEMPLATES = {
    Provider.GREENHOUSE: "https://boards-api.greenhouse.io/v1/boards/{slug}/jobs",
    Provider.LEVER: "https://api.lever.co/v0/postings/{slug}",
    Provider.ASHBY: "https://api.ashbyhq.com/posting-api/job-board/{slug}",
}

# Checked in order; each captures the board slug
PATTERNS = {
    # jobs.ashbyhq.com/{slug} or api.ashbyhq.com/posting-api/job-board/{slug}
    Provider.ASHBY: r"ashbyhq\.com/(?:posting-api/job-board/)?([a-z0-9_-]+)",
    # boards.greenhouse.io/{slug} or boards-api.greenhouse.io/v1/boards/{slug}
    Provider.GREENHOUSE: r"greenhouse\.io/(?:v1/boards/)?([a-z0-9_-]+)",
    # jobs.lever.co/{slug} or api.lever.co/v0/postings/{slug}
    Provider.LEVER: r"lever\.co/(?:v0/postings/)?([a-z0-9_-]+)",
}

# Path segments that are never a board slug
RESERVED_SLUGS = {"embed", "v1", "v0", "posting-api", "api"}


def build_feed_url(provider: Provider, slug: str) -> str:
    return FEED_URL_TEMPLATES[provider].format(slug=slug)


def detect_ats_from_url(url: str) -> AtsInfo | None:
    """
    Map a Greenhouse, Lever or Ashby URL to its canonical feed

    Args:
        url: Any board, posting or API URL

    Returns:
        AtsInfo with provider, slug and feed URL, or None if the URL
        does not belong to a supported ATS
    """
    if not url:
        return None

    u = url.strip().lower()

    # Greenhouse embed boards carry the slug in ?for=
    if "greenhouse.io/embed/" in u:
        slug = parse_qs(urlparse(u).query).get("for", [""])[0]
        if slug and re.fullmatch(r"[a-z0-9_-]+", slug):
            return AtsInfo(Provider.GREENHOUSE, slug, build_feed_url(Provider.GREENHOUSE, slug))
        return None

    for provider, pattern in PATTERNS.items():
        match = re.search(pattern, u)
        if match:
            slug = match.group(1)
            if slug in RESERVED_SLUGS:
                continue
            return AtsInfo(provider, slug, build_feed_url(provider, slug))

    return None
