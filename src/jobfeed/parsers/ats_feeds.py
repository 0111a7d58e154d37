"""
ATS job feed adapter

Fetches a Greenhouse, Lever or Ashby job feed and normalizes it into
NormalizedJob records. The provider is decided once, from the feed URL's
host, and the decoded JSON is wrapped in a provider-specific payload type
so each shape has exactly one normalizer.

Feed shapes:
    Greenhouse  {"jobs": [{"id", "title", "location": {"name"}, "absolute_url", ...}]}
    Lever       [{"id", "text", "categories": {"location", "commitment"}, "hostedUrl", ...}]
    Ashby       {"jobs": [{"id", "title", "location": "...", "isRemote", "jobUrl", ...}]}
    Unknown     best effort: "jobs", then "results", then a bare array
"""

import html
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import requests
from bs4 import BeautifulSoup

from jobfeed.exceptions import FeedError
from jobfeed.models.feeds import FeedResult, NormalizedJob, Provider
from jobfeed.parsers.location_parser import is_remote, parse_country
from jobfeed.utils.text import truncate

logger = logging.getLogger(__name__)

FEED_TIMEOUT_SECONDS = 10
ERROR_BODY_LIMIT = 200


def detect_provider(url: str) -> Provider:
    """Provider tag from the feed URL's host"""
    u = (url or "").lower()
    if "greenhouse.io" in u:
        return Provider.GREENHOUSE
    if "lever.co" in u:
        return Provider.LEVER
    if "ashbyhq.com" in u:
        return Provider.ASHBY
    return Provider.UNKNOWN


# ----------------------------------------------------------------------
# Payload variants
# ----------------------------------------------------------------------


@dataclass
class GreenhousePayload:
    jobs: list[dict]


@dataclass
class LeverPayload:
    postings: list[dict]


@dataclass
class AshbyPayload:
    jobs: list[dict]


@dataclass
class UnknownPayload:
    items: list[dict]


ProviderPayload = GreenhousePayload | LeverPayload | AshbyPayload | UnknownPayload


def _dict_items(items: Any) -> list[dict]:
    return [item for item in items if isinstance(item, dict)] if isinstance(items, list) else []


def wrap_payload(provider: Provider, data: Any) -> ProviderPayload:
    """
    Wrap decoded feed JSON in its provider variant

    Raises:
        FeedError: kind "parse" when a known provider's top-level shape is wrong
    """
    if provider is Provider.GREENHOUSE:
        if not isinstance(data, dict) or not isinstance(data.get("jobs"), list):
            raise FeedError("parse", "Greenhouse feed is missing a 'jobs' array")
        return GreenhousePayload(_dict_items(data["jobs"]))

    if provider is Provider.LEVER:
        if not isinstance(data, list):
            raise FeedError("parse", "Lever feed is not a JSON array")
        return LeverPayload(_dict_items(data))

    if provider is Provider.ASHBY:
        if not isinstance(data, dict) or not isinstance(data.get("jobs"), list):
            raise FeedError("parse", "Ashby feed is missing a 'jobs' array")
        return AshbyPayload(_dict_items(data["jobs"]))

    if isinstance(data, dict):
        items = data.get("jobs") or data.get("results") or []
    else:
        items = data
    return UnknownPayload(_dict_items(items))


# ----------------------------------------------------------------------
# Field helpers
# ----------------------------------------------------------------------


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def html_to_text(markup: str) -> str:
    """Flatten (possibly entity-escaped) HTML job content to plain text"""
    if not markup:
        return ""
    unescaped = html.unescape(markup)
    return BeautifulSoup(unescaped, "html.parser").get_text(" ", strip=True)


def epoch_ms_to_date(value: float) -> str | None:
    """YYYY-MM-DD from a millisecond epoch; None when out of range"""
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date().isoformat()
    except (ValueError, OverflowError, OSError):
        logger.debug(f"Ignoring out-of-range epoch timestamp: {value}")
        return None


def _date_part(value: Any) -> str | None:
    """YYYY-MM-DD from an ISO string or a millisecond epoch"""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return epoch_ms_to_date(value)
    text = str(value).strip()
    return text.split("T")[0] or None


def _money(amount: Any) -> str:
    if isinstance(amount, (int, float)):
        return f"{amount:,.0f}"
    return str(amount)


def extract_salary(job: dict) -> str | None:
    """Salary text from whichever provider field carries it"""
    pay = job.get("pay")
    if isinstance(pay, dict):
        low, high = pay.get("min_amount"), pay.get("max_amount")
        currency = pay.get("currency_type") or "USD"
        if low and high:
            return f"{currency} {_money(low)} - {_money(high)}"
        if low:
            return f"{currency} {_money(low)}+"
        if high:
            return f"{currency} up to {_money(high)}"

    metadata = job.get("metadata")
    if isinstance(metadata, list):
        for item in metadata:
            if not isinstance(item, dict):
                continue
            name = (item.get("name") or "").lower()
            if any(word in name for word in ("salary", "compensation", "pay")) and item.get("value"):
                return _text(item["value"])

    salary_range = job.get("salaryRange")
    if isinstance(salary_range, dict) and salary_range.get("min") and salary_range.get("max"):
        currency = salary_range.get("currency") or "USD"
        return f"{currency} {_money(salary_range['min'])} - {_money(salary_range['max'])}"

    categories = job.get("categories")
    if isinstance(categories, dict) and categories.get("salary"):
        return _text(categories["salary"])

    if job.get("compensationTierSummary"):
        return _text(job["compensationTierSummary"])

    return None


def _build_job(
    job: dict,
    title: str,
    location: str,
    remote: bool,
    job_url: str,
    apply_url: str,
    posted: Any,
    description: str,
) -> NormalizedJob | None:
    if not title:
        return None
    provider_id = _text(job.get("id")) or None
    return NormalizedJob(
        title=title,
        location=location,
        remote=remote,
        provider_job_id=provider_id,
        job_url=job_url,
        apply_url=apply_url or job_url,
        posted_date=_date_part(posted),
        salary=extract_salary(job),
        country=parse_country(location),
        description=description,
        raw_json=json.dumps(job, sort_keys=True),
    )


# ----------------------------------------------------------------------
# Normalizers, one per variant
# ----------------------------------------------------------------------


def normalize_greenhouse(payload: GreenhousePayload) -> list[NormalizedJob]:
    jobs = []
    for job in payload.jobs:
        location = ""
        if isinstance(job.get("location"), dict):
            location = _text(job["location"].get("name"))
        offices = job.get("offices") if isinstance(job.get("offices"), list) else []
        if not location and offices and isinstance(offices[0], dict):
            location = _text(offices[0].get("location") or offices[0].get("name"))
        office_names = [
            _text(o.get("name")) for o in offices if isinstance(o, dict) and o.get("name")
        ]

        normalized = _build_job(
            job,
            title=_text(job.get("title")),
            location=location,
            remote=is_remote(location, *office_names),
            job_url=_text(job.get("absolute_url")),
            apply_url=_text(job.get("absolute_url")),
            posted=job.get("first_published") or job.get("updated_at"),
            description=html_to_text(job.get("content") or ""),
        )
        if normalized:
            jobs.append(normalized)
    return jobs


def normalize_lever(payload: LeverPayload) -> list[NormalizedJob]:
    jobs = []
    for job in payload.postings:
        categories = job.get("categories") if isinstance(job.get("categories"), dict) else {}
        location = _text(categories.get("location"))

        normalized = _build_job(
            job,
            title=_text(job.get("text")),
            location=location,
            remote=is_remote(location, categories.get("commitment"), job.get("workplaceType")),
            job_url=_text(job.get("hostedUrl")),
            apply_url=_text(job.get("applyUrl")),
            posted=job.get("createdAt"),
            description=_text(job.get("descriptionPlain"))
            or html_to_text(job.get("description") or ""),
        )
        if normalized:
            jobs.append(normalized)
    return jobs


def normalize_ashby(payload: AshbyPayload) -> list[NormalizedJob]:
    jobs = []
    for job in payload.jobs:
        location = ""
        if isinstance(job.get("location"), str):
            location = _text(job["location"])
        elif isinstance(job.get("location"), dict):
            location = _text(job["location"].get("name"))
        elif isinstance(job.get("jobLocation"), dict) and job["jobLocation"].get("city"):
            loc = job["jobLocation"]
            location = _text(loc["city"]) + (f", {loc['country']}" if loc.get("country") else "")

        normalized = _build_job(
            job,
            title=_text(job.get("title")),
            location=location,
            remote=is_remote(location, bool(job.get("isRemote"))),
            job_url=_text(job.get("jobUrl")),
            apply_url=_text(job.get("applyUrl")),
            posted=job.get("publishedAt") or job.get("createdAt"),
            description=_text(job.get("descriptionPlain"))
            or html_to_text(job.get("descriptionHtml") or ""),
        )
        if normalized:
            jobs.append(normalized)
    return jobs


def normalize_unknown(payload: UnknownPayload) -> list[NormalizedJob]:
    jobs = []
    for job in payload.items:
        location = ""
        if isinstance(job.get("location"), dict):
            location = _text(job["location"].get("name"))
        elif isinstance(job.get("location"), str):
            location = _text(job["location"])
        elif isinstance(job.get("categories"), dict):
            location = _text(job["categories"].get("location"))

        job_url = _text(job.get("absolute_url") or job.get("hostedUrl") or job.get("jobUrl"))
        normalized = _build_job(
            job,
            title=_text(job.get("title") or job.get("text")),
            location=location,
            remote=is_remote(location),
            job_url=job_url,
            apply_url=_text(job.get("applyUrl")),
            posted=job.get("publishedAt") or job.get("updated_at"),
            description=html_to_text(job.get("content") or job.get("description") or ""),
        )
        if normalized:
            jobs.append(normalized)
    return jobs


def normalize_payload(payload: ProviderPayload) -> list[NormalizedJob]:
    """Dispatch a wrapped payload to its normalizer"""
    if isinstance(payload, GreenhousePayload):
        return normalize_greenhouse(payload)
    if isinstance(payload, LeverPayload):
        return normalize_lever(payload)
    if isinstance(payload, AshbyPayload):
        return normalize_ashby(payload)
    return normalize_unknown(payload)


def parse_feed(url: str, data: Any) -> list[NormalizedJob]:
    """Normalize already-decoded feed JSON for the provider behind url"""
    return normalize_payload(wrap_payload(detect_provider(url), data))


# ----------------------------------------------------------------------
# Fetching
# ----------------------------------------------------------------------


def fetch_feed(url: str, session: requests.Session | None = None) -> FeedResult:
    """
    Fetch and normalize one ATS job feed

    Never raises for feed problems: the returned FeedResult carries either
    the (possibly empty) job list or a FeedError whose kind tells the
    caller whether it was an HTTP status, a decode problem, a timeout or a
    connection failure.

    Args:
        url: Feed URL (one of the canonical ATS templates, or any JSON feed)
        session: Optional requests session to reuse connections

    Returns:
        FeedResult
    """
    provider = detect_provider(url)
    http = session or requests

    try:
        response = http.get(
            url,
            headers={"Accept": "application/json"},
            timeout=FEED_TIMEOUT_SECONDS,
        )
    except requests.Timeout:
        logger.warning(f"Timeout fetching feed: {url}")
        return FeedResult(
            url, provider, error=FeedError("timeout", f"Timed out after {FEED_TIMEOUT_SECONDS}s")
        )
    except requests.RequestException as e:
        logger.warning(f"Connection error fetching feed {url}: {e}")
        return FeedResult(
            url, provider, error=FeedError("network", truncate(str(e), ERROR_BODY_LIMIT))
        )

    text = response.text or ""
    if not 200 <= response.status_code < 300:
        body = truncate(text, ERROR_BODY_LIMIT)
        logger.warning(f"Feed {url} returned HTTP {response.status_code}")
        return FeedResult(
            url,
            provider,
            error=FeedError(
                "http",
                f"{provider.value} API error {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            ),
        )

    try:
        data = json.loads(text)
    except ValueError as e:
        logger.warning(f"Feed {url} returned invalid JSON: {e}")
        return FeedResult(url, provider, error=FeedError("parse", f"Invalid JSON: {e}"))

    try:
        jobs = parse_feed(url, data)
    except FeedError as e:
        logger.warning(f"Feed {url} has unexpected shape: {e}")
        return FeedResult(url, provider, error=e)

    logger.info(f"Fetched {len(jobs)} jobs from {provider.value} feed {url}")
    return FeedResult(url, provider, jobs=jobs)
