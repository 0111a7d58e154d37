"""
Models for ATS job feeds: providers, detected feed info and normalized jobs
"""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

from jobfeed.exceptions import FeedError


class Provider(str, Enum):
    """ATS provider tag; NONE is the stored "checked, unsupported" state"""

    GREENHOUSE = "greenhouse"
    LEVER = "lever"
    ASHBY = "ashby"
    UNKNOWN = "unknown"
    NONE = "none"


# Stored in companies.ats_url once detection has definitively failed
NO_ATS_SENTINEL = "none"


class NormalizedJob(BaseModel):
    """Provider-independent job record produced by the ATS adapter"""

    title: str
    location: str = ""
    remote: bool = False
    provider_job_id: str | None = None
    job_url: str = ""
    apply_url: str = ""
    posted_date: str | None = None
    salary: str | None = None
    country: str | None = None
    description: str = ""
    raw_json: str | None = Field(None, repr=False, exclude=True)


@dataclass
class AtsInfo:
    """A company's ATS platform, board slug and canonical feed URL"""

    provider: Provider
    slug: str
    api_url: str


@dataclass
class FeedResult:
    """Outcome of one feed fetch: either jobs (possibly empty) or an error"""

    url: str
    provider: Provider
    jobs: list[NormalizedJob] = field(default_factory=list)
    error: FeedError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
