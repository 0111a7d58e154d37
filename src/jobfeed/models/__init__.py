"""Models package

Pydantic payloads for the ingestion API and the normalized ATS feed types.
"""

from .feeds import NO_ATS_SENTINEL, AtsInfo, FeedResult, NormalizedJob, Provider
from .records import (
    CompanyPayload,
    FundraisePayload,
    IngestError,
    IngestResult,
    InvestorPayload,
    JobPayload,
    MetricPayload,
)

__all__ = [
    "NO_ATS_SENTINEL",
    "AtsInfo",
    "CompanyPayload",
    "FeedResult",
    "FundraisePayload",
    "IngestError",
    "IngestResult",
    "InvestorPayload",
    "JobPayload",
    "MetricPayload",
    "NormalizedJob",
    "Provider",
]
