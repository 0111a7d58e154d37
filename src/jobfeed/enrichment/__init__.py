"""Enrichment layer: ATS detection and additive field-filling agents"""

from jobfeed.enrichment.ats_detector import AtsDetector, Detection
from jobfeed.enrichment.ats_urls import AtsUrlAgent
from jobfeed.enrichment.base_agent import AgentRunResult, EnrichmentAgent, ItemOutcome
from jobfeed.enrichment.company_profiles import CompanyProfileAgent
from jobfeed.enrichment.investor_profiles import InvestorProfileAgent
from jobfeed.enrichment.job_functions import FunctionClassifierAgent
from jobfeed.enrichment.posted_dates import PostedDateBackfill

__all__ = [
    "AgentRunResult",
    "AtsDetector",
    "AtsUrlAgent",
    "CompanyProfileAgent",
    "Detection",
    "EnrichmentAgent",
    "FunctionClassifierAgent",
    "InvestorProfileAgent",
    "ItemOutcome",
    "PostedDateBackfill",
]
