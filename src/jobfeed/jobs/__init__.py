"""Batch drivers: company onboarding and feed sync"""

from jobfeed.jobs.onboard_pipeline import OnboardPipeline, OnboardResult
from jobfeed.jobs.sync_feeds import FeedSync

__all__ = ["FeedSync", "OnboardPipeline", "OnboardResult"]
