"""jobfeed - ATS job feed ingestion, reconciliation and enrichment"""

__version__ = "1.0.0"
