"""
Keyword-based job function inference

Cheap first pass applied at ingestion time. Titles that match no keyword
are left without a function for the LLM classifier to pick up later.

Word boundary matching prevents short keywords from matching inside
longer words ("pm" must not match "equipment").

Examples:
    >>> infer_function("Senior Backend Engineer")
    'Engineering'
    >>> infer_function("Account Executive, Mid-Market")
    'Sales'
    >>> infer_function("Chief of Staff") is None
    True
"""

import re

# Order matters: the first function with a matching keyword wins
FUNCTION_KEYWORDS: dict[str, list[str]] = {
    "Data": [
        "data scientist",
        "data engineer",
        "data analyst",
        "machine learning",
        "analytics",
        "ml engineer",
    ],
    "Design": ["designer", "design", "ux", "ui", "brand"],
    "Product": ["product manager", "product owner", "product lead", "head of product", "pm"],
    "Engineering": [
        "engineer",
        "engineering",
        "developer",
        "sre",
        "devops",
        "architect",
        "software",
        "backend",
        "frontend",
        "full stack",
        "infrastructure",
        "security",
    ],
    "Sales": [
        "account executive",
        "sales",
        "business development",
        "bdr",
        "sdr",
        "account manager",
    ],
    "Marketing": ["marketing", "growth", "content", "communications", "seo", "demand generation"],
    "Customer Success": ["customer success", "support", "customer experience", "solutions"],
    "Finance": ["finance", "accountant", "accounting", "controller", "fp&a", "tax"],
    "People": ["recruiter", "recruiting", "talent", "people", "hr", "human resources"],
    "Legal": ["legal", "counsel", "attorney", "compliance", "paralegal"],
    "Operations": ["operations", "ops", "logistics", "supply chain", "office manager"],
}


def _has_keyword(text_lower: str, keyword: str) -> bool:
    pattern = r"\b" + re.escape(keyword) + r"\b"
    return bool(re.search(pattern, text_lower))


def infer_function(title: str, allowed: list[str] | None = None) -> str | None:
    """
    Guess a job function from its title

    Args:
        title: Job title
        allowed: Restrict results to this vocabulary (e.g. the job_functions table)

    Returns:
        Function name, or None when nothing matches
    """
    if not title:
        return None

    title_lower = title.lower()
    allowed_set = {a.lower() for a in allowed} if allowed else None

    for function_name, keywords in FUNCTION_KEYWORDS.items():
        if allowed_set is not None and function_name.lower() not in allowed_set:
            continue
        if any(_has_keyword(title_lower, kw) for kw in keywords):
            return function_name

    return None
