"""Small text helpers shared by the ingestion services"""

import re
import unicodedata


def to_slug(name: str) -> str:
    """
    URL-safe slug derived from a display name

    Examples:
        >>> to_slug("Acme Corp")
        'acme-corp'
        >>> to_slug("  Café & Co. ")
        'cafe-co'
    """
    if not name:
        return ""
    normalized = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", normalized.lower())
    return slug.strip("-")


def truncate(text: str, limit: int) -> str:
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit]
