"""
Parsers for untrusted LLM classifier responses

Classifier output is free text that may be wrapped in markdown fences,
bolded, or padded with explanation. Each parser here either returns a
validated value or raises ClassifierParseError with the raw text
attached; callers leave the target field empty on failure.
"""

import json
import re

from rapidfuzz import fuzz, process

from jobfeed.exceptions import ClassifierParseError

FUZZY_CATEGORY_THRESHOLD = 90.0

URL_PATTERN = re.compile(r"https?://[^\s'\"<>)\]]+")
JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


def clean_response(raw: str) -> str:
    """Strip markdown fences, bold/italic markers, quotes and trailing periods"""
    if not raw:
        return ""
    cleaned = re.sub(r"```(?:\w+)?\s*", "", raw)
    cleaned = cleaned.replace("```", "").replace("*", "")
    return cleaned.strip().rstrip(".").strip("\"'`").rstrip(".").strip()


def parse_category(raw: str, allowed: list[str]) -> str:
    """
    Match a one-word classification against the category vocabulary

    Exact (case-insensitive) match first, then the closest category by
    rapidfuzz ratio if it scores at least FUZZY_CATEGORY_THRESHOLD.

    Args:
        raw: Classifier response
        allowed: Category vocabulary

    Returns:
        The vocabulary spelling of the matched category

    Raises:
        ClassifierParseError: No category matches
    """
    guess = clean_response(raw)
    if not guess:
        raise ClassifierParseError("Empty classifier response", raw)

    by_lower = {name.strip().lower(): name.strip() for name in allowed if name and name.strip()}
    if guess.lower() in by_lower:
        return by_lower[guess.lower()]

    # Responses like "Category: Engineering" or a first line followed by commentary
    first_line = guess.splitlines()[0].split(":")[-1].strip()
    if first_line.lower() in by_lower:
        return by_lower[first_line.lower()]

    match = process.extractOne(first_line.lower(), list(by_lower), scorer=fuzz.ratio)
    if match and match[1] >= FUZZY_CATEGORY_THRESHOLD:
        return by_lower[match[0]]

    raise ClassifierParseError(f"'{guess[:50]}' does not match any category", raw)


def extract_json_object(raw: str) -> dict:
    """
    Pull the first {...} span out of a response and decode it

    Raises:
        ClassifierParseError: No object found, invalid JSON, or not an object
    """
    cleaned = re.sub(r"```(?:json)?\s*", "", raw or "", flags=re.IGNORECASE).replace("```", "")
    match = JSON_OBJECT_PATTERN.search(cleaned)
    if not match:
        raise ClassifierParseError("No JSON object in classifier response", raw or "")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ClassifierParseError(f"Invalid JSON in classifier response: {e}", raw) from e

    if not isinstance(data, dict):
        raise ClassifierParseError("Classifier JSON is not an object", raw)
    return data


def _clean_field(value) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


def parse_investor_profile(raw: str) -> dict[str, str]:
    """
    Extract {bio, location} for an investor

    Returns:
        Dict with "bio" and "location" keys (empty string when not provided)
    """
    data = extract_json_object(raw)
    return {
        "bio": _clean_field(data.get("bio")),
        "location": _clean_field(data.get("location")),
    }


def map_stage(raw: str) -> str | None:
    """Funding stage text to Public / Early Stage / Mid Stage / Late Stage"""
    t = (raw or "").lower()
    if any(word in t for word in ("ipo", "public", "nyse", "nasdaq")):
        return "Public"
    if "seed" in t or "series a" in t:
        return "Early Stage"
    if "series b" in t or "series c" in t:
        return "Mid Stage"
    if re.search(r"series [d-h]\b", t):
        return "Late Stage"
    return None


def _size_bucket(n: int) -> str:
    if n <= 50:
        return "1-50"
    if n <= 200:
        return "51-200"
    if n <= 1000:
        return "201-1000"
    return "1000+"


def map_size(raw) -> str | None:
    """Employee count text ("51-200", "about 120 employees", 3000) to a size bucket"""
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return _size_bucket(int(raw))

    t = str(raw or "").lower().replace(",", "")
    range_match = re.search(r"(\d+)\s*-\s*(\d+)", t)
    if range_match:
        return _size_bucket(int(range_match.group(2)))

    single_match = re.search(r"(\d{1,6})\s*(\+|plus)?\s*employees?", t) or re.search(
        r"(\d{1,6})", t
    )
    if single_match:
        return _size_bucket(int(single_match.group(1)))

    return None


def parse_company_profile(raw: str) -> dict[str, str | None]:
    """
    Extract stage and size buckets from {funding_stage, employee_count}

    Returns:
        Dict with "stage" and "size" (None when the value can't be bucketed)
    """
    data = extract_json_object(raw)
    stage_text = data.get("funding_stage") or data.get("stage") or ""
    size_value = data.get("employee_count") or data.get("employees") or data.get("size") or ""
    return {
        "stage": map_stage(str(stage_text)),
        "size": map_size(size_value),
    }


def extract_url(raw: str) -> str:
    """
    First http(s) URL in a response

    Raises:
        ClassifierParseError: Response is empty, "null"/"unknown", or has no URL
    """
    cleaned = re.sub(r"```(?:\w+)?\s*", "", raw or "").replace("```", "").strip()
    if not cleaned or cleaned.lower() == "null" or "unknown" in cleaned.lower():
        raise ClassifierParseError("Classifier returned no URL", raw or "")

    match = URL_PATTERN.search(cleaned)
    if not match:
        raise ClassifierParseError("No URL in classifier response", raw)
    return match.group(0).rstrip(".,;")
