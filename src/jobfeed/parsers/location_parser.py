"""
Location parsing for messy ATS location strings

ATS feeds give free-form locations ("SF, CA (Hybrid)", "US - Remote",
"London"). These helpers derive a country and a remote hint from them.
"""

import re

US_STATES = {
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA", "HI", "ID", "IL", "IN", "IA",
    "KS", "KY", "LA", "ME", "MD", "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
    "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC", "SD", "TN", "TX", "UT", "VT",
    "VA", "WA", "WV", "WI", "WY", "DC",
}  # fmt: skip

US_CITIES = [
    "san francisco", "new york", "los angeles", "chicago", "seattle", "austin", "boston",
    "denver", "portland", "miami", "atlanta", "dallas", "houston", "nashville", "philadelphia",
    "phoenix", "san diego", "san jose", "brooklyn", "manhattan", "palo alto", "mountain view",
    "menlo park", "sunnyvale", "cupertino", "redwood city", "santa monica", "hoboken",
    "jersey city", "somerville", "santa clara", "irvine", "raleigh", "durham", "charlotte",
    "minneapolis", "salt lake city", "detroit", "pittsburgh", "columbus", "indianapolis",
    "oakland", "berkeley", "bellevue", "redmond", "kirkland", "san mateo", "boulder",
]  # fmt: skip

CITY_TO_COUNTRY = {
    "london": "United Kingdom", "manchester": "United Kingdom", "edinburgh": "United Kingdom",
    "oxford": "United Kingdom", "bristol": "United Kingdom",
    "dublin": "Ireland", "berlin": "Germany", "munich": "Germany", "hamburg": "Germany",
    "frankfurt": "Germany", "paris": "France", "amsterdam": "Netherlands",
    "stockholm": "Sweden", "copenhagen": "Denmark", "oslo": "Norway", "helsinki": "Finland",
    "zurich": "Switzerland", "geneva": "Switzerland", "vienna": "Austria",
    "barcelona": "Spain", "madrid": "Spain", "lisbon": "Portugal", "milan": "Italy",
    "tokyo": "Japan", "singapore": "Singapore", "sydney": "Australia",
    "melbourne": "Australia", "toronto": "Canada", "vancouver": "Canada",
    "montreal": "Canada", "ottawa": "Canada", "waterloo": "Canada",
    "sao paulo": "Brazil", "são paulo": "Brazil", "mexico city": "Mexico",
    "buenos aires": "Argentina", "tel aviv": "Israel", "bangalore": "India",
    "bengaluru": "India", "mumbai": "India", "hyderabad": "India", "warsaw": "Poland",
    "seoul": "South Korea", "dubai": "UAE",
}  # fmt: skip

COUNTRY_KEYWORDS: list[tuple[str, str]] = [
    (r"\bunited states\b", "United States"),
    (r"\busa\b", "United States"),
    (r"\bu\.s\.?(?=\s|,|$)", "United States"),
    (r"\bunited kingdom\b", "United Kingdom"),
    (r"\bengland\b", "United Kingdom"),
    (r"\bscotland\b", "United Kingdom"),
    (r"\bcanada\b", "Canada"),
    (r"\bgermany\b", "Germany"),
    (r"\bfrance\b", "France"),
    (r"\bireland\b", "Ireland"),
    (r"\bisrael\b", "Israel"),
    (r"\bindia\b", "India"),
    (r"\baustralia\b", "Australia"),
    (r"\bsingapore\b", "Singapore"),
    (r"\bjapan\b", "Japan"),
    (r"\bbrazil\b", "Brazil"),
    (r"\bmexico\b", "Mexico"),
    (r"\bnetherlands\b", "Netherlands"),
    (r"\bsweden\b", "Sweden"),
    (r"\bspain\b", "Spain"),
    (r"\bpoland\b", "Poland"),
    (r"\bswitzerland\b", "Switzerland"),
]

REMOTE_PATTERN = re.compile(r"\bremote\b", re.IGNORECASE)


def _country_keyword(text: str) -> str | None:
    for pattern, country in COUNTRY_KEYWORDS:
        if re.search(pattern, text, re.IGNORECASE):
            return country
    return None


def parse_country(location: str) -> str | None:
    """
    Best-effort country for an ATS location string

    Returns:
        Country name, "Remote" for a bare "Remote", or None if unknown
    """
    if not location:
        return None

    loc = location.strip()

    # "US - Remote", "Canada - Remote"
    dash_remote = re.match(r"^(\w[\w\s.]+?)\s*-\s*remote", loc, re.IGNORECASE)
    if dash_remote:
        prefix = dash_remote.group(1).strip()
        if prefix.lower() in ("us", "usa"):
            return "United States"
        country = _country_keyword(prefix)
        if country:
            return country

    country = _country_keyword(loc)
    if country:
        return country

    # "City, ST" or "City, ST 94105" or "City, ST (Hybrid)"
    for part in loc.split(","):
        clean = re.sub(r"\(.*?\)", "", part).strip().upper()
        state = re.match(r"^([A-Z]{2})(\s|$)", clean)
        if state and state.group(1) in US_STATES:
            return "United States"

    loc_lower = loc.lower()
    if any(city in loc_lower for city in US_CITIES):
        return "United States"

    for city, country in CITY_TO_COUNTRY.items():
        if city in loc_lower:
            return country

    if loc_lower == "remote":
        return "Remote"

    return None


def is_remote(location: str, *flags: str | bool | None) -> bool:
    """
    Remote hint from a location string plus provider-specific flags

    Args:
        location: Free-form location
        flags: Extra provider fields; True or any string containing "remote" counts

    Returns:
        True when any source indicates remote work
    """
    if location and REMOTE_PATTERN.search(location):
        return True
    for flag in flags:
        if flag is True:
            return True
        if isinstance(flag, str) and REMOTE_PATTERN.search(flag):
            return True
    return False


def remote_status(location: str, remote: bool) -> str:
    """Work mode label stored on jobs: remote, hybrid or in-office"""
    if remote:
        return "remote"
    if location and "hybrid" in location.lower():
        return "hybrid"
    return "in-office"
