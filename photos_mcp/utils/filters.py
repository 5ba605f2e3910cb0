"""Search filter construction for the Photos Library API."""

from datetime import datetime
from typing import Any, Dict, List

from photos_mcp.models import SearchParams

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20

# Free-text keywords mapped to Photos Library content categories.
CATEGORY_KEYWORDS = [
    (("people", "person"), "PEOPLE"),
    (("animal", "pet"), "ANIMALS"),
    (("food",), "FOOD"),
    (("landscape", "nature"), "LANDSCAPES"),
    (("city", "building"), "CITYSCAPES"),
    (("travel", "vacation"), "TRAVEL"),
    (("selfie",), "SELFIES"),
]


def parse_date(date_string: str) -> Dict[str, int]:
    """Convert a date string to the API's year/month/day triple.

    Accepts ``YYYY-MM-DD`` or a full ISO 8601 timestamp. Timestamps carrying
    an offset are converted to local time first; no UTC normalisation is
    applied to the resulting calendar fields.

    Raises:
        ValueError: If the string is not an ISO 8601 date
    """
    value = date_string.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return {"year": parsed.year, "month": parsed.month, "day": parsed.day}


def content_categories(query: str) -> List[str]:
    """Map free text to content categories.

    Matching is a case-insensitive substring test. An empty list means the
    search is not filtered by category.
    """
    query_lower = query.lower()
    return [
        category
        for keywords, category in CATEGORY_KEYWORDS
        if any(keyword in query_lower for keyword in keywords)
    ]


def build_search_body(params: SearchParams) -> Dict[str, Any]:
    """Build a ``mediaItems:search`` request body.

    Args:
        params: Search parameters; the page token is passed through unchanged

    Returns:
        Request body dictionary
    """
    page_size = params.page_size or DEFAULT_PAGE_SIZE
    body: Dict[str, Any] = {"pageSize": min(page_size, MAX_PAGE_SIZE)}

    if params.page_token:
        body["pageToken"] = params.page_token

    # The API rejects filters combined with an album id.
    if params.album_id:
        body["albumId"] = params.album_id
        return body

    filters: Dict[str, Any] = {}
    if params.query:
        filters["contentFilter"] = {
            "includedContentCategories": content_categories(params.query)
        }

    if params.start_date or params.end_date:
        date_range: Dict[str, Any] = {}
        if params.start_date:
            date_range["startDate"] = parse_date(params.start_date)
        if params.end_date:
            date_range["endDate"] = parse_date(params.end_date)
        filters["dateFilter"] = {"ranges": [date_range]}

    if filters:
        body["filters"] = filters
    return body
