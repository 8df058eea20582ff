"""
Discovery Service
Public search and category filtering over the list of active opportunities.
"""
import unicodedata
from typing import Any, List, Mapping, Sequence, TypeVar, Union

from divein.models.opportunities import Opportunity

ALL_CATEGORIES = "toate"
CATEGORIES = [ALL_CATEGORIES, "Educație", "ONG", "Stagii", "Evenimente", "Altele"]

OpportunityLike = Union[Opportunity, Mapping[str, Any]]
T = TypeVar("T", bound=OpportunityLike)


def _fold(text: str) -> str:
    # NFC first so decomposed diacritics (s + combining comma) compare equal to precomposed ones
    return unicodedata.normalize("NFC", text or "").casefold()


def _field(opportunity: OpportunityLike, name: str) -> str:
    if isinstance(opportunity, Mapping):
        return opportunity.get(name) or ""
    return getattr(opportunity, name, None) or ""


def matches_search(opportunity: OpportunityLike, search_text: str) -> bool:
    needle = _fold(search_text)
    if not needle:
        return True
    return needle in _fold(_field(opportunity, "title")) or needle in _fold(_field(opportunity, "description"))


def matches_category(opportunity: OpportunityLike, category: str) -> bool:
    return category == ALL_CATEGORIES or _field(opportunity, "category") == category


def filter_opportunities(opportunities: Sequence[T], search_text: str = "", category: str = ALL_CATEGORIES) -> List[T]:
    """
    Return the opportunities matching both the search text and the category.

    - search text: case-insensitive substring of title or description; empty matches all
    - category: exact match, or "toate" for every category
    Input order is preserved; the input is never modified.
    """
    return [
        opportunity
        for opportunity in opportunities
        if matches_search(opportunity, search_text) and matches_category(opportunity, category)
    ]
