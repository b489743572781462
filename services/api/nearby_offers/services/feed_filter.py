"""Category and free-text filters for offer queries.

Filter semantics:
- Category: the owning commerce's tag set must contain the category.
  "Todas" ("All") or an empty value disables the category filter.
- Search: resolved in two steps. The term is first matched against commerce
  names (case-insensitive substring) to get a set of commerce ids; offers then
  match when their title contains the term OR their commerce is in that set.
  With no matching commerce this degrades to a title-only match.
- Category and search compose conjunctively with each other and with the
  base query predicate.

The same `FeedFilter` value refines a SQL query (`apply`) and evaluates a
single record in memory (`matches`), so both paths share one definition.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import Select, or_

from nearby_offers.models import Commerce, Offer
from nearby_offers.services.records import OfferRecord

ALL_CATEGORIES = "Todas"

_LIKE_ESCAPE = "\\"


class CommerceNameIndex(Protocol):
    async def find_commerce_ids_by_name(self, term: str) -> frozenset[str]: ...


def normalize_category(category: str | None) -> str | None:
    """Return the category to filter by, or None when no filter applies."""
    if category is None:
        return None
    category = category.strip()
    if not category or category.casefold() == ALL_CATEGORIES.casefold():
        return None
    return category


def normalize_search(search: str | None) -> str | None:
    """Return the trimmed search term, or None for a blank term."""
    if search is None:
        return None
    search = search.strip()
    return search or None


def like_pattern(term: str) -> str:
    """Substring LIKE pattern with % and _ in the term escaped."""
    escaped = (
        term.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", f"{_LIKE_ESCAPE}%")
        .replace("_", f"{_LIKE_ESCAPE}_")
    )
    return f"%{escaped}%"


@dataclass(frozen=True)
class FeedFilter:
    """Resolved category/search predicate for offer queries."""

    category: str | None = None
    search_term: str | None = None
    matched_commerce_ids: frozenset[str] = frozenset()

    def apply(self, stmt: Select) -> Select:
        """Refine an offer query that already joins `Commerce`."""
        if self.category is not None:
            stmt = stmt.where(Commerce.categories.contains([self.category]))

        if self.search_term is not None:
            title_match = Offer.title.ilike(like_pattern(self.search_term), escape=_LIKE_ESCAPE)
            if self.matched_commerce_ids:
                stmt = stmt.where(
                    or_(title_match, Offer.commerce_id.in_(sorted(self.matched_commerce_ids)))
                )
            else:
                stmt = stmt.where(title_match)

        return stmt

    def matches(self, offer: OfferRecord) -> bool:
        """Evaluate the predicate against a single offer."""
        if self.category is not None and self.category not in offer.commerce.categories:
            return False

        if self.search_term is not None:
            title_hit = self.search_term.casefold() in offer.title.casefold()
            return title_hit or offer.commerce_id in self.matched_commerce_ids

        return True


async def resolve_feed_filter(
    index: CommerceNameIndex,
    category: str | None = None,
    search: str | None = None,
) -> FeedFilter:
    """Normalize the raw parameters and run the commerce-name lookup.

    The name lookup is only issued when a non-blank search term is present.
    """
    term = normalize_search(search)
    matched: frozenset[str] = frozenset()
    if term is not None:
        matched = await index.find_commerce_ids_by_name(term)

    return FeedFilter(
        category=normalize_category(category),
        search_term=term,
        matched_commerce_ids=matched,
    )
