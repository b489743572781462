"""Pagination envelope shared by every discovery endpoint."""

from dataclasses import dataclass
import math

from nearby_offers.services.errors import ValidationError

# PostgreSQL OFFSET is a bigint
MAX_ROW_OFFSET = 2**63 - 1


@dataclass(frozen=True)
class Pagination:
    total: int
    per_page: int
    current_page: int
    total_pages: int


def build_pagination(total: int, page_size: int, current_page: int) -> Pagination:
    """Build page metadata from a single-query total count.

    total_pages = ceil(total / page_size), and 0 when total == 0.
    """
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    total = max(int(total), 0)
    total_pages = math.ceil(total / page_size) if total else 0
    return Pagination(
        total=total,
        per_page=page_size,
        current_page=current_page,
        total_pages=total_pages,
    )


def page_offset(page: int, page_size: int) -> int:
    """First row index of `page` (1-based) for offset pagination.

    Raises:
        ValidationError: the offset does not fit a database OFFSET.
    """
    offset = (page - 1) * page_size
    if offset > MAX_ROW_OFFSET:
        raise ValidationError("Page is out of range", detail={"param": "page", "value": page})
    return offset
