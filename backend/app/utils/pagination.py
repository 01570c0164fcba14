"""Page/page-size handling shared by list endpoints."""
from __future__ import annotations

from app.config import settings

DEFAULT_PAGE_SIZE = 10


def clamp_page(page: int | None, page_size: int | None, default_size: int = DEFAULT_PAGE_SIZE) -> tuple[int, int]:
    """Return a valid (page, page_size): page >= 1, 1 <= page_size <= MAX_PAGE_SIZE."""
    page = max(int(page or 1), 1)
    page_size = min(max(int(page_size or default_size), 1), settings.MAX_PAGE_SIZE)
    return page, page_size


def paginate(query, page: int | None, page_size: int | None, default_size: int = DEFAULT_PAGE_SIZE) -> dict:
    """Apply offset/limit to an ORM query and return the list envelope."""
    page, page_size = clamp_page(page, page_size, default_size)
    total = query.count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return {"items": items, "total": total, "page": page, "page_size": page_size}
