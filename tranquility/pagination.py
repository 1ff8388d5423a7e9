import math

from fastapi import Query

from .config import settings


class PageParams:
    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    ):
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def paginate(query, params: PageParams):
    """
    Return ``(items, pagination)`` for a SQLAlchemy query.

    The count runs on the unordered query; items honour whatever ordering
    the caller already applied.
    """
    total_count = query.order_by(None).count()
    items = query.offset(params.offset).limit(params.limit).all()
    pagination = {
        "page": params.page,
        "limit": params.limit,
        "total_count": total_count,
        "total_pages": math.ceil(total_count / params.limit) if total_count else 0,
    }
    return items, pagination
