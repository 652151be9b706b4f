"""Pagination and ordering for entity list endpoints."""


from fastapi import Query
from pydantic import BaseModel

# Columns a client may order entity lists by
SORTABLE_COLUMNS = ("updated_at", "created_at", "status", "version")


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class PaginationParams:
    """FastAPI dependency for `?page=1&limit=20&sort=updated_at&order=desc`."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1, description="Page number (1-based)"),
        limit: int = Query(default=20, ge=1, le=200, description="Items per page"),
        sort: str = Query(
            default="updated_at",
            pattern=f"^({'|'.join(SORTABLE_COLUMNS)})$",
            description="Sort column",
        ),
        order: str = Query(default="desc", pattern="^(asc|desc)$"),
    ):
        self.page = page
        self.limit = limit
        self.sort = sort
        self.order = order

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def meta(self, total: int) -> PageMeta:
        return PageMeta(total=total, page=self.page, limit=self.limit, pages=-(-total // self.limit))
