"""Response envelopes: `{data}` for single objects, `{data, meta}` for pages."""


from typing import Generic, TypeVar

from thorbis.core.pagination import PageMeta, PaginationParams
from thorbis.schemas.common import CamelModel

T = TypeVar("T")


class DataResponse(CamelModel, Generic[T]):
    data: T


class ListResponse(CamelModel, Generic[T]):
    data: list[T]
    meta: PageMeta


def paginated(items: list, total: int, params: PaginationParams) -> dict:
    return {"data": items, "meta": params.meta(total)}
