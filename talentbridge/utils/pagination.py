import math
from dataclasses import dataclass
from typing import Any, Dict, List

from fastapi import Query


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(1, ge=1, description="Page number, starting at 1"),
    limit: int = Query(20, ge=1, le=50, description="Items per page"),
) -> PageParams:
    return PageParams(page=page, limit=limit)


def paginated(items: List[Any], total: int, params: PageParams) -> Dict[str, Any]:
    total_pages = math.ceil(total / params.limit) if total else 0
    return {
        "success": True,
        "data": items,
        "pagination": {
            "page": params.page,
            "limit": params.limit,
            "total": total,
            "total_pages": total_pages,
            "has_next": params.page < total_pages,
            "has_prev": params.page > 1,
        },
    }
