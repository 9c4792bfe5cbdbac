import math
from typing import Any, Dict


def pagination(page: int, limit: int, total: int) -> Dict[str, Any]:
    return {
        "currentPage": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
        "hasNextPage": page * limit < total,
        "hasPrevPage": page > 1,
    }
