import math
from typing import Any, Dict, List

from app.core.errors import ValidationError

MAX_PAGE_SIZE = 100


def paginate(items: List, page: int, limit: int) -> Dict[str, Any]:
    """Slice an already-sorted list into one page plus totals."""
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    limit = min(limit, MAX_PAGE_SIZE)
    start = (page - 1) * limit
    return {
        "items": items[start:start + limit],
        "total_pages": math.ceil(len(items) / limit),
        "current_page": page,
        "total": len(items),
    }
