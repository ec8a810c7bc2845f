from __future__ import annotations

import math
from typing import Any, Sequence

MAX_PAGE_SIZE = 100


def clamp_page(page: Any, limit: Any, *, default_limit: int = 20) -> tuple[int, int]:
    try:
        p = int(page or 1)
    except (TypeError, ValueError):
        p = 1
    try:
        lim = int(limit or default_limit)
    except (TypeError, ValueError):
        lim = default_limit
    return max(1, p), max(1, min(MAX_PAGE_SIZE, lim))


def paginate(items: Sequence[dict[str, Any]], *, page: Any = 1, limit: Any = 20) -> dict[str, Any]:
    """Offset pagination over an already filtered and sorted list."""
    p, lim = clamp_page(page, limit)
    total = len(items)
    start = (p - 1) * lim
    return {
        "data": list(items[start : start + lim]),
        "pagination": {
            "page": p,
            "limit": lim,
            "total": total,
            "pages": math.ceil(total / lim) if total else 0,
        },
    }
