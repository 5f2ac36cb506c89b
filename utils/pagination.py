from __future__ import annotations

import math
from typing import Dict, Tuple

from flask import request, abort

MAX_LIMIT = 100


def parse_pagination(default_limit: int = 10) -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", str(default_limit)))
    except ValueError:
        abort(400, description="page and limit must be integers")
    page = max(page, 1)
    limit = max(1, min(limit, MAX_LIMIT))
    return page, limit


def parse_sort(allowed: Dict[str, object], default_field: str, default_order: str = "desc"):
    """
    Resolve sort_by/sort_order query params against an allowlist of columns.
    Unknown fields or orders silently fall back to the defaults.
    """
    field = request.args.get("sort_by", default_field)
    order = request.args.get("sort_order", default_order).lower()
    if field not in allowed:
        field = default_field
    if order not in ("asc", "desc"):
        order = default_order
    col = allowed[field]
    return field, order, (col.desc() if order == "desc" else col.asc())


def pagination_meta(page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "current_page": page,
        "total_pages": total_pages,
        "total_items": total,
        "items_per_page": limit,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
