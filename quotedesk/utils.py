# quotedesk/utils.py
"""Request parsing and pagination helpers shared by the API blueprints."""

from datetime import date
from decimal import Decimal, InvalidOperation

from flask import current_app, request

MAX_PER_PAGE = 100


def json_body() -> dict:
    """The request's JSON object, or ``{}`` for a missing/malformed body."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def parse_decimal(value):
    """Return ``value`` as a Decimal, or None if it is not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return d if d.is_finite() else None


def parse_date(value):
    """Parse an ISO date (a datetime string is truncated to its date part)."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def parse_int(value):
    """Return ``value`` as an int; None for booleans and fractional numbers."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def is_truthy(value) -> bool:
    return str(value or '').lower() in ('1', 'true', 'yes', 'on')


def page_args():
    page = parse_int(request.args.get('page')) or 1
    per_page = parse_int(request.args.get('per_page')) or current_app.config['QUOTATIONS_PER_PAGE']
    return max(page, 1), min(max(per_page, 1), MAX_PER_PAGE)


def paginated(query, serialize) -> dict:
    """Paginate ``query`` and wrap the page in the listing envelope."""
    page, per_page = page_args()
    pg = query.paginate(page=page, per_page=per_page, error_out=False)
    first = (pg.page - 1) * pg.per_page + 1 if pg.items else None
    return {
        'data'        : [serialize(obj) for obj in pg.items],
        'current_page': pg.page,
        'per_page'    : pg.per_page,
        'total'       : pg.total,
        'last_page'   : max(pg.pages, 1),
        'from'        : first,
        'to'          : first + len(pg.items) - 1 if first else None,
    }
