# quotedesk/customers/utils.py

"""Validation and serialization for the customers blueprint."""

import re

from quotedesk.errors import ErrorCollector
from quotedesk.models import Customer, Quotation

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')

REQUIRED_FIELDS = ('name', 'contact_person', 'email', 'phone', 'address')
OPTIONAL_FIELDS = ('address2', 'city', 'state', 'postal_code')

MAX_LENGTHS = {
    'name'          : 255,
    'contact_person': 255,
    'email'         : 255,
    'phone'         : 255,
    'address2'      : 255,
    'city'          : 255,
    'state'         : 255,
    'postal_code'   : 32,
}


def _label(field):
    return field.replace('_', ' ')


def validate_customer(data: dict, customer=None, partial: bool = False) -> dict:
    """
    Validate a customer payload and return the cleaned field values.

    With ``partial`` only the fields present in ``data`` are checked and
    returned (PATCH semantics).  ``customer`` is the record being updated,
    excluded from the unique email check.
    """
    errors = ErrorCollector()
    cleaned = {}

    for field in REQUIRED_FIELDS + OPTIONAL_FIELDS:
        if partial and field not in data:
            continue
        value = data.get(field)
        if value is not None and not isinstance(value, str):
            errors.add(field, f'The {_label(field)} must be a string.')
            continue
        value = (value or '').strip()
        if not value:
            if field in REQUIRED_FIELDS:
                errors.add(field, f'The {_label(field)} field is required.')
            else:
                cleaned[field] = None
            continue
        limit = MAX_LENGTHS.get(field)
        if limit and len(value) > limit:
            errors.add(field, f'The {_label(field)} may not be greater than {limit} characters.')
            continue
        cleaned[field] = value

    email = cleaned.get('email')
    if email:
        if not EMAIL_RE.match(email):
            errors.add('email', 'The email must be a valid email address.')
        else:
            q = Customer.query.filter(Customer.email == email)
            if customer is not None:
                q = q.filter(Customer.id != customer.id)
            if q.first() is not None:
                errors.add('email', 'The email has already been taken.')

    errors.raise_if_any()
    return cleaned


def serialize_customer(c: Customer, with_counts: bool = False) -> dict:
    out = {
        'id'            : c.id,
        'name'          : c.name,
        'contact_person': c.contact_person,
        'email'         : c.email,
        'phone'         : c.phone,
        'address'       : c.address,
        'address2'      : c.address2,
        'city'          : c.city,
        'state'         : c.state,
        'postal_code'   : c.postal_code,
        'created_at'    : c.created_at.isoformat() if c.created_at else None,
        'updated_at'    : c.updated_at.isoformat() if c.updated_at else None,
    }
    if with_counts:
        out['quotations_count'] = Quotation.active().filter_by(customer_id=c.id).count()
    return out
