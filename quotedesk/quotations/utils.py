# quotedesk/quotations/utils.py

"""Validation, persistence and serialization for quotations."""

import logging
import re
from datetime import date
from decimal import Decimal

from flask import current_app

from quotedesk import db
from quotedesk.errors import ErrorCollector
from quotedesk.models import (
    Customer,
    Quotation,
    QuotationItem,
    STATUSES,
    STATUS_DRAFT,
    to_money,
)
from quotedesk.utils import is_truthy, parse_date, parse_decimal, parse_int
from quotedesk.customers.utils import serialize_customer

logger = logging.getLogger(__name__)

RATE_PLACES = Decimal('0.0001')

MIN_AMOUNT    = Decimal('0.01')
MAX_QUANTITY  = Decimal('999999.99')
MAX_UNIT_PRICE = Decimal('99999999.99')

CURRENCY_RE = re.compile(r'^[A-Z]{3}$')

STATUS_MESSAGE = 'The selected status is invalid. Allowed: ' + ', '.join(STATUSES) + '.'


def validate_status(value, errors: ErrorCollector, required: bool = False):
    if value is None or value == '':
        if required:
            errors.add('status', 'The status field is required.')
        return None
    if value not in STATUSES:
        errors.add('status', STATUS_MESSAGE)
        return None
    return value


def _clean_notes(value, errors):
    if value is None or value == '':
        return None
    if isinstance(value, str):
        lines = [ln.strip() for ln in value.splitlines()]
        return [ln for ln in lines if ln] or None
    if isinstance(value, list) and all(isinstance(n, str) for n in value):
        return [n for n in value if n.strip()] or None
    errors.add('notes', 'The notes must be a string or a list of strings.')
    return None


def _clean_items(items, errors):
    if not isinstance(items, list) or not items:
        errors.add('items', 'At least one quotation item is required.')
        return []

    cleaned = []
    for idx, it in enumerate(items):
        key = f'items.{idx}'
        if not isinstance(it, dict):
            errors.add(key, 'Each item must be an object.')
            continue

        description = it.get('description')
        if not isinstance(description, str) or not description.strip():
            errors.add(f'{key}.description', 'Item description is required.')
        elif len(description.strip()) > 255:
            errors.add(f'{key}.description', 'Item description cannot exceed 255 characters.')

        quantity = parse_decimal(it.get('quantity'))
        if it.get('quantity') is None:
            errors.add(f'{key}.quantity', 'Item quantity is required.')
        elif quantity is None:
            errors.add(f'{key}.quantity', 'Item quantity must be a number.')
        elif quantity < MIN_AMOUNT:
            errors.add(f'{key}.quantity', 'Item quantity must be greater than 0.')
        elif quantity > MAX_QUANTITY:
            errors.add(f'{key}.quantity', 'Item quantity cannot exceed 999,999.99.')

        unit_price = parse_decimal(it.get('unit_price'))
        if it.get('unit_price') is None:
            errors.add(f'{key}.unit_price', 'Item unit price is required.')
        elif unit_price is None:
            errors.add(f'{key}.unit_price', 'Item unit price must be a number.')
        elif unit_price < MIN_AMOUNT:
            errors.add(f'{key}.unit_price', 'Item unit price must be greater than 0.')
        elif unit_price > MAX_UNIT_PRICE:
            errors.add(f'{key}.unit_price', 'Item unit price cannot exceed 99,999,999.99.')

        if not any(k.startswith(key + '.') or k == key for k in errors.errors):
            cleaned.append({
                'description': description.strip(),
                'quantity'   : to_money(quantity),
                'unit_price' : to_money(unit_price),
            })
    return cleaned


def validate_quotation(data: dict) -> dict:
    """
    Validate a quotation header plus its item array.

    Every problem is collected before raising so the client receives all
    messages at once, keyed by field (``items.<n>.<field>`` for items).
    Line totals and ``total_amount`` are never read from the payload.
    """
    errors = ErrorCollector()
    cleaned = {}

    raw_customer = data.get('customer_id')
    customer_id = parse_int(raw_customer)
    if raw_customer in (None, ''):
        errors.add('customer_id', 'Please select a customer for this quotation.')
    elif customer_id is None:
        errors.add('customer_id', 'The customer must be an integer.')
    elif db.session.get(Customer, customer_id) is None:
        errors.add('customer_id', 'The selected customer does not exist.')
    else:
        cleaned['customer_id'] = customer_id

    raw_date = data.get('quotation_date')
    qdate = parse_date(raw_date)
    if raw_date in (None, ''):
        errors.add('quotation_date', 'Quotation date is required.')
    elif qdate is None:
        errors.add('quotation_date', 'The quotation date is not a valid date.')
    elif qdate < date.today():
        errors.add('quotation_date', 'Quotation date cannot be in the past.')
    else:
        cleaned['quotation_date'] = qdate

    cleaned['status'] = validate_status(data.get('status'), errors)

    currency = data.get('currency')
    if currency not in (None, ''):
        currency = str(currency).strip().upper()
        if not CURRENCY_RE.match(currency):
            errors.add('currency', 'The currency must be a 3-letter code.')
        else:
            cleaned['currency'] = currency

    if data.get('conversion_rate') not in (None, ''):
        rate = parse_decimal(data.get('conversion_rate'))
        if rate is None or rate <= 0:
            errors.add('conversion_rate', 'The conversion rate must be a positive number.')
        else:
            cleaned['conversion_rate'] = rate.quantize(RATE_PLACES)

    terms = data.get('payment_terms')
    if terms not in (None, ''):
        if not isinstance(terms, str) or len(terms) > 255:
            errors.add('payment_terms', 'The payment terms must be a string of at most 255 characters.')
        else:
            cleaned['payment_terms'] = terms.strip()

    if 'notes' in data:
        cleaned['notes'] = _clean_notes(data.get('notes'), errors)

    cleaned['items'] = _clean_items(data.get('items'), errors)

    errors.raise_if_any()
    return cleaned


def save_quotation(cleaned: dict, quotation: Quotation | None = None) -> Quotation:
    """
    Create or update a quotation and replace its items in one transaction.

    Existing items are deleted, the new ones inserted, and ``total_amount``
    recomputed from them before the commit.  Any failure rolls the whole
    write back and is re-raised.
    """
    creating = quotation is None
    try:
        if creating:
            quotation = Quotation(status=STATUS_DRAFT, total_amount=Decimal('0.00'))
            db.session.add(quotation)

        quotation.customer_id    = cleaned['customer_id']
        quotation.quotation_date = cleaned['quotation_date']
        if cleaned.get('status'):
            quotation.status = cleaned['status']
        for field in ('currency', 'conversion_rate', 'payment_terms', 'notes'):
            if field in cleaned:
                setattr(quotation, field, cleaned[field])

        quotation.items.clear()
        db.session.flush()

        for it in cleaned['items']:
            quotation.items.append(QuotationItem(**it))
        db.session.flush()

        quotation.recalculate_total()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return quotation


def _date_arg(args, name, errors):
    if not args.get(name):
        return None
    d = parse_date(args.get(name))
    if d is None:
        errors.add(name, f'The {name.replace("_", " ")} is not a valid date.')
    return d


def filtered_quotations(args):
    """Build the listing query from request args; newest first."""
    errors = ErrorCollector()
    if is_truthy(args.get('only_deleted')):
        query = Quotation.query.filter(Quotation.deleted_at.isnot(None))
    elif is_truthy(args.get('with_deleted')):
        query = Quotation.query
    else:
        query = Quotation.active()

    if args.get('status'):
        status = validate_status(args.get('status'), errors)
        if status:
            query = query.filter(Quotation.status == status)

    if args.get('customer_id'):
        customer_id = parse_int(args.get('customer_id'))
        if customer_id is None:
            errors.add('customer_id', 'The customer must be an integer.')
        else:
            query = query.filter(Quotation.customer_id == customer_id)

    date_from = _date_arg(args, 'date_from', errors)
    if date_from:
        query = query.filter(Quotation.quotation_date >= date_from)
    date_to = _date_arg(args, 'date_to', errors)
    if date_to:
        query = query.filter(Quotation.quotation_date <= date_to)

    errors.raise_if_any()
    return query.order_by(Quotation.created_at.desc(), Quotation.id.desc())


def serialize_item(it: QuotationItem) -> dict:
    return {
        'id'          : it.id,
        'quotation_id': it.quotation_id,
        'description' : it.description,
        'quantity'    : str(to_money(it.quantity)),
        'unit_price'  : str(to_money(it.unit_price)),
        'line_total'  : str(it.line_total),
    }


def serialize_quotation(q: Quotation) -> dict:
    valid_until = q.valid_until(current_app.config['QUOTATION_VALIDITY_DAYS'])
    return {
        'id'                : q.id,
        'number'            : q.number,
        'customer_id'       : q.customer_id,
        'customer'          : serialize_customer(q.customer) if q.customer else None,
        'quotation_date'    : q.quotation_date.isoformat() if q.quotation_date else None,
        'valid_until'       : valid_until.isoformat() if valid_until else None,
        'status'            : q.status,
        'available_statuses': q.available_statuses,
        'editable'          : q.editable,
        'currency'          : q.currency,
        'conversion_rate'   : str(Decimal(str(q.conversion_rate)).quantize(RATE_PLACES)),
        'payment_terms'     : q.payment_terms,
        'notes'             : q.notes,
        'total_amount'      : str(to_money(q.total_amount)),
        'items'             : [serialize_item(i) for i in q.items],
        'deleted'           : q.deleted,
        'deleted_at'        : q.deleted_at.isoformat() if q.deleted_at else None,
        'created_at'        : q.created_at.isoformat() if q.created_at else None,
        'updated_at'        : q.updated_at.isoformat() if q.updated_at else None,
    }
