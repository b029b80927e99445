# quotedesk/pdf/utils.py
"""Helpers turning stored quotations into render payloads and responses."""

import re

from flask import current_app, make_response

from quotedesk.models import Quotation

UNSAFE_FILENAME = re.compile(r'[^A-Za-z0-9._-]+')


def company_from_config(config=None) -> dict:
    config = config or current_app.config
    return {
        'name'       : config['COMPANY_NAME'],
        'address'    : config['COMPANY_ADDRESS'],
        'city'       : config['COMPANY_CITY'],
        'state'      : config['COMPANY_STATE'],
        'postal_code': config['COMPANY_POSTAL_CODE'],
        'country'    : config['COMPANY_COUNTRY'],
        'email'      : config['COMPANY_EMAIL'],
    }


def payload_from_quotation(q: Quotation, config=None) -> dict:
    """Build the render payload for a stored quotation."""
    config = config or current_app.config
    c = q.customer
    valid_until = q.valid_until(config['QUOTATION_VALIDITY_DAYS'])
    return {
        'quotation': {
            'id'              : q.id,
            'quotation_number': q.number,
            'quotation_date'  : q.quotation_date,
            'valid_until'     : valid_until,
            'status'          : q.status,
            'currency'        : q.currency,
            'conversion_rate' : q.conversion_rate,
            'payment_terms'   : q.payment_terms,
            'notes'           : q.notes,
            'total_amount'    : q.total_amount,
        },
        'customer': {
            'company_name'  : c.name,
            'contact_person': c.contact_person,
            'email'         : c.email,
            'phone'         : c.phone,
            'address'       : c.address,
            'address2'      : c.address2,
            'city'          : c.city,
            'state'         : c.state,
            'postal_code'   : c.postal_code,
        },
        'items': [
            {
                'description': it.description,
                'quantity'   : it.quantity,
                'unit_price' : it.unit_price,
                'line_total' : it.line_total,
            }
            for it in q.items
        ],
        'company': company_from_config(config),
    }


def safe_filename(name, default='quotation.pdf') -> str:
    name = UNSAFE_FILENAME.sub('_', str(name or '')).strip('._')
    if not name:
        return default
    return name if name.lower().endswith('.pdf') else f'{name}.pdf'


def pdf_response(pdf_bytes: bytes, filename: str, inline: bool = False):
    resp = make_response(pdf_bytes)
    resp.mimetype = 'application/pdf'
    disposition = 'inline' if inline else 'attachment'
    resp.headers['Content-Disposition'] = f'{disposition}; filename="{filename}"'
    resp.headers['Content-Length'] = str(len(pdf_bytes))
    return resp
