import json
import os
import sys
from datetime import date
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from quotedesk import create_app, db
from quotedesk.errors import ValidationError
from quotedesk.pdf.render import (
    CurrencyDisplay,
    format_date,
    format_quantity,
    parse_margin,
    quotation_totals,
    render_quotation_pdf,
    validate_pdf_payload,
)
from quotedesk.pdf.utils import safe_filename


def setup_app(**overrides):
    app = create_app('testing', **overrides)
    with app.app_context():
        db.drop_all()
        db.create_all()
    return app


def sample_payload(**quotation):
    return {
        'quotation': {
            'id': 1,
            'quotation_number': 'QUO-2025-001',
            'quotation_date': '2025-07-21T00:00:00.000Z',
            'valid_until': '2025-08-20',
            'payment_terms': 'Net 30 Days',
            'notes': ['Payment is due within 30 days', '50% deposit required'],
            **quotation,
        },
        'customer': {
            'company_name': 'ABC Corporation',
            'contact_person': 'Mr. John Smith',
            'email': 'contact@abccorp.com',
            'address': '123 Business Avenue',
            'city': 'New York',
            'state': 'NY',
            'postal_code': '10001',
        },
        'items': [
            {'description': 'Website Design & Development', 'quantity': 1, 'unit_price': 5500.0},
            {'description': 'SEO <Optimization>', 'quantity': 2, 'unit_price': 600.0},
        ],
        'company': {'name': 'Serenity Studio', 'email': 'hello@serenitystudio.com'},
    }


def test_validation_requires_id_customer_and_items():
    with pytest.raises(ValidationError) as exc:
        validate_pdf_payload({'quotation': {}, 'customer': {'contact_person': 'x'}, 'items': []})
    errors = exc.value.errors
    assert errors['quotation.id'] == ['Quotation ID is required']
    assert errors['customer.company_name'] == ['Customer company name is required']
    assert errors['items'] == ['At least one item is required']


def test_validation_checks_each_item():
    payload = sample_payload()
    payload['items'] = [
        {'description': '', 'quantity': 0, 'unit_price': -1},
        {'description': 'ok', 'quantity': '2', 'unit_price': 0},
    ]
    with pytest.raises(ValidationError) as exc:
        validate_pdf_payload(payload)
    errors = exc.value.errors
    assert errors['items.0.description'] == ['Item 1: description is required']
    assert errors['items.0.quantity'] == ['Item 1: quantity must be a positive number']
    assert errors['items.0.unit_price'] == ['Item 1: unit price must be a non-negative number']
    assert errors['items.1.quantity'] == ['Item 2: quantity must be a positive number']
    assert 'items.1.unit_price' not in errors


def test_customer_name_is_accepted_in_place_of_company_name():
    payload = sample_payload()
    payload['customer'] = {'name': 'Plain Name'}
    validate_pdf_payload(payload)


def test_totals_apply_default_tax_unless_given():
    payload = sample_payload()
    totals = quotation_totals(payload['quotation'], payload['items'])
    assert totals['subtotal'] == Decimal('6700.0')
    assert totals['tax'] == Decimal('536.000')
    assert totals['total'] == Decimal('7236.000')

    totals = quotation_totals({'tax': 100}, payload['items'])
    assert totals['total'] == Decimal('6800.0')


def test_currency_display_converts_only_jpy():
    myr = CurrencyDisplay('MYR', 32)
    assert myr.money(Decimal('1234.5')) == 'RM1,234.50'
    usd = CurrencyDisplay('USD', 4)
    assert usd.money(10) == 'RM10.00'
    jpy = CurrencyDisplay('JPY', Decimal('32.1234'))
    assert jpy.money(100) == '¥3,212'
    assert jpy.money(Decimal('0.5')) == '¥16'


def test_formatting_helpers():
    assert format_date('2025-07-21T00:00:00.000Z') == 'July 21, 2025'
    assert format_date(None) == ''
    assert format_quantity(Decimal('2.00')) == '2'
    assert format_quantity(1500) == '1,500'
    assert format_quantity('1.5') == '1.50'
    assert parse_margin('0.75in') == pytest.approx(54.0)
    assert parse_margin('10mm') == pytest.approx(28.3464, rel=1e-3)
    with pytest.raises(ValueError):
        parse_margin('wide')
    assert safe_filename('../etc/passwd') == 'etc_passwd.pdf'
    assert safe_filename(None) == 'quotation.pdf'


def test_render_produces_pdf_for_every_layout_option():
    for options in ({}, {'format': 'Letter', 'margin': '20mm'}, {'printBackground': False}):
        pdf = render_quotation_pdf(sample_payload(currency='JPY', conversion_rate=32.5), options)
        assert pdf.startswith(b'%PDF')
    assert render_quotation_pdf(sample_payload(notes=None)).startswith(b'%PDF')


def test_generate_endpoint_returns_attachment():
    app = setup_app()
    client = app.test_client()
    payload = sample_payload()
    payload['filename'] = 'QUO-2025-001.pdf'
    resp = client.post('/api/generate-quotation-pdf', json=payload)
    assert resp.status_code == 200
    assert resp.mimetype == 'application/pdf'
    assert resp.headers['Content-Disposition'] == 'attachment; filename="QUO-2025-001.pdf"'
    assert resp.data.startswith(b'%PDF')


def test_generate_endpoint_rejects_incomplete_payload():
    app = setup_app()
    client = app.test_client()
    resp = client.post('/api/generate-quotation-pdf', json={'customer': {'company_name': 'X'}})
    assert resp.status_code == 422
    errors = resp.get_json()['errors']
    assert 'quotation.id' in errors and 'items' in errors
    resp = client.post('/api/generate-quotation-pdf', data='[]', content_type='application/json')
    assert resp.status_code == 422


def _with_item(**fields):
    def change(payload):
        payload['items'][0].update(fields)
    return change


def _with_quotation(**fields):
    def change(payload):
        payload['quotation'].update(fields)
    return change


def _with_customer(**fields):
    def change(payload):
        payload['customer'].update(fields)
    return change


def _with_company(value):
    def change(payload):
        payload['company'] = value
    return change


@pytest.mark.parametrize('change, field', [
    (_with_item(quantity=float('nan')), 'items.0.quantity'),
    (_with_item(unit_price=float('inf')), 'items.0.unit_price'),
    (_with_item(line_total='abc'), 'items.0.line_total'),
    (_with_quotation(conversion_rate=float('nan')), 'quotation.conversion_rate'),
    (_with_quotation(tax=float('-inf')), 'quotation.tax'),
    (_with_quotation(currency=5), 'quotation.currency'),
    (_with_customer(company_name=123), 'customer.company_name'),
    (_with_customer(contact_person=['Ann']), 'customer.contact_person'),
    (_with_company('ACME'), 'company'),
    (_with_company({'name': 42}), 'company.name'),
])
def test_generate_endpoint_rejects_mistyped_fields(change, field):
    app = setup_app()
    client = app.test_client()
    payload = sample_payload()
    change(payload)
    # stdlib json writes NaN/Infinity literals, which Flask accepts on input
    resp = client.post('/api/generate-quotation-pdf', data=json.dumps(payload),
                       content_type='application/json')
    assert resp.status_code == 422
    assert field in resp.get_json()['errors']


def test_margin_must_be_a_finite_non_negative_length():
    with pytest.raises(ValueError):
        parse_margin(float('nan'))
    with pytest.raises(ValueError):
        parse_margin(-5)
    assert parse_margin(36) == 36.0


def test_stored_quotation_pdf():
    app = setup_app()
    client = app.test_client()
    c = client.post('/api/customers', json={
        'name': 'Acme', 'contact_person': 'Ann', 'email': 'ann@acme.test',
        'phone': '123', 'address': 'Street 1',
    }).get_json()
    q = client.post('/api/quotations', json={
        'customer_id': c['id'],
        'quotation_date': date.today().isoformat(),
        'currency': 'JPY',
        'conversion_rate': 32,
        'items': [{'description': 'Tour', 'quantity': 2, 'unit_price': 150}],
    }).get_json()

    resp = client.get(f"/api/quotations/{q['id']}/pdf?inline=1")
    assert resp.status_code == 200
    assert resp.headers['Content-Disposition'].startswith('inline; filename="Quotation_')
    assert resp.data.startswith(b'%PDF')
    assert client.get('/api/quotations/999/pdf').status_code == 404


def test_pdf_endpoints_are_rate_limited():
    app = setup_app(PDF_RATE_LIMIT=2, PDF_RATE_WINDOW=3600)
    client = app.test_client()
    payload = sample_payload()
    assert client.post('/api/generate-quotation-pdf', json=payload).status_code == 200
    assert client.post('/api/generate-quotation-pdf', json=payload).status_code == 200
    resp = client.post('/api/generate-quotation-pdf', json=payload)
    assert resp.status_code == 429
    assert 'Too many' in resp.get_json()['message']


def test_health():
    app = setup_app()
    body = app.test_client().get('/api/health').get_json()
    assert body['status'] == 'OK'
    assert body['uptime'] >= 0
