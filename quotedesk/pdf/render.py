"""Quotation document layout with ReportLab.

The renderer works from a plain payload so the same code serves the
standalone ``/api/generate-quotation-pdf`` endpoint and stored quotations:

    {
        "quotation": {"id", "quotation_number", "quotation_date", "valid_until",
                      "currency", "conversion_rate", "payment_terms", "tax",
                      "notes", "status"},
        "customer":  {"company_name" | "name", "contact_person", "address",
                      "address2", "city", "state", "postal_code", "phone", "email"},
        "items":     [{"description", "quantity", "unit_price", "line_total"?}],
        "company":   {"name", "address", "city", "state", "postal_code",
                      "country", "email"},
    }

Amounts are in the base currency (MYR).  Only a ``JPY`` quotation is
converted, using ``conversion_rate`` (JPY per MYR).
"""
from __future__ import annotations

import math
import re
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from io import BytesIO
from typing import Any, Dict, List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT, TA_RIGHT
from reportlab.lib.pagesizes import A4, legal, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm, inch, mm
from reportlab.platypus import HRFlowable, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from quotedesk.errors import ErrorCollector
from quotedesk.utils import parse_date

BASE_CURRENCY = 'MYR'
DEFAULT_TAX_RATE = Decimal('0.08')
DEFAULT_MARGIN = '0.75in'
DEFAULT_PAYMENT_TERMS = 'Net 30 Days'

PAGE_SIZES = {'A4': A4, 'LETTER': letter, 'LEGAL': legal}
MARGIN_UNITS = {'in': inch, 'mm': mm, 'cm': cm, 'pt': 1.0, 'px': 0.75, '': 1.0}
MARGIN_RE = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*(in|mm|cm|pt|px)?\s*$')

SHADE = colors.HexColor('#e8e8e8')
INK = colors.black

DEFAULT_COMPANY = {
    'name'       : 'WIF Japan Sdn Bhd',
    'address'    : 'No 6, Lorong Kiri 10',
    'city'       : 'Kampung Datuk Keramat',
    'state'      : 'Kuala Lumpur',
    'postal_code': '54000',
    'country'    : 'Malaysia',
    'email'      : 'admin@wiftravel.com',
}


CUSTOMER_TEXT_FIELDS = ('company_name', 'name', 'contact_person', 'address', 'address2',
                        'city', 'state', 'postal_code', 'phone', 'email')
QUOTATION_TEXT_FIELDS = ('quotation_number', 'currency', 'payment_terms')


def _is_number(value) -> bool:
    """True for a finite JSON number (``NaN``/``Infinity`` are rejected)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, Decimal):
        return value.is_finite()
    return False


def _check_text(errors: ErrorCollector, prefix: str, obj: Dict[str, Any], fields) -> None:
    for field in fields:
        value = obj.get(field)
        if value is not None and not isinstance(value, str):
            errors.add(f'{prefix}.{field}', f'The {prefix} {field} must be a string')


def _dec(value) -> Decimal:
    return Decimal(str(value))


def parse_margin(value) -> float:
    """Convert a CSS-like length (``0.75in``, ``20mm``, ``54``) to points."""
    if _is_number(value):
        if value < 0:
            raise ValueError(f'invalid margin {value!r}')
        return float(value)
    m = MARGIN_RE.match(str(value or ''))
    if not m:
        raise ValueError(f'invalid margin {value!r}')
    return float(m.group(1)) * MARGIN_UNITS[m.group(2) or '']


def customer_name(customer: Dict[str, Any]) -> str:
    return (customer.get('company_name') or customer.get('name') or '').strip()


def validate_pdf_payload(data) -> None:
    """Raise ``ValidationError`` listing everything wrong with ``data``."""
    errors = ErrorCollector()
    if not isinstance(data, dict):
        errors.add('payload', 'A JSON object is required.')
        errors.raise_if_any()

    quotation = data.get('quotation')
    if not isinstance(quotation, dict) or quotation.get('id') in (None, ''):
        errors.add('quotation.id', 'Quotation ID is required')
        quotation = quotation if isinstance(quotation, dict) else {}
    _check_text(errors, 'quotation', quotation, QUOTATION_TEXT_FIELDS)

    customer = data.get('customer')
    if not isinstance(customer, dict):
        errors.add('customer.company_name', 'Customer company name is required')
    else:
        _check_text(errors, 'customer', customer, CUSTOMER_TEXT_FIELDS)
        mistyped = 'customer.company_name' in errors.errors or 'customer.name' in errors.errors
        if not mistyped and not customer_name(customer):
            errors.add('customer.company_name', 'Customer company name is required')

    company = data.get('company')
    if company is not None:
        if isinstance(company, dict):
            _check_text(errors, 'company', company, tuple(DEFAULT_COMPANY))
        else:
            errors.add('company', 'Company must be an object')

    rate = quotation.get('conversion_rate')
    if rate is not None and (not _is_number(rate) or rate <= 0):
        errors.add('quotation.conversion_rate', 'Conversion rate must be a positive number')
    tax = quotation.get('tax')
    if tax is not None and (not _is_number(tax) or tax < 0):
        errors.add('quotation.tax', 'Tax must be a non-negative number')

    items = data.get('items')
    if not isinstance(items, list) or not items:
        errors.add('items', 'At least one item is required')
        items = []
    for idx, item in enumerate(items):
        n = idx + 1
        if not isinstance(item, dict):
            errors.add(f'items.{idx}', f'Item {n}: must be an object')
            continue
        if not item.get('description'):
            errors.add(f'items.{idx}.description', f'Item {n}: description is required')
        qty = item.get('quantity')
        if not _is_number(qty) or qty <= 0:
            errors.add(f'items.{idx}.quantity', f'Item {n}: quantity must be a positive number')
        price = item.get('unit_price')
        if not _is_number(price) or price < 0:
            errors.add(f'items.{idx}.unit_price', f'Item {n}: unit price must be a non-negative number')
        total = item.get('line_total')
        if total is not None and (not _is_number(total) or total < 0):
            errors.add(f'items.{idx}.line_total', f'Item {n}: line total must be a non-negative number')

    options = data.get('options') or {}
    if not isinstance(options, dict):
        errors.add('options', 'Options must be an object')
    else:
        fmt = options.get('format')
        if fmt and str(fmt).upper() not in PAGE_SIZES:
            errors.add('options.format', 'Format must be one of: ' + ', '.join(sorted(PAGE_SIZES)))
        if options.get('margin') is not None:
            try:
                parse_margin(options['margin'])
            except ValueError:
                errors.add('options.margin', 'Margin must be a length such as 0.75in or 20mm')

    errors.raise_if_any()


def line_total(item: Dict[str, Any]) -> Decimal:
    if item.get('line_total') is not None:
        return _dec(item['line_total'])
    return _dec(item['quantity']) * _dec(item['unit_price'])


def quotation_totals(quotation: Dict[str, Any], items: List[Dict[str, Any]],
                     tax_rate=DEFAULT_TAX_RATE) -> Dict[str, Decimal]:
    """Subtotal, tax and total in the base currency."""
    subtotal = sum((line_total(i) for i in items), Decimal('0'))
    if quotation.get('tax') is not None:
        tax = _dec(quotation['tax'])
    else:
        tax = subtotal * _dec(tax_rate)
    return {'subtotal': subtotal, 'tax': tax, 'total': subtotal + tax}


class CurrencyDisplay:
    """Converts and formats base-currency amounts for the document."""

    def __init__(self, currency: str | None, conversion_rate=None) -> None:
        self.currency = (currency or BASE_CURRENCY).upper()
        self.rate = _dec(conversion_rate if conversion_rate is not None else 1)
        self.is_jpy = self.currency == 'JPY'
        self.symbol = '¥' if self.is_jpy else 'RM'
        self.places = 0 if self.is_jpy else 2

    def convert(self, amount) -> Decimal:
        amount = _dec(amount or 0)
        return amount * self.rate if self.is_jpy else amount

    def number(self, amount) -> str:
        q = Decimal(1).scaleb(-self.places)
        return f'{_dec(amount).quantize(q, rounding=ROUND_HALF_UP):,.{self.places}f}'

    def money(self, amount) -> str:
        return f'{self.symbol}{self.number(self.convert(amount))}'


def format_date(value) -> str:
    d = parse_date(value)
    if d is None:
        return ''
    return f'{d:%B} {d.day}, {d.year}'


def format_quantity(value) -> str:
    q = _dec(value).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    if q == q.to_integral_value():
        return f'{q:,.0f}'
    return f'{q:,.2f}'


def _styles():
    base = getSampleStyleSheet()['Normal']

    def style(name, **kw):
        kw.setdefault('fontName', 'Helvetica')
        kw.setdefault('fontSize', 10)
        kw.setdefault('leading', kw['fontSize'] * 1.3)
        kw.setdefault('textColor', INK)
        return ParagraphStyle(name, parent=base, **kw)

    return {
        'title'      : style('q_title', fontSize=18, alignment=TA_CENTER),
        'company'    : style('q_company', fontSize=14),
        'company_r'  : style('q_company_r', fontSize=14, alignment=TA_RIGHT),
        'details'    : style('q_details'),
        'details_r'  : style('q_details_r', alignment=TA_RIGHT),
        'body'       : style('q_body', fontSize=11),
        'label'      : style('q_label', fontSize=11, alignment=TA_CENTER),
        'amount'     : style('q_amount', fontName='Helvetica-Bold', fontSize=20, alignment=TA_CENTER),
        'cell'       : style('q_cell', alignment=TA_CENTER),
        'cell_l'     : style('q_cell_l', alignment=TA_LEFT),
        'cell_r'     : style('q_cell_r', alignment=TA_RIGHT),
        'cell_rb'    : style('q_cell_rb', fontName='Helvetica-Bold', fontSize=11, alignment=TA_RIGHT),
        'cell_cb'    : style('q_cell_cb', fontName='Helvetica-Bold', fontSize=11, alignment=TA_CENTER),
        'head'       : style('q_head', fontSize=11, alignment=TA_CENTER),
    }


def _lines(*parts) -> str:
    return '<br/>'.join(escape(str(p)) for p in parts if p)


def _shade(cmds, cell_from, cell_to, print_background):
    if print_background:
        cmds.append(('BACKGROUND', cell_from, cell_to, SHADE))


def _header(payload, st, width):
    quotation, customer = payload['quotation'], payload['customer']
    company = {**DEFAULT_COMPANY, **{k: v for k, v in (payload.get('company') or {}).items() if v}}
    name = customer_name(customer)

    state_line = ', '.join(p for p in (company.get('state'), company.get('postal_code')) if p)
    left = [
        Paragraph(escape(company['name']), st['company']),
        Paragraph(_lines(
            company.get('address'),
            company.get('city'),
            state_line,
            company.get('country'),
            f"Email: {company['email']}" if company.get('email') else '',
        ), st['details']),
        Spacer(1, 12),
        Paragraph(
            f'<b>{escape(name)}</b><br/>{escape(customer.get("contact_person") or "")}'
            '<br/><br/>We are pleased to submit the following quotation.',
            st['body'],
        ),
    ]

    issue_date = format_date(quotation.get('quotation_date')) or format_date(date.today())
    number = quotation.get('quotation_number') or f"QUO-{quotation['id']}"
    city_line = ''
    if customer.get('city'):
        city_line = f"{customer['city']}, {customer.get('state') or ''} {customer.get('postal_code') or ''}".strip()
    right = [
        Paragraph(_lines(f'Issue Date: {issue_date}', f'Quote No.: {number}'), st['details_r']),
        Spacer(1, 12),
        Paragraph(escape(name), st['company_r']),
        Paragraph(_lines(
            customer.get('address'),
            city_line,
            customer.get('address2'),
            f"Tel: {customer['phone']}" if customer.get('phone') else '',
            f"Email: {customer['email']}" if customer.get('email') else '',
        ), st['details_r']),
    ]

    t = Table([[left, right]], colWidths=[width * 0.5, width * 0.5])
    t.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('LEFTPADDING', (0, 0), (-1, -1), 0),
        ('RIGHTPADDING', (0, 0), (0, 0), 24),
        ('RIGHTPADDING', (1, 0), (1, 0), 0),
    ]))
    return t


def _amount_section(payload, money, totals, st, width, print_background):
    quotation = payload['quotation']
    terms = [
        ['Payment Terms', quotation.get('payment_terms') or DEFAULT_PAYMENT_TERMS],
        ['Valid Until', format_date(quotation.get('valid_until'))],
    ]
    if money.is_jpy:
        terms.append(['Exchange Rate', f'1 {BASE_CURRENCY} = {money.number(money.rate)} JPY'])

    half = width * 0.5
    terms_cmds = [
        ('LINEBELOW', (0, 0), (-1, -2), 0.5, INK),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('LEFTPADDING', (0, 0), (-1, -1), 12),
        ('TOPPADDING', (0, 0), (-1, -1), 6),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
    ]
    _shade(terms_cmds, (0, 0), (0, -1), print_background)
    terms_table = Table(terms, colWidths=[half * 0.5, half * 0.5])
    terms_table.setStyle(TableStyle(terms_cmds))

    box = [
        Paragraph('Quote Amount', st['label']),
        Spacer(1, 4),
        Paragraph(escape(money.money(totals['subtotal'])), st['amount']),
    ]
    cmds = [
        ('BOX', (0, 0), (0, 0), 1, INK),
        ('BOX', (1, 0), (1, 0), 1, INK),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('TOPPADDING', (0, 0), (0, 0), 10),
        ('BOTTOMPADDING', (0, 0), (0, 0), 10),
        ('LEFTPADDING', (1, 0), (1, 0), 0),
        ('RIGHTPADDING', (1, 0), (1, 0), 0),
        ('TOPPADDING', (1, 0), (1, 0), 0),
        ('BOTTOMPADDING', (1, 0), (1, 0), 0),
    ]
    _shade(cmds, (0, 0), (0, 0), print_background)
    t = Table([[box, terms_table]], colWidths=[half, half])
    t.setStyle(TableStyle(cmds))
    return t


def _items_table(payload, money, st, width, print_background):
    rows = [[
        Paragraph('Description', st['head']),
        Paragraph('Qty', st['head']),
        Paragraph('Unit Price', st['head']),
        Paragraph('Amount', st['head']),
    ]]
    for item in payload['items']:
        rows.append([
            Paragraph(escape(str(item['description'])), st['cell_l']),
            Paragraph(format_quantity(item['quantity']), st['cell']),
            Paragraph(escape(money.money(item['unit_price'])), st['cell']),
            Paragraph(escape(money.money(line_total(item))), st['cell']),
        ])
    cmds = [
        ('BOX', (0, 0), (-1, -1), 1, INK),
        ('INNERGRID', (0, 0), (-1, -1), 0.5, INK),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('TOPPADDING', (0, 0), (-1, 0), 8),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
    ]
    _shade(cmds, (0, 0), (-1, 0), print_background)
    t = Table(rows, colWidths=[width * 0.5, width * 0.15, width * 0.175, width * 0.175], repeatRows=1)
    t.setStyle(TableStyle(cmds))
    return t


def _totals_table(money, totals, st, width, print_background):
    rows = [
        [Paragraph('Subtotal', st['cell']), Paragraph(escape(money.money(totals['subtotal'])), st['cell_r'])],
        [Paragraph('Sales Tax', st['cell']), Paragraph(escape(money.money(totals['tax'])), st['cell_r'])],
        [Paragraph('Total Amount', st['cell_cb']), Paragraph(escape(money.money(totals['total'])), st['cell_rb'])],
    ]
    cmds = [
        ('BOX', (0, 0), (-1, -1), 1, INK),
        ('LINEABOVE', (0, 1), (-1, -1), 0.5, INK),
        ('LEFTPADDING', (0, 0), (-1, -1), 12),
        ('RIGHTPADDING', (0, 0), (-1, -1), 12),
    ]
    _shade(cmds, (0, 0), (0, -1), print_background)
    _shade(cmds, (1, -1), (1, -1), print_background)
    t = Table(rows, colWidths=[width * 0.25, width * 0.75])
    t.setStyle(TableStyle(cmds))
    return t


def _notes_section(notes, st, width, print_background):
    if isinstance(notes, list):
        text = '<br/>'.join(escape(str(n)) for n in notes)
    else:
        text = escape(str(notes)).replace('\n', '<br/>')
    cmds = [
        ('BOX', (0, 0), (-1, -1), 1, INK),
        ('LINEBELOW', (0, 0), (-1, 0), 0.5, INK),
        ('LEFTPADDING', (0, 0), (-1, -1), 12),
        ('TOPPADDING', (0, 0), (-1, -1), 6),
        ('BOTTOMPADDING', (0, 1), (-1, 1), 10),
    ]
    _shade(cmds, (0, 0), (-1, 0), print_background)
    t = Table([[Paragraph('Notes', st['body'])], [Paragraph(text, st['details'])]], colWidths=[width])
    t.setStyle(TableStyle(cmds))
    return t


def render_quotation_pdf(payload: Dict[str, Any], options: Dict[str, Any] | None = None,
                         tax_rate=DEFAULT_TAX_RATE) -> bytes:
    """Lay out the quotation document and return the PDF bytes.

    ``payload`` must already have passed :func:`validate_pdf_payload`.
    Options: ``format`` (A4, Letter, Legal), ``margin`` and
    ``printBackground`` (grey shading on/off).
    """
    options = options or {}
    quotation = payload['quotation']
    print_background = options.get('printBackground', True) is not False
    margin = parse_margin(options.get('margin') or DEFAULT_MARGIN)
    pagesize = PAGE_SIZES[str(options.get('format') or 'A4').upper()]

    money = CurrencyDisplay(quotation.get('currency'), quotation.get('conversion_rate'))
    totals = quotation_totals(quotation, payload['items'], tax_rate)

    buffer = BytesIO()
    number = quotation.get('quotation_number') or f"QUO-{quotation['id']}"
    company = payload.get('company') or {}
    doc = SimpleDocTemplate(
        buffer,
        pagesize=pagesize,
        title=f'Quotation {number}',
        author=company.get('name') or DEFAULT_COMPANY['name'],
        subject='Quotation Document',
        topMargin=margin,
        bottomMargin=margin,
        leftMargin=margin,
        rightMargin=margin,
    )
    st = _styles()
    width = doc.width

    elements = [
        Paragraph('QUOTATION', st['title']),
        Spacer(1, 4),
        HRFlowable(width='100%', thickness=2, color=INK, spaceAfter=18),
        _header(payload, st, width),
        Spacer(1, 18),
        _amount_section(payload, money, totals, st, width, print_background),
        Spacer(1, 12),
        _items_table(payload, money, st, width, print_background),
        _totals_table(money, totals, st, width, print_background),
    ]
    if quotation.get('notes'):
        elements += [Spacer(1, 18), _notes_section(quotation['notes'], st, width, print_background)]

    doc.build(elements)
    pdf_bytes = buffer.getvalue()
    buffer.close()
    return pdf_bytes
