import logging
import random
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

import click
from flask import current_app
from flask.cli import AppGroup

from quotedesk import db
from quotedesk.models import Customer, Quotation, STATUSES
from quotedesk.pdf.render import render_quotation_pdf
from quotedesk.pdf.utils import payload_from_quotation
from quotedesk.quotations.utils import save_quotation

logger = logging.getLogger(__name__)

quotations_cli = AppGroup('quotations', help='Quotation maintenance commands.')

DEMO_COMPANIES = [
    ('ABC Corporation', 'Mr. John Smith', 'New York', 'NY', '10001'),
    ('Sakura Travel KK', 'Ms. Yui Tanaka', 'Osaka', 'Osaka', '530-0001'),
    ('Borneo Adventures', 'Mr. Amir Hassan', 'Kota Kinabalu', 'Sabah', '88000'),
    ('Northwind Traders', 'Ms. Anne Dodsworth', 'Seattle', 'WA', '98101'),
    ('Penang Heritage Tours', 'Mr. Lim Wei', 'George Town', 'Penang', '10200'),
]

DEMO_ITEMS = [
    ('Website Design & Development', Decimal('5500.00')),
    ('SEO Optimization Package', Decimal('1200.00')),
    ('Content Management System Setup', Decimal('800.00')),
    ('Logo Design & Branding', Decimal('750.00')),
    ('Monthly Maintenance (6 months)', Decimal('150.00')),
    ('Airport transfer (per vehicle)', Decimal('120.00')),
    ('Guided city tour (per person)', Decimal('85.50')),
]


def seed_demo(customers: int = 5, rng: random.Random | None = None) -> list[Quotation]:
    """Create demo customers with a few quotations each; totals recomputed."""
    rng = rng or random.Random()
    created = []
    offset = Customer.query.count()
    for n in range(customers):
        idx = offset + n + 1
        name, contact, city, state, postal = DEMO_COMPANIES[(idx - 1) % len(DEMO_COMPANIES)]
        c = Customer(
            name=name if idx <= len(DEMO_COMPANIES) else f'{name} {idx}',
            contact_person=contact,
            email=f'demo{idx}@example.com',
            phone='000-0000-0000',
            address=f'{100 + idx} Business Avenue',
            city=city,
            state=state,
            postal_code=postal,
        )
        db.session.add(c)
        db.session.commit()

        for _ in range(rng.randint(1, 2)):
            items = [
                {
                    'description': desc,
                    'quantity'   : Decimal(rng.randint(1, 10)),
                    'unit_price' : price,
                }
                for desc, price in rng.sample(DEMO_ITEMS, rng.randint(2, 5))
            ]
            q = save_quotation({
                'customer_id'   : c.id,
                'quotation_date': date.today() + timedelta(days=rng.randint(0, 30)),
                'status'        : rng.choice(STATUSES),
                'notes'         : ['Payment is due within 30 days of invoice date'],
                'items'         : items,
            })
            created.append(q)
    return created


@quotations_cli.command('seed-demo')
@click.option('--customers', default=5, show_default=True, help='Number of demo customers')
@click.option('--seed', type=int, default=None, help='Random seed for repeatable data')
def seed_demo_command(customers: int, seed: int | None) -> None:
    created = seed_demo(customers, random.Random(seed))
    click.echo(f'Created {customers} customers and {len(created)} quotations')


@quotations_cli.command('render')
@click.argument('quotation_id', type=int)
@click.option('--output', '-o', type=click.Path(dir_okay=False), default=None,
              help='Target file (default Quotation_<id>.pdf)')
def render_command(quotation_id: int, output: str | None) -> None:
    """Write the PDF of a stored quotation to a file."""
    q = db.session.get(Quotation, quotation_id)
    if q is None:
        raise click.ClickException(f'Quotation {quotation_id} not found')
    pdf_bytes = render_quotation_pdf(
        payload_from_quotation(q),
        tax_rate=current_app.config['QUOTATION_TAX_RATE'],
    )
    path = Path(output or f'Quotation_{q.id}.pdf')
    path.write_bytes(pdf_bytes)
    logger.info('Rendered quotation %s to %s', q.id, path)
    click.echo(f'Wrote {path} ({len(pdf_bytes)} bytes)')
