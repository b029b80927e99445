from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP

from quotedesk import db

CENT = Decimal('0.01')

STATUS_DRAFT    = 'Draft'
STATUS_SENT     = 'Sent'
STATUS_ACCEPTED = 'Accepted'
STATUS_DECLINED = 'Declined'
STATUS_EXPIRED  = 'Expired'

STATUSES = (STATUS_DRAFT, STATUS_SENT, STATUS_ACCEPTED, STATUS_DECLINED, STATUS_EXPIRED)

# Suggested next statuses for clients.  Not enforced on writes.
STATUS_TRANSITIONS = {
    STATUS_DRAFT:    (STATUS_DRAFT, STATUS_SENT, STATUS_EXPIRED),
    STATUS_SENT:     (STATUS_SENT, STATUS_ACCEPTED, STATUS_DECLINED, STATUS_EXPIRED),
    STATUS_ACCEPTED: (),
    STATUS_DECLINED: (),
    STATUS_EXPIRED:  (),
}


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


class Customer(db.Model):
    __tablename__ = 'customer'
    id             = db.Column(db.Integer, primary_key=True)
    name           = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=False)
    email          = db.Column(db.String(255), unique=True, nullable=False)
    phone          = db.Column(db.String(255), nullable=False)
    address        = db.Column(db.Text, nullable=False)
    address2       = db.Column(db.String(255))
    city           = db.Column(db.String(255))
    state          = db.Column(db.String(255))
    postal_code    = db.Column(db.String(32))
    created_at     = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at     = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    quotations = db.relationship(
        'Quotation',
        back_populates='customer',
        lazy=True,
        cascade='all, delete-orphan'
    )


class Quotation(db.Model):
    __tablename__ = 'quotation'
    id              = db.Column(db.Integer, primary_key=True)
    customer_id     = db.Column(
                        db.Integer,
                        db.ForeignKey('customer.id', ondelete='CASCADE'),
                        nullable=False,
                        index=True
                      )
    quotation_date  = db.Column(db.Date, nullable=False, index=True)
    status          = db.Column(db.String(32), nullable=False, default=STATUS_DRAFT, index=True)
    currency        = db.Column(db.String(3), nullable=False, default='MYR')
    conversion_rate = db.Column(db.Numeric(8, 4), nullable=False, default=Decimal('1.0000'))
    payment_terms   = db.Column(db.String(255), nullable=False, default='Net 30 Days')
    notes           = db.Column(db.JSON, nullable=True)
    total_amount    = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal('0.00'))
    created_at      = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at      = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at      = db.Column(db.DateTime, nullable=True)

    customer = db.relationship('Customer', back_populates='quotations')
    items = db.relationship(
        'QuotationItem',
        back_populates='quotation',
        lazy=True,
        cascade='all, delete-orphan',
        order_by='QuotationItem.id'
    )

    @classmethod
    def active(cls):
        """Query over quotations that have not been soft deleted."""
        return cls.query.filter(cls.deleted_at.is_(None))

    @property
    def number(self):
        return f'QUO-{self.id}'

    @property
    def deleted(self):
        return self.deleted_at is not None

    @property
    def available_statuses(self):
        return list(STATUS_TRANSITIONS.get(self.status, ()))

    @property
    def editable(self):
        return bool(STATUS_TRANSITIONS.get(self.status))

    def valid_until(self, validity_days: int):
        if self.quotation_date is None:
            return None
        return self.quotation_date + timedelta(days=validity_days)

    def recalculate_total(self):
        """Set ``total_amount`` to the sum of the current item line totals."""
        self.total_amount = sum((i.line_total for i in self.items), Decimal('0.00'))
        return self.total_amount

    def soft_delete(self):
        self.deleted_at = datetime.utcnow()

    def restore(self):
        self.deleted_at = None


class QuotationItem(db.Model):
    __tablename__ = 'quotation_item'
    id           = db.Column(db.Integer, primary_key=True)
    quotation_id = db.Column(
                    db.Integer,
                    db.ForeignKey('quotation.id', ondelete='CASCADE'),
                    nullable=False
                   )
    description  = db.Column(db.String(255), nullable=False)
    quantity     = db.Column(db.Numeric(10, 2), nullable=False)
    unit_price   = db.Column(db.Numeric(10, 2), nullable=False)
    created_at   = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at   = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    quotation = db.relationship('Quotation', back_populates='items')

    @property
    def line_total(self):
        return to_money(Decimal(str(self.quantity)) * Decimal(str(self.unit_price)))
