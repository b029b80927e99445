# quotedesk/customers/routes.py

import logging

from flask import Blueprint, jsonify, request
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from quotedesk import db
from quotedesk.errors import ValidationError
from quotedesk.models import Customer
from quotedesk.utils import json_body, paginated
from quotedesk.customers.utils import validate_customer, serialize_customer

logger = logging.getLogger(__name__)

bp = Blueprint('customers', __name__)


@bp.route('', methods=['GET'])
def list_customers():
    query = Customer.query
    q = request.args.get('q', '').strip()
    if q:
        term = f'%{q}%'
        query = query.filter(or_(
            Customer.name.ilike(term),
            Customer.contact_person.ilike(term),
            Customer.email.ilike(term),
        ))
    return jsonify(paginated(query.order_by(Customer.name, Customer.id), serialize_customer))


@bp.route('', methods=['POST'])
def create_customer():
    data = validate_customer(json_body())
    c = Customer(**data)
    db.session.add(c)
    try:
        db.session.commit()
    except IntegrityError:
        # lost a race on the unique email
        db.session.rollback()
        raise ValidationError({'email': ['The email has already been taken.']})
    logger.info('Created customer %s', c.id)
    return jsonify(serialize_customer(c, with_counts=True)), 201


@bp.route('/<int:customer_id>', methods=['GET'])
def view_customer(customer_id):
    c = Customer.query.get_or_404(customer_id)
    return jsonify(serialize_customer(c, with_counts=True))


@bp.route('/<int:customer_id>', methods=['PUT', 'PATCH'])
def update_customer(customer_id):
    c = Customer.query.get_or_404(customer_id)
    data = validate_customer(json_body(), customer=c, partial=request.method == 'PATCH')
    for field, value in data.items():
        setattr(c, field, value)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError({'email': ['The email has already been taken.']})
    return jsonify(serialize_customer(c, with_counts=True))


@bp.route('/<int:customer_id>', methods=['DELETE'])
def delete_customer(customer_id):
    """
    Delete a customer together with its quotations and their items.
    """
    c = Customer.query.get_or_404(customer_id)
    db.session.delete(c)
    db.session.commit()
    logger.info('Deleted customer %s', customer_id)
    return '', 204
