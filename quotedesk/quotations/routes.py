# quotedesk/quotations/routes.py

import logging

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from quotedesk import db
from quotedesk.errors import ErrorCollector, error_response
from quotedesk.models import Quotation
from quotedesk.utils import is_truthy, json_body, paginated
from quotedesk.pdf.render import render_quotation_pdf, validate_pdf_payload
from quotedesk.pdf.utils import payload_from_quotation, pdf_response
from quotedesk.ratelimit import rate_limited
from quotedesk.quotations.utils import (
    filtered_quotations,
    save_quotation,
    serialize_quotation,
    validate_quotation,
    validate_status,
)

logger = logging.getLogger(__name__)

bp = Blueprint('quotations', __name__)


def _deleted_conflict(q):
    return error_response(f'Quotation #{q.id} has been deleted.', 409)


@bp.route('', methods=['GET'])
def list_quotations():
    query = filtered_quotations(request.args)
    return jsonify(paginated(query, serialize_quotation))


@bp.route('', methods=['POST'])
def create_quotation():
    data = json_body()
    cleaned = validate_quotation(data)
    try:
        q = save_quotation(cleaned)
    except SQLAlchemyError:
        logger.exception('Failed to create quotation (fields: %s)', sorted(data))
        return error_response(
            'Failed to create quotation.', 500,
            error='An unexpected error occurred while creating the quotation.'
        )
    logger.info('Created quotation %s total=%s', q.id, q.total_amount)
    return jsonify(serialize_quotation(q)), 201


@bp.route('/<int:quotation_id>', methods=['GET'])
def view_quotation(quotation_id):
    """Soft-deleted quotations are still returned, flagged ``deleted``."""
    q = Quotation.query.get_or_404(quotation_id)
    return jsonify(serialize_quotation(q))


@bp.route('/<int:quotation_id>', methods=['PUT', 'PATCH'])
def update_quotation(quotation_id):
    q = Quotation.query.get_or_404(quotation_id)
    if q.deleted:
        return _deleted_conflict(q)

    data = json_body()
    cleaned = validate_quotation(data)
    try:
        save_quotation(cleaned, q)
    except SQLAlchemyError:
        logger.exception('Failed to update quotation %s (fields: %s)', quotation_id, sorted(data))
        return error_response(
            'Failed to update quotation.', 500,
            error='An unexpected error occurred while updating the quotation.'
        )
    logger.info('Updated quotation %s total=%s', q.id, q.total_amount)
    return jsonify(serialize_quotation(q))


@bp.route('/<int:quotation_id>/status', methods=['POST', 'PATCH'])
def update_status(quotation_id):
    """
    Set the status to any of the enum values.  The suggested transitions in
    ``available_statuses`` are advisory and not checked here.
    """
    q = Quotation.query.get_or_404(quotation_id)
    if q.deleted:
        return _deleted_conflict(q)

    errors = ErrorCollector()
    status = validate_status(json_body().get('status'), errors, required=True)
    errors.raise_if_any()

    previous, q.status = q.status, status
    db.session.commit()
    logger.info('Quotation %s status %s -> %s', q.id, previous, status)
    return jsonify(serialize_quotation(q))


@bp.route('/<int:quotation_id>', methods=['DELETE'])
def delete_quotation(quotation_id):
    q = Quotation.query.get_or_404(quotation_id)
    if q.deleted:
        return _deleted_conflict(q)
    q.soft_delete()
    db.session.commit()
    logger.info('Soft deleted quotation %s', quotation_id)
    return '', 204


@bp.route('/<int:quotation_id>/restore', methods=['POST'])
def restore_quotation(quotation_id):
    q = Quotation.query.get_or_404(quotation_id)
    q.restore()
    db.session.commit()
    return jsonify(serialize_quotation(q))


@bp.route('/<int:quotation_id>/pdf', methods=['GET'])
@rate_limited
def quotation_pdf(quotation_id):
    q = Quotation.query.get_or_404(quotation_id)
    payload = payload_from_quotation(q)
    validate_pdf_payload(payload)
    pdf_bytes = render_quotation_pdf(
        payload, tax_rate=current_app.config['QUOTATION_TAX_RATE']
    )
    return pdf_response(
        pdf_bytes,
        f'Quotation_{q.id}_{q.quotation_date.isoformat()}.pdf',
        inline=is_truthy(request.args.get('inline')),
    )
