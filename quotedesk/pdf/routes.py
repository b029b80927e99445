# quotedesk/pdf/routes.py

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from quotedesk.pdf.render import render_quotation_pdf, validate_pdf_payload
from quotedesk.pdf.utils import pdf_response, safe_filename
from quotedesk.ratelimit import rate_limited

logger = logging.getLogger(__name__)

bp = Blueprint('pdf', __name__)

STARTED_AT = time.monotonic()


@bp.route('/health')
def health():
    return jsonify(
        status='OK',
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime=round(time.monotonic() - STARTED_AT, 3),
    )


@bp.route('/generate-quotation-pdf', methods=['POST'])
@rate_limited
def generate_quotation_pdf():
    """
    Render a quotation supplied entirely in the request body.
    Expects { quotation, customer, items, company?, filename?, options? }
    and answers with the PDF as an attachment.
    """
    data = request.get_json(silent=True)
    validate_pdf_payload(data)

    options = data.get('options') or {}
    pdf_bytes = render_quotation_pdf(
        data, options, tax_rate=current_app.config['QUOTATION_TAX_RATE']
    )
    logger.info(
        'Generated PDF for quotation %s (%d bytes)',
        data['quotation']['id'], len(pdf_bytes),
    )
    return pdf_response(pdf_bytes, safe_filename(data.get('filename')))
