# loyalty_wallet/routes/public.py

"""
Public Wallet Routes

Serves stored .pkpass files and a small JSON API for issuing and
previewing loyalty cards. No authentication here; deployments put these
behind their own gateway.
"""

import logging
from io import BytesIO

from flask import Blueprint, request, jsonify, send_file, make_response, current_app

from loyalty_wallet.errors import (
    WalletError, InvalidCardRequest, ConfigurationError, SigningError,
    BundleValidationError, UploadError, WalletApiError
)
from loyalty_wallet.services.storage import PKPASS_CONTENT_TYPE

logger = logging.getLogger(__name__)

public_wallet_bp = Blueprint('public_wallet', __name__)

STATUS_BY_ERROR = {
    InvalidCardRequest.error_code: 400,
    BundleValidationError.error_code: 422,
    ConfigurationError.error_code: 503,
    SigningError.error_code: 502,
    UploadError.error_code: 502,
    WalletApiError.error_code: 502,
}


def get_issuer():
    return current_app.extensions['wallet_issuer']


def status_for(error_code: str) -> int:
    if error_code in STATUS_BY_ERROR:
        return STATUS_BY_ERROR[error_code]
    # Signing failures carry more specific codes
    if error_code and error_code.startswith(('REMOTE_SIGNER', 'SIGNATURE')):
        return 502
    return 500


def parse_points(value) -> int:
    """Accept an integer or a string of digits; anything else is rejected."""
    if isinstance(value, bool):
        raise InvalidCardRequest("Points must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise InvalidCardRequest("Points must be an integer")


@public_wallet_bp.errorhandler(WalletError)
def handle_wallet_error(error: WalletError):
    return jsonify({
        'success': False,
        'message': error.message,
        'error_code': error.error_code,
    }), status_for(error.error_code)


@public_wallet_bp.route('/')
def index():
    """Service status and per-platform configuration."""
    issuer = get_issuer()
    return jsonify({
        'service': 'loyalty-wallet',
        'status': 'ok',
        'platforms': issuer.get_config_status(),
    })


@public_wallet_bp.route('/passes/<path:filename>')
def download_pass(filename):
    """
    Download a stored pass.

    URL: /passes/<card id>.pkpass
    """
    if not filename.endswith('.pkpass'):
        return jsonify({'success': False, 'message': 'Pass not found'}), 404

    store = get_issuer().object_store
    try:
        data = store.get(filename) if store is not None else None
    except UploadError:
        data = None

    if data is None:
        logger.warning(f"Pass not found: {filename}")
        return jsonify({'success': False, 'message': 'Pass not found'}), 404

    response = make_response(send_file(
        BytesIO(data),
        mimetype=PKPASS_CONTENT_TYPE,
        as_attachment=True,
        download_name=filename
    ))

    # Wallet rejects cached or re-typed pass downloads
    response.headers['Content-Type'] = PKPASS_CONTENT_TYPE
    response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'
    response.headers['Pragma'] = 'no-cache'
    return response


@public_wallet_bp.route('/api/cards', methods=['POST'])
def issue_card():
    """
    Issue a card.

    Body:
        customerName: Card holder name
        points: Point balance
        platform: 'apple' or 'google' (defaults to 'apple')
    """
    payload = request.get_json(silent=True) or {}
    points = parse_points(payload.get('points'))
    platform = payload.get('platform', 'apple')

    result = get_issuer().issue(payload.get('customerName'), points, platform=platform)
    if not result.success:
        return jsonify(result.to_dict()), status_for(result.error_code)

    body = result.to_dict()
    body['data'] = result.data.to_dict()
    logger.info(f"Issued {platform} card {result.data.card.short_id} via API")
    return jsonify(body), 201


@public_wallet_bp.route('/api/cards/preview')
def preview_card():
    """Tier and colour for a name and balance, without issuing anything."""
    points = parse_points(request.args.get('points'))
    preview = get_issuer().preview(request.args.get('name'), points)
    return jsonify({'success': True, 'data': preview})
