from flask import Blueprint, request, jsonify, current_app

bp = Blueprint('payments', __name__, url_prefix='/api/v1/payments')


@bp.route('/<reference>', methods=['GET'])
def get_payment(reference: str):
    """Options the browser passes to PaystackPop.setup for a pending payment."""
    options = current_app.payment_gate.provider.get_pending(reference)
    if not options:
        return jsonify({'error': 'Payment not found'}), 404
    return jsonify(options)


@bp.route('/<reference>/callback', methods=['POST'])
def payment_callback(reference: str):
    """Popup reported a completed transaction."""
    workflow = current_app.registry.find_by_reference(reference)
    if not current_app.payment_gate.provider.complete(reference, request.json or {}):
        return jsonify({'error': 'Payment not found'}), 404
    return jsonify({
        'message': 'Payment received',
        'registration': workflow.to_dict() if workflow else None
    })


@bp.route('/<reference>/close', methods=['POST'])
def payment_closed(reference: str):
    """Popup was dismissed without paying."""
    workflow = current_app.registry.find_by_reference(reference)
    if not current_app.payment_gate.provider.dismiss(reference):
        return jsonify({'error': 'Payment not found'}), 404
    return jsonify({
        'message': 'Payment cancelled',
        'registration': workflow.to_dict() if workflow else None
    })
