from flask import Blueprint, jsonify, request, current_app

from basecanvas.services.canvas.errors import CanvasError


canvas = Blueprint('canvas', __name__)


def _service():
    return current_app.extensions['canvas']


@canvas.errorhandler(CanvasError)
def handle_canvas_error(exc: CanvasError):
    return jsonify(exc.to_dict()), exc.status


@canvas.route('/paint', methods=['POST'])
def paint():
    data = request.get_json(silent=True) or {}
    cell = _service().paint(
        payment_ref=data.get('paymentRef'),
        cell_index=data.get('cellIndex'),
        actor=data.get('actor'),
        annotation=data.get('annotation'),
        captcha_token=data.get('captchaToken'),
    )
    return jsonify({'success': True, 'cell': cell.to_dict()})


@canvas.route('/user/<string:actor>', methods=['GET'])
def user_state(actor):
    return jsonify(_service().user_state(actor))


@canvas.route('/airdrop/claim', methods=['POST'])
def claim_airdrop():
    data = request.get_json(silent=True) or {}
    claimed = _service().claim_airdrop(data.get('actor'), data.get('airdropId'))
    if not claimed:
        # Lost the race or stale id: a normal rejection, not an error
        return jsonify({'success': False, 'message': 'No matching airdrop to claim'})
    return jsonify({'success': True})


@canvas.route('/canvas', methods=['GET'])
def canvas_summary():
    return jsonify(_service().summary())


@canvas.route('/cells/<int:index>', methods=['GET'])
def get_cell(index):
    return jsonify(_service().cell(index).to_dict())
