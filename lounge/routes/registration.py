from typing import Optional
from flask import Blueprint, request, jsonify, current_app

from ..api_client import SessionExpiredError
from ..workflow import ManualRegistrationWorkflow, register_for_event

bp = Blueprint('registration', __name__, url_prefix='/api/v1')


def request_token() -> Optional[str]:
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip() or None
    return header.strip() or None


def get_workflow_or_404(workflow_id: str):
    workflow = current_app.registry.get_workflow(workflow_id)
    if not workflow:
        return None, (jsonify({'error': 'Registration not found'}), 404)
    return workflow, None


def participant_fields(data: dict) -> dict:
    fields = {}
    for key in ('full_name', 'email', 'phone_number', 'selected_games'):
        if key in data:
            fields[key] = data[key]
    return fields


# ==================== Workflow lifecycle ====================

@bp.route('/registrations', methods=['POST'])
def create_registration():
    """Open a registration dialog and prefill it."""
    data = request.json or {}
    manual = bool(data.get('manual', False))
    tournament_id = data.get('tournament_id')

    if not manual and not tournament_id:
        return jsonify({'error': 'tournament_id is required'}), 400

    workflow = current_app.registry.create_workflow(
        tournament_id=tournament_id,
        event_title=data.get('event_title', ''),
        token=request_token(),
        session_id=request.headers.get('X-Session-Id'),
        manual=manual
    )
    return jsonify(workflow.to_dict()), 201


@bp.route('/registrations/<workflow_id>', methods=['GET'])
def get_registration(workflow_id: str):
    workflow, error = get_workflow_or_404(workflow_id)
    if error:
        return error
    return jsonify(workflow.to_dict())


@bp.route('/registrations/<workflow_id>', methods=['DELETE'])
def close_registration(workflow_id: str):
    if not current_app.registry.close_workflow(workflow_id):
        return jsonify({'error': 'Registration not found'}), 404
    return jsonify({'message': 'Registration closed'})


@bp.route('/registrations/<workflow_id>/tournament', methods=['POST'])
def select_tournament(workflow_id: str):
    """Manual registration only: switch the target tournament."""
    workflow, error = get_workflow_or_404(workflow_id)
    if error:
        return error
    if not isinstance(workflow, ManualRegistrationWorkflow):
        return jsonify({'error': 'Tournament can only be changed for manual registration'}), 400

    data = request.json or {}
    workflow.select_tournament(data.get('tournament_id'))
    return jsonify(workflow.to_dict())


# ==================== Roster ====================

@bp.route('/registrations/<workflow_id>/participants', methods=['POST'])
def add_participant(workflow_id: str):
    workflow, error = get_workflow_or_404(workflow_id)
    if error:
        return error
    participant = workflow.add_participant(**participant_fields(request.json or {}))
    return jsonify({'participant': participant.to_dict(), 'registration': workflow.to_dict()}), 201


@bp.route('/registrations/<workflow_id>/participants/<participant_id>', methods=['PATCH'])
def update_participant(workflow_id: str, participant_id: str):
    workflow, error = get_workflow_or_404(workflow_id)
    if error:
        return error
    try:
        workflow.update_participant(participant_id, **participant_fields(request.json or {}))
    except KeyError:
        return jsonify({'error': 'Participant not found'}), 404
    return jsonify(workflow.to_dict())


@bp.route('/registrations/<workflow_id>/participants/<participant_id>', methods=['DELETE'])
def remove_participant(workflow_id: str, participant_id: str):
    workflow, error = get_workflow_or_404(workflow_id)
    if error:
        return error
    try:
        workflow.roster.get(participant_id)
    except KeyError:
        return jsonify({'error': 'Participant not found'}), 404
    if not workflow.remove_participant(participant_id):
        return jsonify({'error': 'At least one participant is required'}), 400
    return jsonify(workflow.to_dict())


@bp.route('/registrations/<workflow_id>/participants/<participant_id>/games/<game_id>', methods=['POST'])
def toggle_game(workflow_id: str, participant_id: str, game_id: str):
    workflow, error = get_workflow_or_404(workflow_id)
    if error:
        return error
    try:
        workflow.toggle_game(participant_id, game_id)
    except KeyError:
        return jsonify({'error': 'Participant not found'}), 404
    return jsonify(workflow.to_dict())


# ==================== Submission & recovery ====================

@bp.route('/registrations/<workflow_id>/submit', methods=['POST'])
def submit_registration(workflow_id: str):
    """Validate and start payment (or submit directly for manual registration)."""
    workflow, error = get_workflow_or_404(workflow_id)
    if error:
        return error
    workflow.submit()
    return jsonify(workflow.to_dict())


@bp.route('/registrations/<workflow_id>/participants/<participant_id>/retry', methods=['POST'])
def retry_participant(workflow_id: str, participant_id: str):
    workflow, error = get_workflow_or_404(workflow_id)
    if error:
        return error
    result = workflow.retry_participant(participant_id)
    return jsonify({'result': result.to_dict(), 'registration': workflow.to_dict()})


# ==================== Registration lists & events ====================

@bp.route('/tournaments/<tournament_id>/registrations', methods=['GET'])
def list_tournament_registrations(tournament_id: str):
    """Fetched with the caller's own credentials on every request."""
    store = current_app.registry.session_store(
        token=request_token(),
        session_id=request.headers.get('X-Session-Id')
    )
    if not store.get_token():
        raise SessionExpiredError()
    registrations = current_app.backend_factory(store).get_tournament_registrations(tournament_id)
    return jsonify({
        'registrations': [r.to_dict() for r in registrations],
        'count': len(registrations)
    })


@bp.route('/events/<event_id>/registrations', methods=['POST'])
def register_event(event_id: str):
    data = request.json or {}
    registry = current_app.registry
    backend = current_app.backend_factory(registry.session_store(
        token=request_token(),
        session_id=request.headers.get('X-Session-Id')
    ))
    result = register_for_event(
        backend,
        event_id,
        data.get('full_name', ''),
        data.get('email', ''),
        data.get('phone_number', '')
    )
    return jsonify({'message': 'Registration successful', 'registration': result}), 201
