from flask import Blueprint, jsonify, request, current_app
from quizbooth import socketio
from quizbooth.models import Game
from quizbooth.services.gameplay.machine import NO_SESSION
from quizbooth.services.gameplay.registry import get_gameplay


sessions = Blueprint('sessions', __name__)

DEFAULT_CLIENT_ID = 'default'


def _client_id() -> str:
    return (request.headers.get('X-Client-Id') or DEFAULT_CLIENT_ID).strip() or DEFAULT_CLIENT_ID


def _emit_state(game_id: str) -> None:
    socketio.emit('state_update', {'game_id': game_id}, to=f"game:{game_id}", namespace='/ws')


def _active_machine(game_id: str):
    """The machine for this client/game, or None if the page never initialized it."""
    machine = get_gameplay(current_app).existing_machine(_client_id(), game_id)
    if machine is None or machine.state == NO_SESSION:
        return None
    return machine


def _not_initialized():
    return jsonify({'error': 'Session not initialized; call initialize first'}), 400


@sessions.route('/<string:game_id>/initialize', methods=['POST'])
def initialize_session(game_id):
    Game.query.filter_by(id=game_id).first_or_404()
    machine = get_gameplay(current_app).machine(_client_id(), game_id)
    machine.initialize(game_id)
    if not machine.questions:
        machine.teardown()
        return jsonify({'error': 'Game has no questions'}), 404
    _emit_state(game_id)
    return jsonify(machine.to_dict())


@sessions.route('/<string:game_id>/state', methods=['GET'])
def get_session_state(game_id):
    machine = _active_machine(game_id)
    if machine is None:
        return _not_initialized()
    return jsonify(machine.to_dict())


@sessions.route('/<string:game_id>/answer', methods=['POST'])
def submit_answer(game_id):
    data = request.get_json(silent=True) or {}
    answer_index = data.get('answer_index')
    if isinstance(answer_index, bool) or not isinstance(answer_index, int):
        return jsonify({'error': 'answer_index must be an integer'}), 400
    machine = _active_machine(game_id)
    if machine is None:
        return _not_initialized()
    result = machine.submit_answer(answer_index)
    payload = machine.to_dict()
    payload['accepted'] = result is not None
    if result is not None:
        payload['points'] = result.points
        payload['newStreak'] = result.new_streak
        _emit_state(game_id)
    return jsonify(payload)


@sessions.route('/<string:game_id>/advance', methods=['POST'])
def advance_session(game_id):
    machine = _active_machine(game_id)
    if machine is None:
        return _not_initialized()
    machine.advance()
    _emit_state(game_id)
    return jsonify(machine.to_dict())


@sessions.route('/<string:game_id>/unload', methods=['POST'])
def unload_session(game_id):
    machine = _active_machine(game_id)
    if machine is None:
        return jsonify({'saved': False})
    saved = machine.persist_timer_on_unload()
    time_left = machine.session.current_question_time_left if saved else None
    return jsonify({'saved': saved, 'timeLeft': time_left})


@sessions.route('/<string:game_id>/reset', methods=['POST'])
def reset_session(game_id):
    Game.query.filter_by(id=game_id).first_or_404()
    machine = get_gameplay(current_app).machine(_client_id(), game_id)
    machine.reset(game_id)
    _emit_state(game_id)
    return jsonify(machine.to_dict())


@sessions.route('/<string:game_id>/results', methods=['GET'])
def get_results(game_id):
    results = get_gameplay(current_app).results_store(_client_id()).load(game_id)
    if results is None:
        return jsonify({'error': 'No results for this game'}), 404
    return jsonify(results.to_dict())


@sessions.route('/<string:game_id>/first-completion', methods=['GET'])
def get_first_completion(game_id):
    lock = get_gameplay(current_app).completion_lock(_client_id())
    record = lock.get_valid_record(game_id)
    session_id = request.args.get('session_id')
    is_first = lock.is_first_completion(game_id, session_id) if session_id else None
    return jsonify({
        'hasValidRecord': record is not None,
        'isFirstCompletion': is_first,
        'record': record,
    })


@sessions.route('/<string:game_id>/first-completion/results', methods=['GET'])
def get_locked_results(game_id):
    locked = get_gameplay(current_app).completion_lock(_client_id()).locked_results(game_id)
    if locked is None:
        return jsonify({'error': 'No first completion for this game'}), 404
    return jsonify(locked.to_dict())
