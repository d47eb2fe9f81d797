from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from typing import Dict, Any
import logging

from quizbooth import socketio
from quizbooth.services.gameplay.registry import get_gameplay

logger = logging.getLogger(__name__)

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _persist_timer(client_id: str, game_id: str) -> bool:
    machine = get_gameplay(current_app).existing_machine(client_id, game_id)
    if machine is None:
        return False
    return machine.persist_timer_on_unload()


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    # A dropped socket is treated like a page unload for the game it joined
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx:
        return
    if any(other == ctx for other in _sid_to_ctx.values()):
        # Another tab of the same client still plays this game
        logger.info(f"[ws-disconnect] client={ctx['client_id']} game={ctx['game_id']} other sockets remain")
        return
    saved = _persist_timer(ctx['client_id'], ctx['game_id'])
    logger.info(f"[ws-disconnect] client={ctx['client_id']} game={ctx['game_id']} timer_saved={saved}")


def handle_join_game(data):
    game_id = (data or {}).get('game_id')
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    client_id = (data or {}).get('client_id') or 'default'
    room = f"game:{game_id}"
    join_room(room)
    _sid_to_ctx[_get_sid()] = {'game_id': game_id, 'client_id': client_id}
    emit('joined', {'room': room})


def handle_leave_game(data):
    game_id = (data or {}).get('game_id')
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    room = f"game:{game_id}"
    leave_room(room)
    _sid_to_ctx.pop(_get_sid(), None)
    emit('left', {'room': room})


def handle_page_unload(data):
    data = data or {}
    game_id = data.get('game_id')
    if not game_id:
        emit('error', {'message': 'game_id is required'})
        return
    client_id = data.get('client_id') or 'default'
    saved = _persist_timer(client_id, game_id)
    emit('unload_saved', {'game_id': game_id, 'saved': saved})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'join_game': handle_join_game,
        'leave_game': handle_leave_game,
        'page_unload': handle_page_unload,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)
