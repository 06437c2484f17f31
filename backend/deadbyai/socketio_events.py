"""Socket.IO gateway.

Binds each connection to one (room, player) at ``joinRoom`` time, routes
the connection's later actions to that room's session, and delivers the
session's events to the room's Socket.IO channel.
"""

import functools
import threading
import uuid
from typing import Any, Dict, Optional, Tuple

from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from deadbyai import rooms, socketio
from deadbyai.errors import GameError, RoomNotFoundError, ValidationError
from deadbyai.models import Visibility, is_valid_room_code, normalize_room_code
from deadbyai.services.session import RoomSession, validate_player_name

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}
_player_sid: Dict[str, str] = {}
_ctx_lock = threading.Lock()


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def room_channel(room_code: str) -> str:
    return f"room:{room_code}"


class SocketChannel:
    """Delivers one room's events to the connections attached to it."""

    def __init__(self, room_code: str, namespace: str = '/'):
        self.room_code = room_code
        self.channel = room_channel(room_code)
        self.namespace = namespace

    def broadcast(self, event: str, payload: dict, skip: Optional[str] = None) -> None:
        skip_sid = _player_sid.get(skip) if skip else None
        socketio.emit(event, payload, to=self.channel, skip_sid=skip_sid, namespace=self.namespace)

    def send(self, player_id: str, event: str, payload: dict) -> None:
        sid = _player_sid.get(player_id)
        if sid:
            socketio.emit(event, payload, to=sid, namespace=self.namespace)


def reports_errors(handler):
    """Turn failures into an ``error`` event for the sending connection only."""

    @functools.wraps(handler)
    def wrapper(*args, **kwargs):
        try:
            return handler(*args, **kwargs)
        except GameError as exc:
            current_app.logger.info(f"[rejected] sid={_get_sid()} action={handler.__name__} reason={exc.message}")
            emit('error', exc.to_dict())
        except Exception:
            current_app.logger.exception(f"[handler-error] sid={_get_sid()} action={handler.__name__}")
            emit('error', {'message': 'Server error processing action'})

    return wrapper


def _bound_session() -> Tuple[RoomSession, str]:
    with _ctx_lock:
        ctx = _sid_to_ctx.get(_get_sid())
    if not ctx or ctx.get('pending'):
        raise GameError('Not in a room')
    session = rooms.find(ctx['room_code'])
    if session is None:
        raise GameError('Not in a room')
    return session, ctx['player_id']


def _release(sid: str, ctx: Dict[str, Any]) -> None:
    """Drop a join reservation, unless something else already took it."""
    with _ctx_lock:
        if _sid_to_ctx.get(sid) is ctx:
            _sid_to_ctx.pop(sid)
        if ctx.get('player_id'):
            _player_sid.pop(ctx['player_id'], None)


def _detach(sid: str) -> Optional[Dict[str, Any]]:
    with _ctx_lock:
        ctx = _sid_to_ctx.pop(sid, None)
        if ctx and ctx.get('player_id'):
            _player_sid.pop(ctx['player_id'], None)
    if not ctx or not ctx.get('room_code'):
        # Unbound, or a join still resolving its room; that join cleans up after itself
        return ctx
    room_code, player_id = ctx['room_code'], ctx['player_id']
    session = rooms.find(room_code)
    if session is not None:
        session.leave(player_id)
    leave_room(room_channel(room_code), sid=sid)
    rooms.reap(room_code)
    return ctx


def handle_connect(auth=None):
    current_app.logger.info(f"[connect] sid={_get_sid()}")


def handle_disconnect(reason=None):
    sid = _get_sid()
    ctx = _detach(sid)
    current_app.logger.info(
        f"[disconnect] sid={sid} room={ctx.get('room_code') if ctx else None} reason={reason}"
    )


def _resolve_room(data) -> Tuple[RoomSession, bool]:
    requested = normalize_room_code(data.get('roomCode'))
    if requested:
        if not is_valid_room_code(requested, int(current_app.config.get('ROOM_CODE_LENGTH', 6))):
            raise ValidationError('Invalid room code')
        session = rooms.find(requested)
        if session is None:
            raise RoomNotFoundError(requested)
        return session, False
    is_public = data.get('isPublic', True) is not False
    return rooms.create(Visibility.PUBLIC if is_public else Visibility.PRIVATE), True


@reports_errors
def handle_join_room(data=None):
    data = data or {}
    sid = _get_sid()
    # The sid is reserved before the player exists, so a second join or a
    # disconnect arriving mid-join always finds it.
    ctx: Dict[str, Any] = {'pending': True}
    with _ctx_lock:
        if sid in _sid_to_ctx:
            raise ValidationError('You are already in a room')
        _sid_to_ctx[sid] = ctx
    try:
        name = validate_player_name(data.get('playerName'), int(current_app.config.get('PLAYER_NAME_MAX_LENGTH', 32)))
        session, created = _resolve_room(data)
    except GameError:
        _release(sid, ctx)
        raise

    player_id = uuid.uuid4().hex
    channel = room_channel(session.code)
    with _ctx_lock:
        reserved = _sid_to_ctx.get(sid) is ctx
        if reserved:
            ctx.update(room_code=session.code, player_id=player_id)
            _player_sid[player_id] = sid
    if not reserved:
        current_app.logger.info(f"[join-abort] sid={sid} room={session.code} detached before join")
        if created:
            rooms.reap(session.code)
        return

    join_room(channel)
    try:
        session.join(player_id, name)
        if rooms.find(session.code) is not session:
            # Reaped between lookup and join
            session.leave(player_id)
            raise RoomNotFoundError(session.code)
    except GameError:
        _release(sid, ctx)
        leave_room(channel)
        if created:
            rooms.reap(session.code)
        raise

    with _ctx_lock:
        bound = _sid_to_ctx.get(sid) is ctx
        if bound:
            ctx.pop('pending', None)
    if not bound:
        # Detached while joining; the detach may have run before the player existed
        current_app.logger.info(f"[join-abort] sid={sid} room={session.code} player={player_id}")
        session.leave(player_id)
        rooms.reap(session.code)


@reports_errors
def handle_start_game(data=None):
    data = data or {}
    session, player_id = _bound_session()
    session.start_round(player_id, data.get('customPrompt'), data.get('timeLimit'))


@reports_errors
def handle_submit_story(data=None):
    session, player_id = _bound_session()
    session.submit(player_id, (data or {}).get('story'))


@reports_errors
def handle_judge_stories(data=None):
    session, player_id = _bound_session()
    session.request_judging(player_id)


@reports_errors
def handle_next_round(data=None):
    session, player_id = _bound_session()
    session.next_round(player_id)


@reports_errors
def handle_leave_room(data=None):
    ctx = _detach(_get_sid())
    if not ctx or not ctx.get('room_code'):
        raise GameError('Not in a room')
    emit('roomLeft', {'roomCode': ctx['room_code']})


def register_socketio_handlers(namespace: str = '/') -> None:
    """Register Socket.IO event handlers and forget connections of a previous app."""
    with _ctx_lock:
        _sid_to_ctx.clear()
        _player_sid.clear()

    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('joinRoom', handle_join_room, namespace=namespace)
    socketio.on_event('startGame', handle_start_game, namespace=namespace)
    socketio.on_event('submitStory', handle_submit_story, namespace=namespace)
    socketio.on_event('judgeStories', handle_judge_stories, namespace=namespace)
    socketio.on_event('nextRound', handle_next_round, namespace=namespace)
    socketio.on_event('leaveRoom', handle_leave_room, namespace=namespace)
