import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from deadbyai.models import Room, Visibility, generate_room_code, normalize_room_code
from deadbyai.services.judge import judge_from_config
from deadbyai.services.session import RoomSession, run_inline
from deadbyai.services.timer import TimerService


class NullChannel:
    """Channel that drops every event; used until a gateway is attached."""

    def broadcast(self, event, payload, skip=None):
        pass

    def send(self, player_id, event, payload):
        pass


class RoomRegistry:
    """Owns every live room, keyed by room code.

    Follows the Flask extension pattern: create it at import time and bind
    it to an app with ``init_app``. Binding resets the registry.
    """

    def __init__(self):
        self._rooms: Dict[str, RoomSession] = {}
        # Every code handed out by this process; a removed code is never reissued.
        # Grows for the life of the process, bounded by the code space
        # (36 ** ROOM_CODE_LENGTH). Only close_all() clears it.
        self._issued = set()
        self._lock = threading.Lock()
        self.config = {}
        self.logger = logging.getLogger(__name__)
        self.judge: Optional[Callable] = None
        self.timers = TimerService(autostart=False)
        self._channel_factory: Callable = lambda code: NullChannel()
        self._background: Optional[Callable] = None
        self._sleep: Callable[[float], None] = time.sleep

    def init_app(self, app, judge: Optional[Callable] = None, channel_factory: Optional[Callable] = None,
                 background: Optional[Callable] = None, sleep: Callable[[float], None] = time.sleep) -> None:
        """Bind to ``app``.

        ``background`` starts a background task (``socketio.start_background_task``).
        Without it, timers are created idle and judge calls run inline.
        """
        self.close_all()
        self.config = app.config
        self.logger = app.logger
        self.judge = judge or judge_from_config(app.config)
        if channel_factory is not None:
            self._channel_factory = channel_factory
        self._background = background
        self._sleep = sleep
        self.timers = TimerService(
            spawn=background,
            sleep=sleep,
            interval=int(app.config.get('TIMER_TICK_SEC', 1)),
            autostart=background is not None,
            logger=app.logger,
        )
        app.extensions['deadbyai.rooms'] = self

    # ---- lifecycle ----

    def create(self, visibility: Visibility = Visibility.PUBLIC) -> RoomSession:
        length = int(self.config.get('ROOM_CODE_LENGTH', 6))
        with self._lock:
            code = generate_room_code(length, taken=self._issued)
            self._issued.add(code)
            room = Room(code, visibility=visibility, max_players=int(self.config.get('MAX_PLAYERS', 2)))
            session = RoomSession(
                room,
                channel=self._channel_factory(code),
                timers=self.timers,
                judge=self.judge,
                spawn=self._background or run_inline,
                sleep=self._sleep,
                config=self.config,
                logger=self.logger,
            )
            self._rooms[code] = session
        self.logger.info(f"[room-create] room={code} visibility={visibility.value}")
        return session

    def find(self, code) -> Optional[RoomSession]:
        with self._lock:
            return self._rooms.get(normalize_room_code(code))

    def remove(self, code) -> Optional[RoomSession]:
        with self._lock:
            session = self._rooms.pop(normalize_room_code(code), None)
        if session is not None:
            session.close()
            self.logger.info(f"[room-remove] room={session.code}")
        return session

    def reap(self, code) -> None:
        """Remove the room if nobody is left in it, now or after the grace delay."""
        session = self.find(code)
        if session is None or not session.is_empty:
            return
        delay = float(self.config.get('ROOM_REAP_DELAY_SEC', 0))
        if delay > 0 and self._background is not None:
            self._background(self._reap_later, session, delay)
        else:
            self._reap_now(session)

    def _reap_later(self, session: RoomSession, delay: float) -> None:
        self._sleep(delay)
        self._reap_now(session, delay)

    def _reap_now(self, session: RoomSession, delay: float = 0) -> None:
        with self._lock:
            # Only the same, still empty, room object goes
            if self._rooms.get(session.code) is not session or not session.is_empty:
                return
            self._rooms.pop(session.code, None)
        session.close()
        self.logger.info(f"[room-remove] room={session.code} after={delay}s")

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._rooms.values())
            self._rooms.clear()
            self._issued.clear()
        for session in sessions:
            session.close()
        self.timers.cancel_all()

    # ---- queries ----

    def list_public(self) -> List[dict]:
        with self._lock:
            sessions = list(self._rooms.values())
        summaries = []
        for session in sessions:
            if not session.room.is_public:
                continue
            summary = session.summary()
            if summary['playerCount'] > 0:
                summaries.append(summary)
        return summaries

    def __len__(self):
        with self._lock:
            return len(self._rooms)

    def __contains__(self, code):
        return self.find(code) is not None
