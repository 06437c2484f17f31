"""Socket.IO game client: sends player actions, feeds events to a projection."""

import logging
import threading
from typing import Callable, List, Optional

import requests
import socketio

from deadbyai.client.projection import ClientProjection

logger = logging.getLogger(__name__)


class GameClient:
    """One player's connection to the game server.

    Inbound events are applied to ``projection`` on the Socket.IO client's
    own thread; ``on_change`` (if given) is called after each one.
    """

    def __init__(self, server_url: str, projection: Optional[ClientProjection] = None,
                 sio: Optional[socketio.Client] = None, on_change: Optional[Callable[[str], None]] = None,
                 http=requests):
        self.server_url = server_url.rstrip('/')
        self.projection = projection or ClientProjection()
        self.sio = sio or socketio.Client(reconnection=True)
        self.on_change = on_change
        self._http = http
        self._lock = threading.Lock()
        for event in self.projection.events:
            self.sio.on(event, self._make_handler(event))

    def _make_handler(self, event: str):
        def handler(data=None):
            with self._lock:
                self.projection.apply(event, data)
            logger.debug(f"[net] received {event}")
            if self.on_change:
                self.on_change(event)
        return handler

    # ---- connection ----

    def connect(self, transports: Optional[List[str]] = None) -> None:
        self.sio.connect(self.server_url, transports=transports)

    def disconnect(self) -> None:
        self.sio.disconnect()

    @property
    def connected(self) -> bool:
        return bool(getattr(self.sio, 'connected', False))

    # ---- actions ----

    def join_room(self, player_name: str, room_code: Optional[str] = None, is_public: bool = True) -> bool:
        name = (player_name or '').strip()
        if not name:
            return False
        payload = {'playerName': name, 'isPublic': is_public}
        if room_code and room_code.strip():
            payload['roomCode'] = room_code.strip().upper()
        self.sio.emit('joinRoom', payload)
        return True

    def start_game(self, custom_prompt: Optional[str] = None, time_limit: int = 120) -> None:
        payload = {'timeLimit': time_limit}
        if custom_prompt and custom_prompt.strip():
            payload['customPrompt'] = custom_prompt.strip()
        self.sio.emit('startGame', payload)

    def submit_story(self, story: str) -> bool:
        """Send the story unless one is already out for this round."""
        story = (story or '').strip()
        with self._lock:
            if not story or not self.projection.can_submit():
                return False
            self.projection.mark_submission_sent()
        self.sio.emit('submitStory', {'story': story})
        return True

    def judge_stories(self) -> None:
        self.sio.emit('judgeStories', {})

    def next_round(self) -> None:
        self.sio.emit('nextRound', {})

    def leave_room(self) -> None:
        self.sio.emit('leaveRoom', {})

    # ---- read-only queries ----

    def fetch_rooms(self) -> List[dict]:
        response = self._http.get(f"{self.server_url}/api/rooms", timeout=10)
        response.raise_for_status()
        return response.json()

    def fetch_prompts(self) -> List[str]:
        response = self._http.get(f"{self.server_url}/api/prompts", timeout=10)
        response.raise_for_status()
        return response.json()
