"""Client-side mirror of a room, rebuilt only from server events.

The projection never decides game outcomes. The one thing it predicts is
"my story is submitted", set the moment the client sends ``submitStory`` so
a second click cannot resend it. That prediction is reconciled with the
server's ``storySubmitted`` events and is never allowed to contradict them.
"""

from typing import Callable, Dict, List, Optional

PHASES = ('login', 'lobby', 'writing', 'judging', 'results')


class ClientProjection:
    def __init__(self, default_time_limit: int = 120):
        self.default_time_limit = default_time_limit
        self.reset()
        self._handlers: Dict[str, Callable[[dict], None]] = {
            'roomJoined': self._on_room_joined,
            'playerJoined': self._on_players,
            'playerLeft': self._on_players,
            'gameStarted': self._on_game_started,
            'timeUpdate': self._on_time_update,
            'timeUp': self._on_time_up,
            'storySubmitted': self._on_story_submitted,
            'allStoriesSubmitted': self._on_all_submitted,
            'judgingStarted': self._on_judging_started,
            'roundResults': self._on_round_results,
            'roundAbandoned': self._on_back_to_lobby,
            'returnedToLobby': self._on_back_to_lobby,
            'roomLeft': self._on_room_left,
            'error': self._on_error,
        }

    def reset(self) -> None:
        """Back to the logged-out state."""
        self.phase = 'login'
        self.players: List[dict] = []
        self.room_code = ''
        self.player_id = ''
        self.current_prompt = ''
        self.round_results: List[dict] = []
        self.error = ''
        self.is_judging = False
        self.total_submitted = 0
        self.total_players = 0
        self.time_limit = self.default_time_limit
        self.time_remaining = 0
        # Submission prediction: pending is our guess, confirmed came from the server
        self.submission_pending = False
        self.submission_confirmed = False

    @property
    def events(self):
        return tuple(self._handlers)

    @property
    def has_submitted_story(self) -> bool:
        return self.submission_confirmed or self.submission_pending

    @property
    def me(self) -> Optional[dict]:
        for p in self.players:
            if p.get('id') == self.player_id:
                return p
        return None

    def can_submit(self) -> bool:
        return self.phase == 'writing' and self.time_remaining > 0 and not self.has_submitted_story

    def mark_submission_sent(self) -> None:
        self.submission_pending = True

    def clear_error(self) -> None:
        self.error = ''

    def apply(self, event: str, data: Optional[dict] = None) -> None:
        handler = self._handlers.get(event)
        if handler is not None:
            handler(data or {})

    # ---- event handlers ----

    def _on_room_joined(self, data):
        self.phase = 'lobby'
        self.room_code = data.get('roomCode', '')
        self.player_id = data.get('playerId', '')
        self.players = list(data.get('players', []))
        self.error = ''

    def _on_players(self, data):
        self.players = list(data.get('players', []))

    def _on_game_started(self, data):
        self.phase = 'writing'
        self.current_prompt = data.get('prompt', '')
        self.total_submitted = 0
        self.round_results = []
        self.is_judging = False
        self.submission_pending = False
        self.submission_confirmed = False
        self.time_limit = data.get('timeLimit') or self.time_limit
        self.time_remaining = data.get('timeRemaining') or self.time_limit

    def _on_time_update(self, data):
        self.time_remaining = data.get('timeRemaining', self.time_remaining)

    def _on_time_up(self, data):
        self.phase = data.get('gamePhase', 'judging')
        self.time_remaining = 0

    def _on_story_submitted(self, data):
        self.total_submitted = data.get('totalSubmitted', self.total_submitted)
        self.total_players = data.get('totalPlayers', self.total_players)
        if data.get('playerId') == self.player_id:
            self.submission_confirmed = True
            self.submission_pending = False

    def _on_all_submitted(self, data):
        self.phase = 'judging'

    def _on_judging_started(self, data):
        self.is_judging = True

    def _on_round_results(self, data):
        self.phase = 'results'
        self.round_results = list(data.get('results', []))
        self.players = list(data.get('players', self.players))
        self.is_judging = False

    def _on_back_to_lobby(self, data):
        self.phase = 'lobby'
        self.players = list(data.get('players', self.players))
        self.current_prompt = ''
        self.round_results = []
        self.is_judging = False
        self.total_submitted = 0
        self.time_remaining = 0
        self.submission_pending = False
        self.submission_confirmed = False

    def _on_room_left(self, data):
        self.reset()

    def _on_error(self, data):
        self.error = data.get('message', '')
        if self.phase == 'writing' and self.submission_pending and not self.submission_confirmed:
            # Only a writing-phase error can be the answer to our submitStory
            self.submission_pending = False
