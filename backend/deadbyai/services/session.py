"""Room session: the phase state machine of one room.

Phases run ``lobby -> writing -> judging -> results`` and back to
``writing`` (next round) or ``lobby`` (round abandoned, or a player short).

Every entry point (player actions, timer ticks, timer expiry, judge
completion) takes the session lock for exactly one transition. Events are
emitted while the lock is held, so one room's events leave in the order
they were produced. The lock is never held across a judge call: the
session enters ``judging`` under the lock, releases it, calls the judge in
the background and re-takes the lock only to apply the verdicts.
"""

import logging
import random
import threading
import time
from functools import partial
from typing import Callable, List, Optional

from deadbyai.errors import JudgeError, PhaseError, RoomFullError, ValidationError
from deadbyai.models import Phase, Player, Room
from deadbyai.services.prompts import choose_prompt, resolve_time_limit
from deadbyai.services.scoring import score_round
from deadbyai.services.timer import TimerService

DEFAULT_TIME_LIMIT_OPTIONS = (60, 120, 180, 300, 600)


def run_inline(fn, *args, **kwargs):
    return fn(*args, **kwargs)


def validate_player_name(name, max_length: int = 32) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError('Player name is required')
    name = name.strip()
    if len(name) > max_length:
        raise ValidationError(f'Player name must be at most {max_length} characters')
    return name


class RoomSession:
    def __init__(self, room: Room, channel, timers: TimerService, judge: Callable,
                 spawn: Callable = run_inline, sleep: Callable[[float], None] = time.sleep,
                 config=None, logger: Optional[logging.Logger] = None, rng=random):
        self.room = room
        self.code = room.code
        self._channel = channel
        self._timers = timers
        self._judge = judge
        self._spawn = spawn
        self._sleep = sleep
        self.config = config or {}
        self.logger = logger or logging.getLogger(__name__)
        self._rng = rng
        self._lock = threading.RLock()
        # Bumped on every round start and abandonment; stale timer and judge
        # callbacks compare against it and drop themselves.
        self._round = 0
        self._judge_pending = False

    # ---- read side ----

    @property
    def phase(self) -> Phase:
        with self._lock:
            return self.room.phase

    @property
    def player_count(self) -> int:
        with self._lock:
            return len(self.room.players)

    @property
    def is_empty(self) -> bool:
        return self.player_count == 0

    @property
    def judge_pending(self) -> bool:
        with self._lock:
            return self._judge_pending

    def summary(self) -> dict:
        with self._lock:
            return self.room.to_summary()

    def snapshot(self) -> dict:
        with self._lock:
            return self.room.to_dict()

    # ---- player actions ----

    def join(self, player_id: str, name: str) -> Player:
        name = validate_player_name(name, int(self.config.get('PLAYER_NAME_MAX_LENGTH', 32)))
        with self._lock:
            room = self.room
            if room.is_full:
                raise RoomFullError(room.code)
            if room.phase != Phase.LOBBY:
                raise PhaseError('This game is already in progress')
            if room.get_player(player_id):
                raise ValidationError('You are already in this room')
            player = Player(player_id, name)
            room.players.append(player)
            self.logger.info(f"[join] room={room.code} player={player_id} count={len(room.players)}")
            players = room.players_payload()
            self._channel.send(player_id, 'roomJoined', {
                'roomCode': room.code,
                'playerId': player_id,
                'players': players,
            })
            self._channel.broadcast('playerJoined', {'players': players}, skip=player_id)
            return player

    def start_round(self, player_id: str, custom_prompt: Optional[str] = None, time_limit=None) -> None:
        with self._lock:
            room = self.room
            self._require_member(player_id)
            if room.phase != Phase.LOBBY:
                raise PhaseError('The game has already started')
            if len(room.players) != room.max_players:
                raise PhaseError('Waiting for another player to join')
            prompt = choose_prompt(custom_prompt, int(self.config.get('PROMPT_MAX_LENGTH', 500)), rng=self._rng)
            limit = resolve_time_limit(
                time_limit,
                self.config.get('TIME_LIMIT_OPTIONS', DEFAULT_TIME_LIMIT_OPTIONS),
                int(self.config.get('DEFAULT_TIME_LIMIT', 120)),
            )
            self._begin_round(prompt, limit)

    def submit(self, player_id: str, story) -> bool:
        """Record a story. Returns False for a duplicate, which changes nothing."""
        with self._lock:
            room = self.room
            self._require_member(player_id)
            if room.phase != Phase.WRITING:
                raise PhaseError('Stories can only be submitted while writing')
            if room.time_remaining <= 0:
                raise PhaseError('Time is up')
            if player_id in room.submissions:
                self.logger.info(f"[submit-duplicate] room={room.code} player={player_id}")
                return False
            story = self._clean_story(story)
            room.submissions[player_id] = story
            self.logger.info(
                f"[submit] room={room.code} player={player_id} total={len(room.submissions)}/{len(room.players)}"
            )
            self._channel.broadcast('storySubmitted', {
                'playerId': player_id,
                'totalSubmitted': len(room.submissions),
                'totalPlayers': len(room.players),
            })
            if all(p.id in room.submissions for p in room.players):
                self._finish_writing(expired=False)
            return True

    def request_judging(self, player_id: str) -> None:
        with self._lock:
            room = self.room
            self._require_member(player_id)
            if room.phase != Phase.JUDGING:
                raise PhaseError('Stories are not ready to be judged')
            if self._judge_pending:
                raise PhaseError('Judging is already in progress')
            self._judge_pending = True
            token = self._round
            prompt = room.prompt
            entries = [
                {'playerId': p.id, 'playerName': p.name, 'story': room.submissions[p.id]}
                for p in room.players if p.id in room.submissions
            ]
            self.logger.info(f"[judge-dispatch] room={room.code} round={token} stories={len(entries)}")
            self._channel.broadcast('judgingStarted', {})
        self._spawn(self._run_judge, token, prompt, entries)

    def next_round(self, player_id: str) -> bool:
        """Leave the results screen. Returns False when the request was stale."""
        with self._lock:
            room = self.room
            self._require_member(player_id)
            if room.phase != Phase.RESULTS:
                # Both players click "Next Round"; the later click lands here.
                self.logger.info(f"[next-round-ignored] room={room.code} phase={room.phase.value}")
                return False
            if len(room.players) == room.max_players:
                limit = room.time_limit or int(self.config.get('DEFAULT_TIME_LIMIT', 120))
                self._begin_round(choose_prompt(None, rng=self._rng), limit)
            else:
                room.phase = Phase.LOBBY
                room.clear_round()
                self._channel.broadcast('returnedToLobby', {'players': room.players_payload()})
            return True

    def leave(self, player_id: str) -> Optional[Player]:
        with self._lock:
            room = self.room
            player = room.get_player(player_id)
            if player is None:
                return None
            room.players.remove(player)
            room.submissions.pop(player_id, None)
            self.logger.info(f"[leave] room={room.code} player={player_id} phase={room.phase.value}")
            self._channel.broadcast('playerLeft', {'players': room.players_payload()})
            if room.phase != Phase.LOBBY and len(room.players) < room.max_players:
                self._abandon_round('player_left')
            return player

    def close(self) -> None:
        with self._lock:
            self._round += 1
            self._judge_pending = False
            self._timers.cancel(self.code)

    # ---- transitions ----

    def _begin_round(self, prompt: str, limit: int) -> None:
        room = self.room
        self._round += 1
        self._judge_pending = False
        token = self._round
        room.clear_round()
        room.prompt = prompt
        room.time_limit = limit
        room.time_remaining = limit
        room.phase = Phase.WRITING
        self._timers.start(
            room.code, limit,
            on_tick=partial(self._on_tick, token),
            on_expire=partial(self._on_expire, token),
            on_error=partial(self._on_timer_error, token),
        )
        self.logger.info(f"[round-start] room={room.code} round={token} limit={limit}s")
        self._channel.broadcast('gameStarted', {
            'prompt': prompt,
            'timeLimit': limit,
            'timeRemaining': limit,
        })

    def _finish_writing(self, expired: bool) -> bool:
        """The one way out of ``writing``; whichever caller gets here first wins."""
        room = self.room
        if room.phase != Phase.WRITING:
            return False
        self._timers.cancel(room.code)
        room.phase = Phase.JUDGING
        self.logger.info(
            f"[writing-end] room={room.code} round={self._round} expired={expired} stories={len(room.submissions)}"
        )
        if expired:
            room.time_remaining = 0
            self._channel.broadcast('timeUp', {'gamePhase': Phase.JUDGING.value})
        else:
            self._channel.broadcast('allStoriesSubmitted', {})
        return True

    def _abandon_round(self, reason: str) -> None:
        room = self.room
        self._round += 1
        self._judge_pending = False
        self._timers.cancel(room.code)
        room.phase = Phase.LOBBY
        room.prompt = ''
        room.clear_round()
        self.logger.info(f"[round-abandoned] room={room.code} reason={reason}")
        self._channel.broadcast('roundAbandoned', {
            'reason': reason,
            'gamePhase': Phase.LOBBY.value,
            'players': room.players_payload(),
        })

    def _is_current(self, token: int) -> bool:
        return token == self._round and self.room.phase == Phase.WRITING

    def _on_tick(self, token: int, remaining: int) -> None:
        with self._lock:
            if not self._is_current(token):
                return
            self.room.time_remaining = remaining
            self._channel.broadcast('timeUpdate', {'timeRemaining': remaining})

    def _on_expire(self, token: int) -> None:
        with self._lock:
            if not self._is_current(token):
                return
            self._finish_writing(expired=True)

    def _on_timer_error(self, token: int, exc: Exception) -> None:
        with self._lock:
            if not self._is_current(token):
                return
            self._channel.broadcast('error', {'message': 'The round timer failed'})
            self._abandon_round('timer_failed')

    def _run_judge(self, token: int, prompt: str, entries: List[dict]) -> None:
        verdicts, error = self._call_judge(prompt, entries)
        with self._lock:
            room = self.room
            if token != self._round or room.phase != Phase.JUDGING:
                self.logger.info(f"[judge-discard] room={room.code} round={token} current={self._round}")
                return
            self._judge_pending = False
            if error is not None:
                self._channel.broadcast('error', {'message': 'The judge could not decide. The round was abandoned.'})
                self._abandon_round('judge_failed')
                return
            results = score_round(room, verdicts)
            room.phase = Phase.RESULTS
            self.logger.info(
                f"[round-results] room={room.code} round={token} survived={sum(r.survived for r in results)}"
            )
            self._channel.broadcast('roundResults', {
                'results': [r.to_dict() for r in results],
                'players': room.players_payload(),
            })

    def _call_judge(self, prompt: str, entries: List[dict]):
        if not entries:
            # Nobody wrote anything: everyone forfeits, no judge needed
            return {}, None
        attempts = max(1, int(self.config.get('JUDGE_MAX_ATTEMPTS', 3)))
        delay = float(self.config.get('JUDGE_RETRY_DELAY_SEC', 1))
        error = None
        for attempt in range(1, attempts + 1):
            try:
                verdicts = self._judge(prompt, entries) or {}
                if any(e['playerId'] not in verdicts for e in entries):
                    raise JudgeError('The judge did not rule on every story')
                return verdicts, None
            except Exception as exc:
                error = exc
                self.logger.warning(f"[judge-retry] room={self.code} attempt={attempt}/{attempts} error={exc!r}")
                if attempt < attempts and delay > 0:
                    self._sleep(delay)
        return None, error

    # ---- validation ----

    def _require_member(self, player_id: str) -> Player:
        player = self.room.get_player(player_id)
        if player is None:
            raise ValidationError('You are not in this room')
        return player

    def _clean_story(self, story) -> str:
        if not isinstance(story, str) or not story.strip():
            raise ValidationError('Story cannot be empty')
        story = story.strip()
        max_length = int(self.config.get('STORY_MAX_LENGTH', 2000))
        if len(story) > max_length:
            raise ValidationError(f'Story must be at most {max_length} characters')
        return story


__all__ = ['RoomSession', 'validate_player_name', 'run_inline']
