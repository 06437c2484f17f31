import random
import string
from enum import Enum
from typing import Dict, List, Optional

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


class Phase(str, Enum):
    LOBBY = 'lobby'
    WRITING = 'writing'
    JUDGING = 'judging'
    RESULTS = 'results'


class Visibility(str, Enum):
    PUBLIC = 'public'
    PRIVATE = 'private'


class Player:
    def __init__(self, id: str, name: str, score: int = 0):
        self.id = id
        self.name = name
        self.score = score

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'score': self.score,
        }

    def __repr__(self):
        return f"Player(id={self.id!r}, name={self.name!r}, score={self.score})"


class RoundResult:
    """One player's verdict for a round. Never modified once attached to a room."""

    __slots__ = ('player_id', 'player_name', 'survived', 'reasoning')

    def __init__(self, player_id: str, player_name: str, survived: bool, reasoning: str):
        object.__setattr__(self, 'player_id', player_id)
        object.__setattr__(self, 'player_name', player_name)
        object.__setattr__(self, 'survived', bool(survived))
        object.__setattr__(self, 'reasoning', reasoning)

    def __setattr__(self, key, value):
        raise AttributeError('RoundResult is immutable')

    def to_dict(self):
        return {
            'playerId': self.player_id,
            'playerName': self.player_name,
            'survived': self.survived,
            'reasoning': self.reasoning,
        }


def generate_room_code(length: int = 6, taken=()) -> str:
    """Generate a short room code not present in ``taken``."""
    while True:
        code = ''.join(random.choices(ROOM_CODE_ALPHABET, k=length))
        if code not in taken:
            return code


def normalize_room_code(code) -> str:
    return str(code or '').strip().upper()


def is_valid_room_code(code: str, length: int = 6) -> bool:
    return len(code) == length and all(c in ROOM_CODE_ALPHABET for c in code)


class Room:
    """Mutable state of one room. Owned and mutated only by its RoomSession."""

    def __init__(self, code: str, visibility: Visibility = Visibility.PUBLIC, max_players: int = 2):
        self.code = code
        self.visibility = visibility
        self.max_players = max_players
        self.phase = Phase.LOBBY
        self.players: List[Player] = []
        self.prompt: str = ''
        self.time_limit: int = 0
        self.time_remaining: int = 0
        self.submissions: Dict[str, str] = {}
        self.results: List[RoundResult] = []

    @property
    def is_public(self) -> bool:
        return self.visibility == Visibility.PUBLIC

    @property
    def is_full(self) -> bool:
        return len(self.players) >= self.max_players

    def get_player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def players_payload(self) -> List[dict]:
        return [p.to_dict() for p in self.players]

    def clear_round(self) -> None:
        self.submissions = {}
        self.results = []
        self.time_remaining = 0

    def to_summary(self):
        return {
            'roomCode': self.code,
            'playerCount': len(self.players),
            'maxPlayers': self.max_players,
            'gamePhase': self.phase.value,
        }

    def to_dict(self):
        return {
            'roomCode': self.code,
            'gamePhase': self.phase.value,
            'isPublic': self.is_public,
            'players': self.players_payload(),
            'prompt': self.prompt,
            'timeLimit': self.time_limit,
            'timeRemaining': self.time_remaining,
            'totalSubmitted': len(self.submissions),
            'results': [r.to_dict() for r in self.results],
        }
