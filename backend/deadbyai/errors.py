"""Game errors.

Every error carries a message that is safe to show to the player. The
socket gateway turns a ``GameError`` into an ``error`` event sent back to
the connection that caused it; the room is left untouched.
"""


class GameError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'message': self.message}


class ValidationError(GameError):
    pass


class RoomNotFoundError(GameError):
    def __init__(self, room_code: str):
        super().__init__(f'Room {room_code} not found')
        self.room_code = room_code


class RoomFullError(GameError):
    def __init__(self, room_code: str):
        super().__init__('Room is full')
        self.room_code = room_code


class PhaseError(GameError):
    """An action arrived in a phase that does not accept it."""


class JudgeError(GameError):
    """The judging oracle failed or answered with something unusable."""
