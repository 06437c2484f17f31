"""Preset scenario prompts and the round settings policy."""

import random
from typing import Optional, Sequence

from deadbyai.errors import ValidationError

PRESET_PROMPTS = [
    "You wake up in a sinking submarine. The hatch above you is jammed and the water is already at your knees.",
    "A swarm of mechanical bees has taken over the city and they seem to be hunting anyone wearing shoes.",
    "You are trapped in an elevator with a bear. The elevator is stuck between the 40th and 41st floors.",
    "Your hot air balloon is drifting into a thunderstorm over the open ocean, and the burner just went out.",
    "The haunted mansion you inherited has locked every door behind you. Something upstairs is laughing.",
    "A volcano erupts next to the beach resort where you are the only guest awake at 3 a.m.",
    "You are the last person on a space station whose oxygen recycler has just started making a grinding noise.",
    "An avalanche buries the mountain cabin you are in. Your phone has 4% battery and no signal.",
    "You have been shrunk to the size of an ant and dropped into a busy restaurant kitchen during dinner rush.",
    "Zombies have surrounded the shopping mall. You are on the roof with a shopping cart and a leaf blower.",
    "A giant squid has wrapped itself around the small fishing boat you rented for the afternoon.",
    "You are lost in a desert with a broken compass, a single bottle of water, and a very talkative camel.",
]


def choose_prompt(custom_prompt: Optional[str] = None, max_length: int = 500, rng=random) -> str:
    """Use the custom prompt when given, otherwise draw a random preset."""
    if custom_prompt is not None and not isinstance(custom_prompt, str):
        raise ValidationError('Custom prompt must be text')
    custom = (custom_prompt or '').strip()
    if custom:
        if len(custom) > max_length:
            raise ValidationError(f'Custom prompt must be at most {max_length} characters')
        return custom
    return rng.choice(PRESET_PROMPTS)


def resolve_time_limit(value, options: Sequence[int], default: int) -> int:
    """Snap a requested time limit onto the nearest allowed option.

    Ties go to the shorter limit. A missing value means the default.
    """
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise ValidationError('Time limit must be a number of seconds')
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        raise ValidationError('Time limit must be a number of seconds')
    return min(sorted(options), key=lambda option: abs(option - seconds))
