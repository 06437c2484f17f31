import os


def _int_list(value):
    return tuple(int(v) for v in value.split(',') if v.strip())


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Comma separated list of origins allowed to open Socket.IO/HTTP connections
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
    ).split(',') if o.strip()]

    # Rooms
    MAX_PLAYERS = int(os.environ.get('MAX_PLAYERS', '2'))
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
    # Seconds an empty room lingers before removal. 0 removes immediately.
    ROOM_REAP_DELAY_SEC = int(os.environ.get('ROOM_REAP_DELAY_SEC', '0'))
    PLAYER_NAME_MAX_LENGTH = int(os.environ.get('PLAYER_NAME_MAX_LENGTH', '32'))

    # Writing phase
    TIME_LIMIT_OPTIONS = _int_list(os.environ.get('TIME_LIMIT_OPTIONS', '60,120,180,300,600'))
    DEFAULT_TIME_LIMIT = int(os.environ.get('DEFAULT_TIME_LIMIT', '120'))
    TIMER_TICK_SEC = int(os.environ.get('TIMER_TICK_SEC', '1'))
    STORY_MAX_LENGTH = int(os.environ.get('STORY_MAX_LENGTH', '2000'))
    PROMPT_MAX_LENGTH = int(os.environ.get('PROMPT_MAX_LENGTH', '500'))

    # Judging oracle
    OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY')
    OPENAI_BASE_URL = os.environ.get('OPENAI_BASE_URL')
    JUDGE_MODEL = os.environ.get('JUDGE_MODEL', 'gpt-4o-mini')
    JUDGE_TIMEOUT_SEC = float(os.environ.get('JUDGE_TIMEOUT_SEC', '30'))
    JUDGE_MAX_ATTEMPTS = int(os.environ.get('JUDGE_MAX_ATTEMPTS', '3'))
    JUDGE_RETRY_DELAY_SEC = float(os.environ.get('JUDGE_RETRY_DELAY_SEC', '1'))
