import os


class Config:
    # Turn and challenge timers (seconds)
    TURN_DURATION_SEC = float(os.environ.get('TURN_DURATION_SEC', '120'))
    CHALLENGE_WINDOW_SEC = float(os.environ.get('CHALLENGE_WINDOW_SEC', '15'))
    # Push remaining time to clients every N seconds; warn once below the threshold
    TIMER_SYNC_SEC = float(os.environ.get('TIMER_SYNC_SEC', '5'))
    TIMER_WARNING_SEC = float(os.environ.get('TIMER_WARNING_SEC', '10'))

    CHALLENGE_PENALTY_POINTS = int(os.environ.get('CHALLENGE_PENALTY_POINTS', '10'))
    BINGO_BONUS = int(os.environ.get('BINGO_BONUS', '50'))
    CHALLENGE_MODE = os.environ.get('CHALLENGE_MODE', '1') not in ('0', 'false', 'False')

    # Dictionary
    DEFAULT_DICTIONARY = os.environ.get('DEFAULT_DICTIONARY', 'TWL')
    DICTIONARY_API_URL = os.environ.get('DICTIONARY_API_URL', 'https://api.datamuse.com/words')
    DICTIONARY_TIMEOUT_SEC = float(os.environ.get('DICTIONARY_TIMEOUT_SEC', '3'))
    DICTIONARY_REMOTE_ENABLED = os.environ.get('DICTIONARY_REMOTE_ENABLED', '1') not in ('0', 'false', 'False')
    WORDLIST_DIR = os.environ.get('WORDLIST_DIR') or None
    DICTIONARY_CACHE_SIZE = int(os.environ.get('DICTIONARY_CACHE_SIZE', '2048'))

    # Rooms nobody has joined are dropped after this long
    EMPTY_ROOM_TTL_SEC = float(os.environ.get('EMPTY_ROOM_TTL_SEC', '300'))

    # Pass-only bot think time range (seconds)
    BOT_MIN_DELAY_SEC = float(os.environ.get('BOT_MIN_DELAY_SEC', '2'))
    BOT_MAX_DELAY_SEC = float(os.environ.get('BOT_MAX_DELAY_SEC', '4'))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
