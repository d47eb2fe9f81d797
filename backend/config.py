import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///quizbooth.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Per-question countdown (seconds), used when a game has no duration of its own
    QUESTION_DURATION_SEC = int(os.environ.get('QUESTION_DURATION_SEC', '30'))
    # Extra seconds granted when a nearly expired question is resumed after a reload
    RESUME_BUFFER_SEC = int(os.environ.get('RESUME_BUFFER_SEC', '5'))
    # How long a completed session stays readable before it is removed
    SESSION_CLEAR_DELAY_SEC = float(os.environ.get('SESSION_CLEAR_DELAY_SEC', '5'))
    # Stored sessions older than this are discarded on load
    SESSION_TTL_SEC = int(os.environ.get('SESSION_TTL_SEC', str(24 * 60 * 60)))
    # 'database' or 'memory'
    SESSION_STORE_BACKEND = os.environ.get('SESSION_STORE_BACKEND', 'database')
    # 'background' runs countdowns on socketio tasks; 'manual' waits for an explicit clock advance
    SESSION_SCHEDULER = os.environ.get('SESSION_SCHEDULER', 'background')
    RECORD_KEY_PREFIX = os.environ.get('RECORD_KEY_PREFIX', 'quizbooth')
