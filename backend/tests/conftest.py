import json
import os
import sys
import pytest

# Ensure the backend root (containing the `quizbooth` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from quizbooth import create_app, db, socketio
from quizbooth.services.gameplay.feedback import NullFeedback
from quizbooth.services.gameplay.kv import MemoryKeyValueStore
from quizbooth.services.gameplay.lock import CompletionLock
from quizbooth.services.gameplay.machine import SessionMachine
from quizbooth.services.gameplay.questions import Question, StaticQuestionProvider
from quizbooth.services.gameplay.scheduler import ManualScheduler
from quizbooth.services.gameplay.store import ResultsStore, SessionStore


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    QUESTION_DURATION_SEC = 30
    RESUME_BUFFER_SEC = 5
    SESSION_CLEAR_DELAY_SEC = 5
    SESSION_TTL_SEC = 24 * 60 * 60
    SESSION_STORE_BACKEND = 'database'
    SESSION_SCHEDULER = 'manual'
    RECORD_KEY_PREFIX = 'quizbooth'


class FailingKeyValueStore:
    """Backing that behaves like disabled browser storage."""

    def get(self, key):
        raise OSError('storage unavailable')

    def set(self, key, value):
        raise OSError('storage unavailable')

    def delete(self, key):
        raise OSError('storage unavailable')


class UnreadableKeyValueStore(MemoryKeyValueStore):
    """Backing whose reads fail while writes still land."""

    def get(self, key):
        raise OSError('read failed')


class RecordingFeedback(NullFeedback):
    def __init__(self):
        self.events = []

    def answer(self, game_id, is_correct, points):
        self.events.append(('answer', game_id, is_correct, points))

    def expired(self, game_id, question_index):
        self.events.append(('expired', game_id, question_index))


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import quizbooth.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def seeded_game(flask_app):
    """A three-question game with a 30 second clock, stored under id 'quiz1'."""
    from quizbooth.models import Game, Question as QuestionRow
    game = Game(id='quiz1', title='Test Quiz', question_duration=30)
    db.session.add(game)
    rows = [
        ('What is 2+2?', ['3', '4', '5', '6'], 1),
        ('What is the capital of France?', ['London', 'Berlin', 'Paris', 'Madrid'], 2),
        ('How many players are on a basketball court per team?', ['4', '5', '6', '7'], 1),
    ]
    for position, (text, options, correct) in enumerate(rows):
        db.session.add(QuestionRow(
            game_id=game.id, position=position, text=text,
            options=json.dumps(options), correct_answer=correct,
        ))
    db.session.commit()
    return game


@pytest.fixture()
def questions():
    return [
        Question(text='What is 2+2?', options=['3', '4', '5', '6'], correct_answer=1, duration=30),
        Question(text='Capital of France?', options=['London', 'Paris'], correct_answer=1, duration=30),
        Question(text='Largest planet?', options=['Mars', 'Jupiter'], correct_answer=1, duration=30),
    ]


@pytest.fixture()
def kv():
    return MemoryKeyValueStore()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def feedback():
    return RecordingFeedback()


@pytest.fixture()
def make_machine(kv, clock, scheduler, feedback, questions):
    def _make(question_list=None, backing=None):
        backing = backing if backing is not None else kv
        provider = StaticQuestionProvider({'g1': question_list if question_list is not None else questions})
        return SessionMachine(
            SessionStore(backing, clock=clock),
            ResultsStore(backing),
            CompletionLock(backing),
            provider,
            scheduler,
            feedback=feedback,
            clock=clock,
            clear_delay=5,
        )
    return _make


@pytest.fixture()
def elapse(clock, scheduler):
    """Move wall clock and scheduler forward together."""
    def _elapse(seconds):
        for _ in range(int(seconds)):
            clock.advance(1)
            scheduler.advance(1)
    return _elapse


@pytest.fixture()
def failing_kv():
    return FailingKeyValueStore()


@pytest.fixture()
def unreadable_kv():
    return UnreadableKeyValueStore()
