from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_socketio import SocketIO
import click
import json
from config import Config

db = SQLAlchemy()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

DEMO_GAME_ID = 'demo'
DEMO_QUESTIONS = [
    ('What is 2+2?', ['3', '4', '5', '6'], 1, 'Two pairs make four.'),
    ('What is the capital of France?', ['London', 'Berlin', 'Paris', 'Madrid'], 2, None),
    ('Which planet is the largest?', ['Earth', 'Mars', 'Jupiter', 'Saturn'], 2, None),
]


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from quizbooth.services.gameplay.registry import init_gameplay
    init_gameplay(flask_app)

    from quizbooth.main import main
    flask_app.register_blueprint(main)

    from quizbooth.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api/sessions')

    from quizbooth.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database with a demo game."""
        from quizbooth.models import Game, Question
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            game = Game(id=DEMO_GAME_ID, title='Demo Trivia')
            db.session.add(game)
            for position, (text, options, correct, explanation) in enumerate(DEMO_QUESTIONS):
                db.session.add(Question(
                    game_id=game.id,
                    position=position,
                    text=text,
                    options=json.dumps(options),
                    correct_answer=correct,
                    explanation=explanation,
                ))

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('first-completion-clear')
    @click.argument('client_id')
    @click.argument('game_id')
    def first_completion_clear_command(client_id, game_id):
        """Removes the first-completion lock for one client and game."""
        from quizbooth.services.gameplay.registry import get_gameplay
        with flask_app.app_context():
            get_gameplay(flask_app).completion_lock(client_id).clear(game_id)
            print(f'First completion cleared for {client_id}/{game_id}')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(first_completion_clear_command)

    return flask_app
