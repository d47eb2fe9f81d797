from quizbooth import db
import json
import time


class StoredRecord(db.Model):
    """One key/value row backing the session, results and completion records."""
    __tablename__ = 'stored_record'
    key = db.Column(db.String(255), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.Float, nullable=False, default=time.time, onupdate=time.time)


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.String(64), primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    # Seconds per question; falls back to QUESTION_DURATION_SEC when unset
    question_duration = db.Column(db.Integer, nullable=True)
    questions = db.relationship(
        'Question', backref='game', lazy='dynamic', order_by='Question.position'
    )

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'question_duration': self.question_duration,
            'question_count': self.questions.count(),
        }


class Question(db.Model):
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.String(64), db.ForeignKey('game.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    text = db.Column(db.Text, nullable=False)
    options = db.Column(db.Text, nullable=False)  # JSON-encoded list of option strings
    correct_answer = db.Column(db.Integer, nullable=False)
    explanation = db.Column(db.Text, nullable=True)

    @property
    def option_list(self):
        try:
            return json.loads(self.options or '[]')
        except ValueError:
            return []

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'position': self.position,
            'text': self.text,
            'options': self.option_list,
            'correct_answer': self.correct_answer,
            'explanation': self.explanation,
        }
