from flask import Blueprint, jsonify
from quizbooth.models import Game

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the QuizBooth session server!'})


@main.route('/api/games/<string:game_id>', methods=['GET'])
def get_game(game_id):
    game = Game.query.filter_by(id=game_id).first_or_404()
    return jsonify(game.to_dict())
