import json

from quizbooth.services.gameplay.registry import get_gameplay
from quizbooth.services.gameplay.store import first_completion_key


def _post(client, path, client_id='alice', **kwargs):
    return client.post(path, headers={'X-Client-Id': client_id}, **kwargs)


def _get(client, path, client_id='alice'):
    return client.get(path, headers={'X-Client-Id': client_id})


def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert 'message' in res.get_json()


def test_game_info(client, seeded_game):
    res = client.get('/api/games/quiz1')
    assert res.status_code == 200
    assert res.get_json()['question_count'] == 3
    assert client.get('/api/games/missing').status_code == 404


def test_initialize_unknown_game(client):
    assert _post(client, '/api/sessions/missing/initialize').status_code == 404


def test_initialize_game_without_questions(client, flask_app):
    from quizbooth import db
    from quizbooth.models import Game
    db.session.add(Game(id='empty', title='Empty'))
    db.session.commit()
    res = _post(client, '/api/sessions/empty/initialize')
    assert res.status_code == 404


def test_initialize_and_state(client, seeded_game):
    res = _post(client, '/api/sessions/quiz1/initialize')
    assert res.status_code == 200
    data = res.get_json()
    assert data['state'] == 'active'
    assert data['totalQuestions'] == 3
    assert data['timeLeft'] == 30
    assert data['currentQuestion']['text'] == 'What is 2+2?'
    assert 'correctAnswer' not in data['currentQuestion']

    state = _get(client, '/api/sessions/quiz1/state').get_json()
    assert state['session']['sessionId'] == data['session']['sessionId']


def test_state_before_initialize(client, seeded_game):
    assert _get(client, '/api/sessions/quiz1/state').status_code == 400
    assert _post(client, '/api/sessions/quiz1/answer', json={'answer_index': 1}).status_code == 400


def test_answer_validation(client, seeded_game):
    _post(client, '/api/sessions/quiz1/initialize')
    assert _post(client, '/api/sessions/quiz1/answer', json={}).status_code == 400
    assert _post(client, '/api/sessions/quiz1/answer', json={'answer_index': 'b'}).status_code == 400
    assert _post(client, '/api/sessions/quiz1/answer', json={'answer_index': True}).status_code == 400


def test_answer_and_duplicate(client, seeded_game):
    _post(client, '/api/sessions/quiz1/initialize')
    res = _post(client, '/api/sessions/quiz1/answer', json={'answer_index': 1}).get_json()
    assert res['accepted'] is True
    assert res['points'] == 160
    assert res['newStreak'] == 1
    assert res['currentQuestion']['correctAnswer'] == 1

    again = _post(client, '/api/sessions/quiz1/answer', json={'answer_index': 0}).get_json()
    assert again['accepted'] is False
    assert again['session']['score'] == 160


def test_countdown_runs_on_scheduler(client, flask_app, seeded_game):
    _post(client, '/api/sessions/quiz1/initialize')
    get_gameplay(flask_app).scheduler.advance(7)
    state = _get(client, '/api/sessions/quiz1/state').get_json()
    assert state['timeLeft'] == 23

    saved = _post(client, '/api/sessions/quiz1/unload').get_json()
    assert saved == {'saved': True, 'timeLeft': 23}

    # Nothing runs down while the page is gone
    services = get_gameplay(flask_app)
    assert services.existing_machine('alice', 'quiz1') is None
    services.scheduler.advance(120)
    again = _post(client, '/api/sessions/quiz1/initialize').get_json()
    assert again['state'] == 'active'
    assert again['currentQuestion']['index'] == 0
    assert again['timeLeft'] == 23


def test_full_play_through(client, flask_app, seeded_game):
    _post(client, '/api/sessions/quiz1/initialize')
    for answer in (1, 2, 0):
        _post(client, '/api/sessions/quiz1/answer', json={'answer_index': answer})
        data = _post(client, '/api/sessions/quiz1/advance').get_json()

    assert data['state'] == 'completing'
    assert data['session']['isCompleted'] is True
    assert data['session']['finalResults']['correctAnswers'] == 2
    assert data['isFirstCompletion'] is True

    results = _get(client, '/api/sessions/quiz1/results').get_json()
    assert results['score'] == 160 + 170
    assert results['totalQuestions'] == 3

    services = get_gameplay(flask_app)
    assert services.existing_machine('alice', 'quiz1') is not None
    services.scheduler.advance(5)
    # A cleared machine is dropped; the page has to initialize again
    assert services.existing_machine('alice', 'quiz1') is None
    assert services.machine_count() == 0
    assert _get(client, '/api/sessions/quiz1/state').status_code == 400
    # Results outlive the session
    assert _get(client, '/api/sessions/quiz1/results').status_code == 200

    lock = _get(client, '/api/sessions/quiz1/first-completion').get_json()
    assert lock['hasValidRecord'] is True
    assert lock['record']['score'] == 330
    locked = _get(client, '/api/sessions/quiz1/first-completion/results').get_json()
    assert 'submissionHash' not in locked
    assert locked['score'] == 330


def test_replay_keeps_first_completion(client, flask_app, seeded_game):
    _post(client, '/api/sessions/quiz1/initialize')
    for _ in range(3):
        data = _post(client, '/api/sessions/quiz1/advance').get_json()
    first_session = data['session']['sessionId']

    replay = _post(client, '/api/sessions/quiz1/reset').get_json()
    assert replay['state'] == 'active'
    assert replay['session']['sessionId'] != first_session
    for _ in range(3):
        _post(client, '/api/sessions/quiz1/answer', json={'answer_index': 1})
        data = _post(client, '/api/sessions/quiz1/advance').get_json()
    assert data['isFirstCompletion'] is False

    lock = client.get(
        f'/api/sessions/quiz1/first-completion?session_id={first_session}',
        headers={'X-Client-Id': 'alice'},
    ).get_json()
    assert lock['isFirstCompletion'] is True
    assert lock['record']['score'] == 0


def test_clients_are_isolated(client, seeded_game):
    _post(client, '/api/sessions/quiz1/initialize', client_id='alice')
    _post(client, '/api/sessions/quiz1/answer', client_id='alice', json={'answer_index': 1})
    bob = _post(client, '/api/sessions/quiz1/initialize', client_id='bob').get_json()
    assert bob['session']['score'] == 0
    assert _get(client, '/api/sessions/quiz1/results', client_id='bob').status_code == 404


def test_tampered_lock_is_reported_absent(client, flask_app, seeded_game):
    _post(client, '/api/sessions/quiz1/initialize')
    for _ in range(3):
        _post(client, '/api/sessions/quiz1/advance')

    kv = get_gameplay(flask_app).client_kv('alice')
    record = json.loads(kv.get(first_completion_key('quiz1')))
    record['score'] = 99999
    kv.set(first_completion_key('quiz1'), json.dumps(record))

    lock = _get(client, '/api/sessions/quiz1/first-completion').get_json()
    assert lock['hasValidRecord'] is False
    assert lock['record'] is None
    assert kv.get(first_completion_key('quiz1')) is None


def test_reload_resumes_session(client, flask_app, seeded_game):
    first = _post(client, '/api/sessions/quiz1/initialize').get_json()
    get_gameplay(flask_app).scheduler.advance(28)
    _post(client, '/api/sessions/quiz1/unload')
    again = _post(client, '/api/sessions/quiz1/initialize').get_json()
    assert again['session']['sessionId'] == first['session']['sessionId']
    assert again['timeLeft'] == 7


def test_first_completion_clear_command(flask_app, seeded_game):
    lock = get_gameplay(flask_app).completion_lock('alice')
    from quizbooth.services.gameplay.state import FinalResults
    lock.save(FinalResults(
        score=1, correct_answers=1, total_questions=1, time_spent=1,
        streak=1, game_id='quiz1', session_id='s', completed_at=1,
    ))
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['first-completion-clear', 'alice', 'quiz1'])
    assert result.exit_code == 0
    assert lock.has_valid_record('quiz1') is False
