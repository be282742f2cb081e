import re
from urllib.parse import parse_qs, urlsplit

from game_state import WON
from sudoku import count_empty

GAME_ID_RE = re.compile(r'"id": "([0-9a-f]{32})"')


def start_game(client, query=''):
    resp = client.get('/game' + query)
    assert resp.status_code == 200
    return GAME_ID_RE.search(resp.get_data(as_text=True)).group(1)


def empty_cells(game):
    return [(r, c) for r in range(9) for c in range(9) if game.puzzle[r][c] == 0]


def test_welcome_lists_users(client, db):
    db.create_or_update_user('Zed', 'hard')
    resp = client.get('/')
    assert resp.status_code == 200
    assert 'Zed' in resp.get_data(as_text=True)
    assert resp.headers['X-Frame-Options'] == 'DENY'


def test_start_without_name_goes_back_to_welcome(client, db):
    resp = client.post('/start', data={'difficulty': 'easy'})
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith('/')
    assert db.get_users() == []
    page = client.get('/').get_data(as_text=True)
    assert 'Please select a user' in page


def test_start_creates_profile_and_sets_cookie(client, db):
    resp = client.post('/start', data={'new_username': 'Alice', 'existing_user': 'Bob', 'difficulty': 'hard'})
    assert resp.status_code == 302
    assert resp.headers['Location'].endswith('/game')
    assert any(c.startswith('sudokuUsername=Alice') for c in resp.headers.getlist('Set-Cookie'))
    assert db.find_user('alice')['last_difficulty'] == 'hard'
    assert db.find_user('Bob') is None


def test_start_with_existing_user_from_dropdown(client, db):
    db.create_or_update_user('Bob', 'easy')
    client.post('/start', data={'existing_user': 'bob', 'difficulty': 'medium'})
    assert db.find_user('Bob')['last_difficulty'] == 'medium'
    assert len(db.get_users()) == 1


def test_game_requires_active_user(client):
    resp = client.get('/game')
    assert resp.status_code == 302


def test_game_uses_last_difficulty(logged_in, db):
    game_id = start_game(logged_in)
    game = db.load_session(game_id)
    assert game.difficulty == 'easy'
    assert count_empty(game.puzzle) <= 30
    page = logged_in.get('/game?load=' + game_id).get_data(as_text=True)
    assert page.count('id="cell-') == 81


def test_game_difficulty_parameter_updates_profile(logged_in, db):
    game_id = start_game(logged_in, '?difficulty=hard')
    assert db.load_session(game_id).difficulty == 'hard'
    assert db.find_user('Alice')['last_difficulty'] == 'hard'


def test_moves_are_checked_against_solution(logged_in, db):
    game_id = start_game(logged_in)
    game = db.load_session(game_id)
    r, c = empty_cells(game)[0]
    wrong = game.solution[r][c] % 9 + 1

    resp = logged_in.post(f'/api/games/{game_id}/move', json={'row': r, 'col': c, 'value': str(wrong)})
    assert resp.get_json()['status'] == 'incorrect'
    resp = logged_in.post(f'/api/games/{game_id}/move', json={'row': r, 'col': c, 'value': 'q'})
    assert resp.get_json()['status'] == 'invalid'
    resp = logged_in.post(f'/api/games/{game_id}/move',
                          json={'row': r, 'col': c, 'value': str(game.solution[r][c]), 'elapsed_seconds': 12})
    body = resp.get_json()
    assert body['status'] == 'correct'
    assert body['won'] is False

    stored = db.load_session(game_id)
    assert stored.board[r][c] == game.solution[r][c]
    assert stored.elapsed_seconds == 12


def test_solving_the_board_records_a_win(logged_in, db):
    game_id = start_game(logged_in)
    game = db.load_session(game_id)
    body = None
    for r, c in empty_cells(game):
        body = logged_in.post(f'/api/games/{game_id}/move',
                              json={'row': r, 'col': c, 'value': game.solution[r][c],
                                    'elapsed_seconds': 125}).get_json()
    assert body['won'] is True
    assert body['message'] == 'Congratulations! You solved it in 02:05!'
    assert '/congratulations?' in body['redirect']
    query = parse_qs(urlsplit(body['redirect']).query)
    assert query == {'user': ['Alice'], 'time': ['02:05'], 'difficulty': ['easy']}

    assert db.load_session(game_id).status == WON
    history = db.get_game_history(db.find_user('Alice')['id'])
    assert history == [{'difficulty': 'easy', 'time_taken': 125, 'completed_at': history[0]['completed_at']}]

    resp = logged_in.post(f'/api/games/{game_id}/save', json={'elapsed_seconds': 130})
    assert resp.status_code == 409


def test_move_errors(logged_in, db):
    game_id = start_game(logged_in)
    resp = logged_in.post(f'/api/games/{game_id}/move', json={'col': 1, 'value': '3'})
    assert resp.status_code == 400
    resp = logged_in.post(f'/api/games/{game_id}/move', json={'row': 9, 'col': 1, 'value': '3'})
    assert resp.status_code == 400
    resp = logged_in.post('/api/games/deadbeef/move', json={'row': 0, 'col': 0, 'value': '3'})
    assert resp.status_code == 404
    assert 'error' in resp.get_json()

    logged_in.post('/start', data={'new_username': 'Mallory'})
    resp = logged_in.post(f'/api/games/{game_id}/move', json={'row': 0, 'col': 0, 'value': '3'})
    assert resp.status_code == 403


def test_save_resume_and_delete(logged_in, db):
    game_id = start_game(logged_in)
    game = db.load_session(game_id)
    board = [row[:] for row in game.puzzle]
    r, c = empty_cells(game)[0]
    board[r][c] = game.solution[r][c]

    resp = logged_in.post(f'/api/games/{game_id}/save', json={'board': board, 'elapsed_seconds': 75})
    assert resp.get_json() == {'saved': True, 'autosave': False, 'elapsed': '01:15'}

    page = logged_in.get('/saved_games').get_data(as_text=True)
    assert game_id in page
    assert '01:15' in page

    resumed = logged_in.get('/game?load=' + game_id)
    assert resumed.status_code == 200
    assert f'id="cell-{r}-{c}" class="cell" maxlength="1" inputmode="numeric" value="{board[r][c]}"' \
        in resumed.get_data(as_text=True)

    resp = logged_in.post(f'/saved_games/{game_id}/delete')
    assert resp.status_code == 302
    assert db.load_session(game_id) is None
    assert logged_in.get('/game?load=' + game_id).status_code == 404


def test_autosave_does_not_list_game(logged_in, db):
    game_id = start_game(logged_in)
    resp = logged_in.post(f'/api/games/{game_id}/save', json={'elapsed_seconds': 30, 'autosave': True})
    assert resp.get_json()['autosave'] is True
    assert db.load_session(game_id).elapsed_seconds == 30
    assert db.get_saved_games(db.find_user('Alice')['id']) == []


def test_save_rejects_changed_givens(logged_in, db):
    game_id = start_game(logged_in)
    game = db.load_session(game_id)
    board = [row[:] for row in game.puzzle]
    gr, gc = next((r, c) for r in range(9) for c in range(9) if game.puzzle[r][c])
    board[gr][gc] = 0
    resp = logged_in.post(f'/api/games/{game_id}/save', json={'board': board})
    assert resp.status_code == 400


def test_report_page(logged_in, db, play_to_win):
    game_id = start_game(logged_in)
    play_to_win(game_id, 61)
    page = logged_in.get('/report').get_data(as_text=True)
    assert "Alice's Performance" in page
    assert '01:01' in page
    assert 'Play a few more games' in page

    page = logged_in.get('/report?user=nobody').get_data(as_text=True)
    assert 'performance-summary' not in page


def test_congratulations_messages(client):
    page = client.get('/congratulations?user=Alice&time=03:10&difficulty=hard').get_data(as_text=True)
    assert "Well done, Alice! You&#39;re a Sudoku Master!" in page
    assert 'You solved the puzzle in 03:10 on hard difficulty.' in page

    page = client.get('/congratulations').get_data(as_text=True)
    assert "Amazing job! You&#39;re a Sudoku Master!" in page
    assert "You showed that puzzle who&#39;s boss!" in page


def test_new_puzzle_api(client):
    body = client.get('/api/new_puzzle?difficulty=bogus').get_json()
    assert count_empty(body['puzzle']) <= 40
    assert count_empty(body['solution']) == 0


def test_leaving_an_unsaved_game_discards_it(logged_in, db):
    first = start_game(logged_in)
    second = start_game(logged_in)
    assert db.load_session(first) is None
    assert db.load_session(second) is not None


def test_game_page_does_not_expose_solution(logged_in):
    page = logged_in.get('/game').get_data(as_text=True)
    assert '"solution"' not in page
    assert '"autosave_seconds": 30' in page
