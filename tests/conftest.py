import os
import sys
import tempfile
from pathlib import Path

import pytest

# Add project root to sys.path so the top-level modules can be imported in tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# app.py reads these at import time
os.environ.setdefault('DATABASE_PATH', os.path.join(tempfile.mkdtemp(), 'sudoku.db'))
os.environ.setdefault('RATE_LIMIT', '10000 per minute')
os.environ.setdefault('SECRET_KEY', 'test-secret')

from database import Database  # noqa: E402
from sudoku import generate_puzzle  # noqa: E402


@pytest.fixture
def db(tmp_path):
    return Database(db_path=str(tmp_path / 'sudoku.db'))


@pytest.fixture
def app_module(db, monkeypatch):
    import app as app_module
    monkeypatch.setattr(app_module, 'db', db)
    app_module.app.config['TESTING'] = True
    return app_module


@pytest.fixture
def client(app_module):
    # Flask's test client has no base_url argument; request over HTTPS via config
    app_module.app.config['PREFERRED_URL_SCHEME'] = 'https'
    return app_module.app.test_client()


@pytest.fixture
def logged_in(client):
    client.post('/start', data={'new_username': 'Alice', 'difficulty': 'easy'})
    return client


@pytest.fixture
def stored_game(db):
    user_id = db.create_or_update_user('Alice', 'easy')
    puzzle, solution = generate_puzzle('easy')
    game_id = db.create_game(user_id, 'easy', puzzle, solution)
    return user_id, game_id, puzzle, solution


@pytest.fixture
def play_to_win(db):
    def play(game_id, elapsed_seconds):
        game = db.load_session(game_id)
        result = None
        for r in range(9):
            for c in range(9):
                if game.puzzle[r][c] == 0:
                    _, result = db.apply_move(game_id, r, c, game.solution[r][c], elapsed_seconds)
        return result
    return play
