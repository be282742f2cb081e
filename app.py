import os
import logging
from datetime import datetime

from flask import (
    Flask, abort, flash, jsonify, redirect, render_template, request, session, url_for,
)
from flask_talisman import Talisman
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from database import Database
from game_state import WON, GameSession
from report import build_report, format_elapsed
from sudoku import DIFFICULTIES, count_empty, generate_puzzle, normalize_difficulty

# Settings come from the environment (.env is loaded first)
load_dotenv()
logging.basicConfig(format='%(asctime)s - %(name)s - %(levelname)s - %(message)s', level=logging.INFO)
logger = logging.getLogger(__name__)

FORCE_HTTPS = os.environ.get('FORCE_HTTPS', '1').lower() not in ('0', 'false', 'no')
RATE_LIMIT = os.environ.get('RATE_LIMIT', '120 per minute')
AUTOSAVE_SECONDS = int(os.environ.get('AUTOSAVE_SECONDS', '30'))
USERNAME_COOKIE = 'sudokuUsername'
USERNAME_COOKIE_DAYS = 30

app = Flask(__name__)
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', os.urandom(24).hex())

Talisman(app, force_https=FORCE_HTTPS, session_cookie_secure=FORCE_HTTPS, frame_options='DENY')
limiter = Limiter(app=app, key_func=get_remote_address, storage_uri="memory://")

db_path = os.environ.get('DATABASE_PATH', os.path.join(os.getcwd(), 'sudoku.db'))
db = Database(db_path=db_path)


@app.template_filter('elapsed')
def elapsed_filter(seconds):
    return format_elapsed(seconds)


@app.template_filter('saved_at')
def saved_at_filter(value):
    try:
        return datetime.fromisoformat(str(value)).strftime('%b %d, %Y %H:%M')
    except ValueError:
        return value


@app.errorhandler(HTTPException)
def handle_http_error(e):
    if request.path.startswith('/api/'):
        return jsonify({'error': e.description}), e.code
    return e


@app.errorhandler(Exception)
def handle_unexpected_error(e):
    logger.error(f"Unhandled error on {request.path}: {e}")
    if request.path.startswith('/api/'):
        return jsonify({'error': 'Internal Error'}), 500
    return "Internal Error", 500


def current_user():
    return db.find_user(session.get('username'))


def require_user():
    user = current_user()
    if not user:
        flash("Please select a user or enter a name for a new user.", 'error')
    return user


def owned_game(game_id):
    user = current_user()
    if not user:
        abort(401, description="No active user.")
    owner = db.get_game_owner(game_id)
    if owner is None:
        abort(404, description="Game not found.")
    if owner != user['id']:
        abort(403, description="This game belongs to another player.")
    current = db.load_session(game_id)
    if current is None:
        abort(404, description="Game data could not be read.")
    return user, current


def read_elapsed(data, current):
    try:
        elapsed = int(data.get('elapsed_seconds', current.elapsed_seconds))
    except (TypeError, ValueError):
        return current.elapsed_seconds
    return elapsed if elapsed >= 0 else current.elapsed_seconds


# --- Pages ---

@app.route('/')
def welcome():
    users = db.get_users()
    active = session.get('username') or request.cookies.get(USERNAME_COOKIE)
    selected = db.find_user(active)
    return render_template(
        'welcome.html', users=users, selected=selected, difficulties=DIFFICULTIES,
        difficulty=normalize_difficulty(selected['last_difficulty'] if selected else None),
        games_completed=next((u['games_completed'] for u in users if selected and u['id'] == selected['id']), None),
    )


@app.route('/start', methods=['POST'])
def start():
    # A typed name wins over the dropdown selection
    name = request.form.get('new_username', '').strip() or request.form.get('existing_user', '').strip()
    if not name:
        flash("Please select a user or enter a name for a new user.", 'error')
        return redirect(url_for('welcome'))

    difficulty = normalize_difficulty(request.form.get('difficulty'))
    db.create_or_update_user(name, difficulty)
    user = db.find_user(name)
    session['username'] = user['name']

    resp = redirect(url_for('game'))
    resp.set_cookie(USERNAME_COOKIE, user['name'], max_age=USERNAME_COOKIE_DAYS * 86400,
                    samesite='Lax', secure=FORCE_HTTPS)
    return resp


@app.route('/game')
def game():
    user = require_user()
    if not user:
        return redirect(url_for('welcome'))

    load_id = request.args.get('load')
    if load_id:
        if db.get_game_owner(load_id) != user['id']:
            abort(404)
        current = db.load_session(load_id)
        if current is None or current.status == WON:
            abort(404)
        logger.info("Resuming game %s for %s", load_id, user['name'])
    else:
        requested = request.args.get('difficulty')
        difficulty = normalize_difficulty(requested or user['last_difficulty'])
        if requested:
            db.create_or_update_user(user['name'], difficulty)
        puzzle, solution = generate_puzzle(difficulty)
        game_id = db.create_game(user['id'], difficulty, puzzle, solution)
        current = GameSession(game_id, difficulty, puzzle, solution)
        logger.info("New %s game %s for %s with %d blanks", difficulty, game_id, user['name'],
                    count_empty(puzzle))

    game_data = current.to_dict()
    # moves are checked server-side
    del game_data['solution']
    game_data['autosave_seconds'] = AUTOSAVE_SECONDS
    return render_template('game.html', game=current, game_data=game_data,
                           username=user['name'], difficulties=DIFFICULTIES)


@app.route('/saved_games')
def saved_games():
    user = require_user()
    if not user:
        return redirect(url_for('welcome'))
    games = db.get_saved_games(user['id'])
    return render_template('saved_games.html', username=user['name'], games=games)


@app.route('/saved_games/<game_id>/delete', methods=['POST'])
def delete_saved_game(game_id):
    user = require_user()
    if not user:
        return redirect(url_for('welcome'))
    if db.delete_saved_game(user['id'], game_id):
        flash("Saved game deleted.", 'info')
    else:
        logger.warning("Delete of missing saved game %s requested by %s", game_id, user['name'])
        flash("That saved game no longer exists.", 'error')
    return redirect(url_for('saved_games'))


@app.route('/report')
def report():
    users = db.get_users()
    name = request.args.get('user') or session.get('username')
    user = db.find_user(name)
    data = build_report(user['name'], db.get_game_history(user['id'])) if user else None
    return render_template('report.html', users=users, selected=user, report=data)


@app.route('/congratulations')
def congratulations():
    username = request.args.get('user')
    time_taken = request.args.get('time')
    difficulty = request.args.get('difficulty')
    if username:
        message = f"Well done, {username}! You're a Sudoku Master!"
    else:
        message = "Amazing job! You're a Sudoku Master!"
    if time_taken and difficulty:
        stats = f"You solved the puzzle in {time_taken} on {difficulty} difficulty."
    else:
        stats = "You showed that puzzle who's boss!"
    return render_template('congratulations.html', message=message, stats=stats)


# --- JSON API ---

@app.route('/api/new_puzzle')
@limiter.limit(RATE_LIMIT)
def new_puzzle():
    puzzle, solution = generate_puzzle(request.args.get('difficulty'))
    return jsonify({'puzzle': puzzle, 'solution': solution})


@app.route('/api/games/<game_id>/move', methods=['POST'])
@limiter.limit(RATE_LIMIT)
def move(game_id):
    user, current = owned_game(game_id)
    data = request.get_json(silent=True) or {}
    try:
        row, col = int(data['row']), int(data['col'])
    except (KeyError, TypeError, ValueError):
        abort(400, description="row and col are required integers.")

    try:
        current, result = db.apply_move(game_id, row, col, data.get('value'), read_elapsed(data, current))
    except IndexError as e:
        abort(400, description=str(e))
    if current is None:
        abort(404, description="Game data could not be read.")

    payload = result.to_dict()
    if result.won:
        time_text = format_elapsed(current.elapsed_seconds)
        logger.info("%s solved %s game %s in %s", user['name'], current.difficulty, game_id, time_text)
        payload['message'] = f"Congratulations! You solved it in {time_text}!"
        payload['redirect'] = url_for('congratulations', user=user['name'], time=time_text,
                                      difficulty=current.difficulty)
    return jsonify(payload)


@app.route('/api/games/<game_id>/save', methods=['POST'])
@limiter.limit(RATE_LIMIT)
def save(game_id):
    _, current = owned_game(game_id)
    if current.status == WON:
        abort(409, description="This game is already solved.")
    data = request.get_json(silent=True) or {}

    board = data.get('board')
    if board is not None:
        try:
            current.restore_board(board)
        except ValueError as e:
            abort(400, description=str(e))
    current.elapsed_seconds = read_elapsed(data, current)

    autosave = bool(data.get('autosave'))
    stored = db.store_session(current) if autosave else db.save_game(current)
    if not stored:
        abort(409, description="This game is already solved.")
    return jsonify({'saved': True, 'autosave': autosave, 'elapsed': format_elapsed(current.elapsed_seconds)})


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 10000)))
