import json
import logging
import sqlite3
import uuid
from datetime import datetime

from game_state import ACTIVE, REJECTED, WON, GameSession
from sudoku import normalize_difficulty

logger = logging.getLogger(__name__)


class Database:
    def __init__(self, db_path='sudoku.db'):
        self.db_path = db_path
        self.init_db()

    def get_connection(self):
        # timeout lets a writer wait for the lock held by a concurrent autosave
        conn = sqlite3.connect(self.db_path, timeout=20)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self):
        conn = self.get_connection()
        # WAL lets the report/list pages read while a snapshot is being written
        conn.execute('PRAGMA journal_mode=WAL;')
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT UNIQUE COLLATE NOCASE,
                last_difficulty TEXT DEFAULT 'medium',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                last_login TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS games (
                id TEXT PRIMARY KEY,
                user_id INTEGER,
                difficulty TEXT,
                puzzle TEXT,
                solution TEXT,
                board TEXT,
                elapsed_seconds INTEGER DEFAULT 0,
                status TEXT DEFAULT 'active',
                started_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                saved_at TIMESTAMP,
                completed_at TIMESTAMP,
                FOREIGN KEY (user_id) REFERENCES users (id)
            )
        ''')

        conn.commit()
        conn.close()

    def create_or_update_user(self, name, difficulty):
        name = (name or '').strip()
        if not name:
            raise ValueError("user name must not be empty")
        difficulty = normalize_difficulty(difficulty)
        conn = self.get_connection()
        cursor = conn.cursor()
        cursor.execute('SELECT id FROM users WHERE name = ?', (name,))
        user = cursor.fetchone()
        if not user:
            cursor.execute('''
                INSERT INTO users (name, last_difficulty, created_at, last_login)
                VALUES (?, ?, ?, ?)
            ''', (name, difficulty, datetime.now(), datetime.now()))
            user_id = cursor.lastrowid
            logger.info("Created profile for %s", name)
        else:
            user_id = user['id']
            cursor.execute('UPDATE users SET last_difficulty = ?, last_login = ? WHERE id = ?',
                           (difficulty, datetime.now(), user_id))
        conn.commit()
        conn.close()
        return user_id

    def find_user(self, name):
        if not name:
            return None
        conn = self.get_connection()
        cursor = conn.cursor()
        cursor.execute('SELECT * FROM users WHERE name = ?', (name.strip(),))
        user = cursor.fetchone()
        conn.close()
        return user

    def get_users(self):
        conn = self.get_connection()
        cursor = conn.cursor()
        cursor.execute('''
            SELECT u.*, (SELECT COUNT(*) FROM games g WHERE g.user_id = u.id AND g.status = ?)
                AS games_completed
            FROM users u ORDER BY u.name COLLATE NOCASE
        ''', (WON,))
        users = cursor.fetchall()
        conn.close()
        return users

    def create_game(self, user_id, difficulty, puzzle, solution):
        """Start a new game, discarding the player's unsaved games in progress."""
        game_id = uuid.uuid4().hex
        conn = self.get_connection()
        cursor = conn.cursor()
        cursor.execute('DELETE FROM games WHERE user_id = ? AND status = ? AND saved_at IS NULL',
                       (user_id, ACTIVE))
        if cursor.rowcount:
            logger.info("Discarded %d unsaved game(s) for user %s", cursor.rowcount, user_id)
        cursor.execute('''
            INSERT INTO games (id, user_id, difficulty, puzzle, solution, board, started_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        ''', (game_id, user_id, normalize_difficulty(difficulty), json.dumps(puzzle),
              json.dumps(solution), json.dumps(puzzle), datetime.now()))
        conn.commit()
        conn.close()
        return game_id

    def get_game_owner(self, game_id):
        conn = self.get_connection()
        cursor = conn.cursor()
        cursor.execute('SELECT user_id FROM games WHERE id = ?', (game_id,))
        res = cursor.fetchone()
        conn.close()
        return res['user_id'] if res else None

    def _to_session(self, row):
        try:
            return GameSession.from_dict({
                'id': row['id'],
                'difficulty': row['difficulty'],
                'puzzle': json.loads(row['puzzle']),
                'solution': json.loads(row['solution']),
                'board': json.loads(row['board']),
                'elapsed_seconds': row['elapsed_seconds'],
                'status': row['status'],
            })
        except (TypeError, ValueError) as e:
            logger.error(f"Discarding corrupt game {row['id']}: {e}")
            return None

    def load_session(self, game_id):
        conn = self.get_connection()
        cursor = conn.cursor()
        cursor.execute('SELECT * FROM games WHERE id = ?', (game_id,))
        row = cursor.fetchone()
        conn.close()
        return self._to_session(row) if row else None

    def apply_move(self, game_id, row, col, raw_value, elapsed_seconds=None):
        """Enter one cell of a stored game and persist it.

        The read, the move and the write share one ``BEGIN IMMEDIATE``
        transaction, so concurrent moves on the same game are serialised and
        none of them is lost. A winning move marks the game won in the same
        transaction. Returns ``(game, result)``, or ``(None, None)`` when the
        game is missing or unreadable.
        """
        conn = self.get_connection()
        conn.isolation_level = None
        try:
            conn.execute('BEGIN IMMEDIATE')
            record = conn.execute('SELECT * FROM games WHERE id = ?', (game_id,)).fetchone()
            game = self._to_session(record) if record else None
            if game is None:
                conn.execute('ROLLBACK')
                return None, None
            if elapsed_seconds is not None and game.status != WON:
                game.elapsed_seconds = elapsed_seconds
            result = game.enter(row, col, raw_value)
            if result.status == REJECTED:
                conn.execute('ROLLBACK')
                return game, result
            if result.won:
                conn.execute('''
                    UPDATE games SET board = ?, elapsed_seconds = ?, status = ?, completed_at = ?
                    WHERE id = ?
                ''', (json.dumps(game.board), game.elapsed_seconds, WON, datetime.now(), game_id))
            else:
                conn.execute('UPDATE games SET board = ?, elapsed_seconds = ? WHERE id = ?',
                             (json.dumps(game.board), game.elapsed_seconds, game_id))
            conn.execute('COMMIT')
            return game, result
        except Exception:
            if conn.in_transaction:
                conn.execute('ROLLBACK')
            raise
        finally:
            conn.close()

    def store_session(self, game, saved=False):
        """Write the board and elapsed time of an unfinished ``game`` in one transaction.

        Returns False when the stored game is already won; a snapshot never
        replaces a finished game.
        """
        conn = self.get_connection()
        with conn:
            if saved:
                cursor = conn.execute('''
                    UPDATE games SET board = ?, elapsed_seconds = ?, saved_at = ?
                    WHERE id = ? AND status = ?
                ''', (json.dumps(game.board), game.elapsed_seconds, datetime.now(),
                      game.game_id, ACTIVE))
            else:
                cursor = conn.execute('''
                    UPDATE games SET board = ?, elapsed_seconds = ?
                    WHERE id = ? AND status = ?
                ''', (json.dumps(game.board), game.elapsed_seconds, game.game_id, ACTIVE))
        updated = cursor.rowcount > 0
        conn.close()
        return updated

    def save_game(self, game):
        return self.store_session(game, saved=True)

    def get_saved_games(self, user_id):
        conn = self.get_connection()
        cursor = conn.cursor()
        cursor.execute('''
            SELECT id, difficulty, elapsed_seconds, saved_at FROM games
            WHERE user_id = ? AND status = ? AND saved_at IS NOT NULL
            ORDER BY saved_at DESC
        ''', (user_id, ACTIVE))
        games = cursor.fetchall()
        conn.close()
        return games

    def delete_saved_game(self, user_id, game_id):
        conn = self.get_connection()
        cursor = conn.cursor()
        cursor.execute('DELETE FROM games WHERE id = ? AND user_id = ? AND status = ?',
                       (game_id, user_id, ACTIVE))
        deleted = cursor.rowcount > 0
        conn.commit()
        conn.close()
        return deleted

    def get_game_history(self, user_id):
        conn = self.get_connection()
        cursor = conn.cursor()
        cursor.execute('''
            SELECT difficulty, elapsed_seconds AS time_taken, completed_at FROM games
            WHERE user_id = ? AND status = ?
            ORDER BY completed_at
        ''', (user_id, WON))
        history = [dict(row) for row in cursor.fetchall()]
        conn.close()
        return history
