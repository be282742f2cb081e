import re

from sudoku import (
    SIZE, copy_grid, is_correct_entry, is_grid_shape, is_solved_grid, is_win,
    normalize_difficulty,
)

DIGIT_RE = re.compile(r'^[1-9]$')

ACTIVE = 'active'
WON = 'won'

CORRECT = 'correct'
INCORRECT = 'incorrect'
CLEARED = 'cleared'
INVALID = 'invalid'
REJECTED = 'rejected'


class MoveResult:
    def __init__(self, status, row, col, value=0, won=False):
        self.status = status
        self.row = row
        self.col = col
        self.value = value
        self.won = won

    def to_dict(self):
        return {'status': self.status, 'row': self.row, 'col': self.col,
                'value': self.value, 'won': self.won}


class GameSession:
    """State of one game in progress: the puzzle, its solution and the player's board."""

    def __init__(self, game_id, difficulty, puzzle, solution, board=None,
                 elapsed_seconds=0, status=ACTIVE):
        self.game_id = game_id
        self.difficulty = normalize_difficulty(difficulty)
        self.puzzle = copy_grid(puzzle)
        self.solution = copy_grid(solution)
        self.board = copy_grid(board if board is not None else puzzle)
        self.elapsed_seconds = max(0, int(elapsed_seconds or 0))
        self.status = status

    def _check_coords(self, row, col):
        if not (0 <= row < SIZE and 0 <= col < SIZE):
            raise IndexError(f"cell ({row}, {col}) is outside the grid")

    def is_given(self, row, col):
        self._check_coords(row, col)
        return self.puzzle[row][col] != 0

    def is_won(self):
        return is_win(self.board, self.solution)

    def enter(self, row, col, raw_value):
        """Apply a player's entry and report how it compares with the solution.

        ``raw_value`` is the text typed into the cell. Anything other than a
        single digit 1-9 or an empty string clears the cell.
        """
        self._check_coords(row, col)
        if self.status == WON or self.is_given(row, col):
            return MoveResult(REJECTED, row, col, self.board[row][col])

        text = '' if raw_value is None else str(raw_value).strip()
        if text == '':
            self.board[row][col] = 0
            return MoveResult(CLEARED, row, col)
        if not DIGIT_RE.match(text):
            self.board[row][col] = 0
            return MoveResult(INVALID, row, col)

        num = int(text)
        self.board[row][col] = num
        if not is_correct_entry(self.solution, row, col, num):
            return MoveResult(INCORRECT, row, col, num)
        won = self.is_won()
        if won:
            self.status = WON
        return MoveResult(CORRECT, row, col, num, won=won)

    def restore_board(self, board):
        """Replace the board with a client snapshot, keeping the givens intact."""
        if not is_grid_shape(board):
            raise ValueError("board must be a 9x9 grid of digits 0-9")
        for row in range(SIZE):
            for col in range(SIZE):
                if self.puzzle[row][col] != 0 and board[row][col] != self.puzzle[row][col]:
                    raise ValueError(f"given cell ({row}, {col}) was changed")
        self.board = copy_grid(board)

    def to_dict(self):
        return {
            'id': self.game_id,
            'difficulty': self.difficulty,
            'puzzle': self.puzzle,
            'solution': self.solution,
            'board': self.board,
            'elapsed_seconds': self.elapsed_seconds,
            'status': self.status,
        }

    @classmethod
    def from_dict(cls, data):
        for key in ('puzzle', 'solution', 'board'):
            if not is_grid_shape(data.get(key)):
                raise ValueError(f"{key} is not a 9x9 grid")
        if not is_solved_grid(data['solution']):
            raise ValueError("solution is not a solved grid")
        for row in range(SIZE):
            for col in range(SIZE):
                given = data['puzzle'][row][col]
                if given and given != data['solution'][row][col]:
                    raise ValueError(f"given cell ({row}, {col}) disagrees with the solution")
        return cls(data.get('id'), data.get('difficulty'), data['puzzle'], data['solution'],
                   board=data['board'], elapsed_seconds=data.get('elapsed_seconds', 0),
                   status=data.get('status', ACTIVE))
