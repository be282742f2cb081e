import logging
import random

logger = logging.getLogger(__name__)

SIZE = 9
BOX = 3
DIFFICULTIES = ('easy', 'medium', 'hard')
DEFAULT_DIFFICULTY = 'medium'
REMOVAL_COUNTS = {'easy': 30, 'medium': 40, 'hard': 50}
MAX_REMOVAL_ATTEMPTS = 200


def empty_grid():
    return [[0 for _ in range(SIZE)] for _ in range(SIZE)]


def copy_grid(grid):
    return [row[:] for row in grid]


def normalize_difficulty(difficulty):
    """Return a recognised difficulty name, falling back to medium."""
    if isinstance(difficulty, str) and difficulty.strip().lower() in REMOVAL_COUNTS:
        return difficulty.strip().lower()
    return DEFAULT_DIFFICULTY


def cells_to_remove(difficulty):
    return REMOVAL_COUNTS[normalize_difficulty(difficulty)]


def is_valid_placement(grid, row, col, num):
    for x in range(SIZE):
        if grid[row][x] == num:
            return False
    for x in range(SIZE):
        if grid[x][col] == num:
            return False
    start_row = row - row % BOX
    start_col = col - col % BOX
    for i in range(BOX):
        for j in range(BOX):
            if grid[i + start_row][j + start_col] == num:
                return False
    return True


def shuffled_digits(rng=None):
    numbers = list(range(1, SIZE + 1))
    (rng or random).shuffle(numbers)
    return numbers


def solve(grid, rng=None):
    for row in range(SIZE):
        for col in range(SIZE):
            if grid[row][col] == 0:
                for num in shuffled_digits(rng):
                    if is_valid_placement(grid, row, col, num):
                        grid[row][col] = num
                        if solve(grid, rng):
                            return True
                        grid[row][col] = 0
                return False
    return True


def generate_full_solution(rng=None):
    grid = empty_grid()
    solve(grid, rng)
    return grid


def remove_cells(solution, difficulty, rng=None):
    """Blank up to the difficulty's target count of cells in a copy of ``solution``.

    Picks are uniform over all 81 positions; picks landing on an already
    empty cell still use up one of the ``MAX_REMOVAL_ATTEMPTS`` attempts, so
    the result can have fewer blanks than requested.
    """
    rng = rng or random
    target = cells_to_remove(difficulty)
    puzzle = copy_grid(solution)
    removed = 0
    attempts = 0
    while removed < target and attempts < MAX_REMOVAL_ATTEMPTS:
        row = rng.randint(0, SIZE - 1)
        col = rng.randint(0, SIZE - 1)
        if puzzle[row][col] != 0:
            puzzle[row][col] = 0
            removed += 1
        attempts += 1
    if removed < target:
        logger.debug("Removed %d of %d cells after %d attempts", removed, target, attempts)
    return puzzle


def generate_puzzle(difficulty=DEFAULT_DIFFICULTY, rng=None):
    solution = generate_full_solution(rng)
    puzzle = remove_cells(solution, difficulty, rng)
    return puzzle, solution


def is_correct_entry(solution, row, col, value):
    return value == solution[row][col]


def is_win(board, solution):
    for row in range(SIZE):
        for col in range(SIZE):
            if board[row][col] == 0 or board[row][col] != solution[row][col]:
                return False
    return True


def count_empty(grid):
    return sum(1 for row in grid for value in row if value == 0)


def is_grid_shape(grid, allow_empty=True):
    """True when ``grid`` is 9 lists of 9 ints in 0..9 (1..9 without ``allow_empty``)."""
    if not isinstance(grid, list) or len(grid) != SIZE:
        return False
    low = 0 if allow_empty else 1
    for row in grid:
        if not isinstance(row, list) or len(row) != SIZE:
            return False
        for value in row:
            if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= SIZE:
                return False
    return True


def is_solved_grid(grid):
    if not is_grid_shape(grid, allow_empty=False):
        return False
    digits = set(range(1, SIZE + 1))
    for row in range(SIZE):
        if set(grid[row]) != digits:
            return False
    for col in range(SIZE):
        if {grid[row][col] for row in range(SIZE)} != digits:
            return False
    for box in range(SIZE):
        start_row = (box // BOX) * BOX
        start_col = (box % BOX) * BOX
        box_nums = {grid[start_row + i][start_col + j] for i in range(BOX) for j in range(BOX)}
        if box_nums != digits:
            return False
    return True
