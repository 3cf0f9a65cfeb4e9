"""Board model operations.

Boards are treated as immutable snapshots: every function that changes a cell
hands back a new Board and leaves its argument untouched.
"""
import copy
from typing import Callable, Iterator, List, Tuple

from ledgersweeper.errors import InvalidCoordinateError
from ledgersweeper.types import Board, Cell, CellState

# Row-major neighbor order (dy outer, dx inner). Reveal batches inherit this
# order, and the ledger replays them in it.
NEIGHBOR_OFFSETS: List[Tuple[int, int]] = [
    (dx, dy)
    for dy in (-1, 0, 1)
    for dx in (-1, 0, 1)
    if not (dx == 0 and dy == 0)
]


def create_board(width: int, height: int) -> Board:
    """Create a board of closed, mine-free cells."""
    cells: List[List[Cell]] = []
    for y in range(height):
        cells.append([])
        for x in range(width):
            cells[y].append(Cell(x=x, y=y))

    return Board(width=width, height=height, cells=cells)


def copy_board(board: Board) -> Board:
    """Deep copy, so cells of the result can be mutated freely."""
    return copy.deepcopy(board)


def in_bounds(board: Board, x: int, y: int) -> bool:
    """Whether (x, y) lies on the board."""
    return 0 <= x < board.width and 0 <= y < board.height


def get_cell(board: Board, x: int, y: int) -> Cell:
    """Cell at (x, y); raises InvalidCoordinateError off the board."""
    if not in_bounds(board, x, y):
        raise InvalidCoordinateError(x, y, board.width, board.height)
    return board.cells[y][x]


def with_cell_mutated(board: Board, x: int, y: int, fn: Callable[[Cell], None]) -> Board:
    """Return a copy of the board with fn applied to the copied cell at (x, y)."""
    get_cell(board, x, y)
    new_board = copy_board(board)
    fn(new_board.cells[y][x])
    return new_board


def neighbors(board: Board, x: int, y: int) -> Iterator[Tuple[int, int]]:
    """Yield in-bounds neighbor coordinates in NEIGHBOR_OFFSETS order."""
    for dx, dy in NEIGHBOR_OFFSETS:
        nx, ny = x + dx, y + dy
        if in_bounds(board, nx, ny):
            yield nx, ny


def iter_cells(board: Board) -> Iterator[Cell]:
    """Yield every cell in row-major order."""
    for row in board.cells:
        yield from row


def cell_index(board: Board, x: int, y: int) -> int:
    """Row-major index of (x, y), as recorded by the ledger."""
    return y * board.width + x


def has_mines(board: Board) -> bool:
    """Whether the mine layout has been materialized."""
    return board.mines_placed or any(cell.is_mine for cell in iter_cells(board))


def count_state(board: Board, state: CellState) -> int:
    """Number of cells currently in the given state."""
    return sum(1 for cell in iter_cells(board) if cell.state == state)
