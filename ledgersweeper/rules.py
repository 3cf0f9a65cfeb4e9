"""Win condition and board statistics."""
from typing import Optional, Tuple

from ledgersweeper.board import count_state, iter_cells
from ledgersweeper.types import Board, CellState


def count_revealed_safe_cells(board: Board) -> int:
    """Open cells that are not mines."""
    return sum(1 for cell in iter_cells(board) if not cell.is_mine and cell.state == CellState.OPEN)


def has_won(board: Board, total_mines: int) -> bool:
    """True once every non-mine cell is open."""
    return count_revealed_safe_cells(board) == board.width * board.height - total_mines


def count_flags(board: Board) -> int:
    """Flags placed, right or wrong."""
    return count_state(board, CellState.FLAGGED)


def count_revealed_cells(board: Board) -> int:
    """Open cells, including an opened mine."""
    return count_state(board, CellState.OPEN)


def count_correct_flags(board: Board) -> int:
    """Flags sitting on actual mines."""
    return sum(1 for cell in iter_cells(board) if cell.state == CellState.FLAGGED and cell.is_mine)


def opened_mine(board: Board) -> Optional[Tuple[int, int]]:
    """Coordinates of an opened mine; only a lost board has one."""
    for cell in iter_cells(board):
        if cell.is_mine and cell.state == CellState.OPEN:
            return cell.x, cell.y
    return None
