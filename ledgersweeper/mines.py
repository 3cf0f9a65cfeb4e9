"""Deferred mine placement and adjacency counting."""
import logging
import random
from typing import List, Optional, Set, Tuple

from ledgersweeper.board import copy_board, get_cell, has_mines, iter_cells, neighbors
from ledgersweeper.errors import ConfigurationError
from ledgersweeper.types import Board

logger = logging.getLogger(__name__)


def count_adjacent_mines(board: Board, x: int, y: int) -> int:
    """Count the number of mines in neighboring cells."""
    count = 0
    for nx, ny in neighbors(board, x, y):
        if board.cells[ny][nx].is_mine:
            count += 1
    return count


def compute_adjacency(board: Board) -> None:
    """Fill in adjacent_mines for every non-mine cell, in place."""
    for cell in iter_cells(board):
        if cell.is_mine:
            cell.adjacent_mines = 0
        else:
            cell.adjacent_mines = count_adjacent_mines(board, cell.x, cell.y)


def safe_zone(board: Board, safe_x: int, safe_y: int) -> Set[Tuple[int, int]]:
    """The first-click cell and its in-bounds neighbors."""
    zone = {(safe_x, safe_y)}
    zone.update(neighbors(board, safe_x, safe_y))
    return zone


def place_mines(
    board: Board,
    mine_count: int,
    safe_x: int,
    safe_y: int,
    rng: Optional[random.Random] = None,
) -> Board:
    """Place mines on a copy of the board, keeping the safe zone clear.

    Mines are drawn uniformly without replacement from every cell outside the
    safe zone, so placement finishes in one pass or fails up front.
    """
    get_cell(board, safe_x, safe_y)
    if has_mines(board):
        raise ConfigurationError("Mines have already been placed on this board")

    excluded = safe_zone(board, safe_x, safe_y)
    candidates: List[Tuple[int, int]] = [
        (x, y)
        for y in range(board.height)
        for x in range(board.width)
        if (x, y) not in excluded
    ]
    if mine_count < 0 or mine_count > len(candidates):
        raise ConfigurationError(
            f"Cannot place {mine_count} mines on a {board.width}x{board.height} board "
            f"with {len(excluded)} safe cells"
        )

    rng = rng or random.Random()
    new_board = copy_board(board)
    for x, y in rng.sample(candidates, mine_count):
        new_board.cells[y][x].is_mine = True
    new_board.mines_placed = True

    compute_adjacency(new_board)

    logger.debug(f"Placed {mine_count} mines around safe cell ({safe_x}, {safe_y})")
    return new_board
