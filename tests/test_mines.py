import random

import pytest

from ledgersweeper.board import create_board, iter_cells, neighbors
from ledgersweeper.errors import ConfigurationError
from ledgersweeper.mines import count_adjacent_mines, place_mines, safe_zone
from ledgersweeper.types import BOARD_CONFIGS, Difficulty


def brute_force_count(board, x, y):
    count = 0
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            if dx == 0 and dy == 0:
                continue
            nx, ny = x + dx, y + dy
            if 0 <= nx < board.width and 0 <= ny < board.height and board.cells[ny][nx].is_mine:
                count += 1
    return count


@pytest.mark.parametrize("difficulty", list(Difficulty))
@pytest.mark.parametrize("seed", range(10))
def test_safe_zone_is_clear_and_count_exact(difficulty, seed):
    config = BOARD_CONFIGS[difficulty]
    rng = random.Random(seed)
    board = create_board(config.width, config.height)
    safe_x, safe_y = rng.randrange(config.width), rng.randrange(config.height)

    mined = place_mines(board, config.mine_count, safe_x, safe_y, rng)

    assert sum(cell.is_mine for cell in iter_cells(mined)) == config.mine_count
    assert not mined.cells[safe_y][safe_x].is_mine
    for nx, ny in neighbors(mined, safe_x, safe_y):
        assert not mined.cells[ny][nx].is_mine
    assert mined.mines_placed
    assert not any(cell.is_mine for cell in iter_cells(board))


@pytest.mark.parametrize("seed", range(5))
def test_adjacency_matches_brute_force(seed):
    config = BOARD_CONFIGS[Difficulty.EXPERT]
    board = place_mines(create_board(config.width, config.height), config.mine_count, 15, 8, random.Random(seed))

    for cell in iter_cells(board):
        if not cell.is_mine:
            assert cell.adjacent_mines == brute_force_count(board, cell.x, cell.y)
            assert count_adjacent_mines(board, cell.x, cell.y) == cell.adjacent_mines


def test_same_seed_same_layout():
    first = place_mines(create_board(9, 9), 10, 4, 4, random.Random(42))
    second = place_mines(create_board(9, 9), 10, 4, 4, random.Random(42))
    assert first == second


def test_corner_safe_zone_is_clipped():
    board = create_board(9, 9)
    assert safe_zone(board, 0, 0) == {(0, 0), (1, 0), (0, 1), (1, 1)}
    assert len(safe_zone(board, 4, 4)) == 9


def test_fills_every_cell_outside_safe_zone():
    zone = {(0, 0), (1, 0), (0, 1), (1, 1)}
    board = place_mines(create_board(4, 4), 12, 0, 0, random.Random(1))
    for cell in iter_cells(board):
        assert cell.is_mine == ((cell.x, cell.y) not in zone)


def test_too_many_mines_fails_fast():
    with pytest.raises(ConfigurationError):
        place_mines(create_board(4, 4), 8, 1, 1, random.Random(0))
    with pytest.raises(ConfigurationError):
        place_mines(create_board(4, 4), -1, 1, 1, random.Random(0))


def test_refuses_board_with_mines(make_board):
    with pytest.raises(ConfigurationError):
        place_mines(make_board(["*...", "....", "....", "...."]), 1, 3, 3)
