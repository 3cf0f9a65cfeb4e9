from concurrent.futures import Future
from datetime import datetime, timedelta, timezone

import pytest

from ledgersweeper.board import create_board
from ledgersweeper.mines import compute_adjacency


def board_from_rows(rows):
    """Build a mined board from strings where '*' marks a mine."""
    board = create_board(len(rows[0]), len(rows))
    for y, row in enumerate(rows):
        for x, char in enumerate(row):
            board.cells[y][x].is_mine = char == '*'
    board.mines_placed = True
    compute_adjacency(board)
    return board


class FakeLedger:
    """LedgerClient whose futures the test resolves by hand."""

    def __init__(self):
        self.creations = []
        self.configs = []
        self.batches = []
        self.flags = []
        self.claims = []
        self.closed = []
        self.states = {}

    def request_game_creation(self, difficulty, config):
        future = Future()
        self.creations.append((difficulty, future))
        self.configs.append(config)
        return future

    def submit_reveal_batch(self, remote_game_id, cell_indices, adjacent_mines):
        assert len(cell_indices) == len(adjacent_mines)
        future = Future()
        self.batches.append((remote_game_id, list(cell_indices), list(adjacent_mines), future))
        return future

    def submit_flag_toggle(self, remote_game_id, x, y):
        future = Future()
        self.flags.append((remote_game_id, x, y, future))
        return future

    def submit_win_claim(self, remote_game_id):
        future = Future()
        self.claims.append((remote_game_id, future))
        return future


    def close_game(self, remote_game_id):
        self.closed.append(remote_game_id)
        future = Future()
        future.set_result(None)
        return future

    def fetch_ledger_state(self, remote_game_id):
        future = Future()
        if remote_game_id in self.states:
            future.set_result(self.states[remote_game_id])
        else:
            future.set_exception(LookupError(f"no ledger for {remote_game_id}"))
        return future


class FakeClock:

    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def make_board():
    return board_from_rows


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fixed_now():
    return datetime(2024, 1, 1, tzinfo=timezone.utc)
