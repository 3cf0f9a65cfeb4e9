"""Game session state machine and its bridge to the ledger."""
import logging
import random
from concurrent.futures import Future
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set

from ledgersweeper.board import create_board, get_cell
from ledgersweeper.ledger import LedgerClient
from ledgersweeper.mines import place_mines
from ledgersweeper.reveal import apply_reveal_batch, chord_reveal_batch, flood_fill, reveal_one
from ledgersweeper.reveal import toggle_flag as toggle_flag_on_board
from ledgersweeper.rules import count_flags, count_revealed_cells, has_won
from ledgersweeper.types import (
    BOARD_CONFIGS,
    Board,
    CellState,
    Difficulty,
    GameConfig,
    GameStatus,
    RevealBatch,
)

logger = logging.getLogger(__name__)

REVEAL_BATCH = 'reveal_batch'
FLAG_TOGGLE = 'flag_toggle'
WIN_CLAIM = 'win_claim'


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Intent:
    """Something the ledger should learn about."""
    kind: str
    cell_indices: List[int] = field(default_factory=list)
    adjacent_mines: List[int] = field(default_factory=list)
    x: int = 0
    y: int = 0


@dataclass
class Submission:
    """An intent handed to the ledger, with the future tracking it."""
    intent: Intent
    future: Future


@dataclass
class GameSession:
    """Current state of one game, owned by a single controller."""
    difficulty: Difficulty
    config: GameConfig
    board: Board
    status: GameStatus = GameStatus.NOT_STARTED
    moves_count: int = 0
    flags_placed: int = 0
    cells_revealed: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    remote_game_id: Optional[str] = None
    creation: Optional[Future] = None
    ledger_error: Optional[str] = None
    # Intents produced before remote_game_id was known
    queued: List[Intent] = field(default_factory=list)
    in_flight: List[Submission] = field(default_factory=list)
    confirmed: List[Submission] = field(default_factory=list)
    unconfirmed: List[Submission] = field(default_factory=list)
    submitted_indices: Set[int] = field(default_factory=set)

    @property
    def is_over(self) -> bool:
        return self.status in (GameStatus.WON, GameStatus.LOST)


class GameSessionController:
    """Drives a GameSession from player intents.

    Local play never waits for the ledger: submissions are fired off as
    futures and collected by sync(), which every intent calls first. A ledger
    failure only marks submissions as unconfirmed; the local board stays
    authoritative for continuing the game.
    """

    def __init__(
        self,
        ledger: Optional[LedgerClient] = None,
        difficulty: Difficulty = Difficulty.BEGINNER,
        config: Optional[GameConfig] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ledger = ledger
        self.rng = rng or random.Random()
        self.clock = clock
        self.session: GameSession = self._fresh_session(difficulty, config)
        self._request_creation()

    def _fresh_session(self, difficulty: Difficulty, config: Optional[GameConfig]) -> GameSession:
        config = replace(config or BOARD_CONFIGS[difficulty])
        config.validate()
        return GameSession(
            difficulty=difficulty,
            config=config,
            board=create_board(config.width, config.height),
        )

    def new_game(self, difficulty: Optional[Difficulty] = None, config: Optional[GameConfig] = None) -> GameSession:
        """Discard the current game and start a fresh one."""
        if difficulty is None:
            difficulty = self.session.difficulty
            config = config or self.session.config
        session = self._fresh_session(difficulty, config)

        old = self.session
        for submission in old.in_flight:
            submission.future.cancel()
        self._abandon(old)

        self.session = session
        self._request_creation()
        logger.info(f"New {difficulty.name} game {session.config.width}x{session.config.height} "
                    f"with {session.config.mine_count} mines")
        return session

    # Player intents

    def reveal(self, x: int, y: int) -> RevealBatch:
        """Reveal (x, y) and return the batch of newly opened safe cells."""
        self.sync()
        session = self.session
        board = session.board
        empty = RevealBatch(width=board.width)

        if session.is_over:
            return empty
        if get_cell(board, x, y).state != CellState.CLOSED:
            return empty

        now = self.clock()
        if not board.mines_placed:
            board = place_mines(board, session.config.mine_count, x, y, self.rng)
            logger.info(f"Mines placed around first reveal at ({x}, {y})")
        if session.status == GameStatus.NOT_STARTED:
            session.status = GameStatus.IN_PROGRESS
            session.started_at = now

        target = get_cell(board, x, y)
        if target.is_mine:
            session.board = reveal_one(board, x, y, now)
            session.moves_count += 1
            session.cells_revealed = count_revealed_cells(session.board)
            self._finish(GameStatus.LOST, now)
            return empty

        if target.adjacent_mines == 0:
            batch = flood_fill(board, x, y)
            board = apply_reveal_batch(board, batch, now)
        else:
            batch = RevealBatch(width=board.width)
            batch.append(x, y, target.adjacent_mines)
            board = reveal_one(board, x, y, now)

        session.board = board
        self._after_reveal(batch, now)
        return batch

    def chord(self, x: int, y: int) -> RevealBatch:
        """Open the neighbors of a satisfied number cell."""
        self.sync()
        session = self.session
        empty = RevealBatch(width=session.board.width)
        if session.is_over:
            return empty

        now = self.clock()
        result = chord_reveal_batch(session.board, x, y, now)
        if result.board is session.board:
            return empty

        session.board = result.board
        if result.mine is not None:
            session.moves_count += 1
            session.cells_revealed = count_revealed_cells(session.board)
            self._submit_batch(result.batch)
            self._finish(GameStatus.LOST, now)
            return result.batch

        self._after_reveal(result.batch, now)
        return result.batch

    def toggle_flag(self, x: int, y: int) -> None:
        self.sync()
        session = self.session
        if session.is_over:
            return

        board = toggle_flag_on_board(session.board, x, y)
        if board is session.board:
            return

        session.board = board
        session.flags_placed = count_flags(board)
        self._dispatch(Intent(kind=FLAG_TOGGLE, x=x, y=y))

    def elapsed_seconds(self, now: Optional[datetime] = None) -> int:
        """Seconds since the first reveal, frozen once the game is over."""
        session = self.session
        if session.started_at is None:
            return 0
        if session.is_over and session.finished_at is not None:
            end = session.finished_at
        else:
            end = now or self.clock()
        return max(0, int((end - session.started_at).total_seconds()))

    # Ledger reconciliation

    def sync(self) -> None:
        """Collect finished ledger futures without blocking on pending ones."""
        session = self.session

        creation = session.creation
        if session.remote_game_id is None and creation is not None and creation.done():
            session.creation = None
            try:
                remote_game_id = creation.result()
            except Exception as error:
                session.ledger_error = str(error) or type(error).__name__
                logger.error(f"Ledger game creation failed: {error}; "
                             f"{len(session.queued)} queued intents will not be recorded")
                session.queued.clear()
            else:
                session.remote_game_id = remote_game_id
                logger.info(f"Ledger assigned game id {remote_game_id}, "
                            f"flushing {len(session.queued)} queued intents")
                queued, session.queued = session.queued, []
                for intent in queued:
                    self._send(intent)

        still_pending = []
        for submission in session.in_flight:
            if not submission.future.done():
                still_pending.append(submission)
            elif self._was_confirmed(submission):
                session.confirmed.append(submission)
            else:
                session.unconfirmed.append(submission)
        session.in_flight = still_pending

    @property
    def pending_submissions(self) -> int:
        return len(self.session.queued) + len(self.session.in_flight)

    def _was_confirmed(self, submission: Submission) -> bool:
        future = submission.future
        if future.cancelled():
            logger.warning(f"Ledger {submission.intent.kind} submission was cancelled")
            return False
        error = future.exception()
        if error is not None:
            logger.warning(f"Ledger {submission.intent.kind} submission failed: {error}")
            return False
        if submission.intent.kind == REVEAL_BATCH and not future.result():
            logger.warning(f"Ledger rejected reveal batch {submission.intent.cell_indices}")
            return False
        return True

    def _request_creation(self) -> None:
        if self.ledger is None:
            return
        try:
            self.session.creation = self.ledger.request_game_creation(self.session.difficulty, self.session.config)
        except Exception as error:
            self.session.ledger_error = str(error) or type(error).__name__
            logger.error(f"Could not request ledger game creation: {error}")

    def _abandon(self, old: GameSession) -> None:
        """Close the ledger game of a discarded session, once its id is known."""
        if self.ledger is None:
            return
        if old.remote_game_id is not None:
            self._close_remote(old.remote_game_id)
            return

        creation = old.creation
        if creation is None or creation.cancel():
            return
        # Creation already reached the ledger; close the game once it resolves
        creation.add_done_callback(self._close_created)

    def _close_created(self, creation: Future) -> None:
        if creation.cancelled() or creation.exception() is not None:
            return
        self._close_remote(creation.result())

    def _close_remote(self, remote_game_id: str) -> None:
        try:
            self.ledger.close_game(remote_game_id)
        except Exception as error:
            logger.error(f"Could not close ledger game {remote_game_id}: {error}")
            return
        logger.info(f"Closed abandoned ledger game {remote_game_id}")

    def _dispatch(self, intent: Intent) -> None:
        session = self.session
        if self.ledger is None or session.ledger_error is not None:
            return
        if session.remote_game_id is None:
            session.queued.append(intent)
            return
        self._send(intent)

    def _send(self, intent: Intent) -> None:
        remote_game_id = self.session.remote_game_id
        try:
            if intent.kind == REVEAL_BATCH:
                future = self.ledger.submit_reveal_batch(remote_game_id, intent.cell_indices, intent.adjacent_mines)
            elif intent.kind == FLAG_TOGGLE:
                future = self.ledger.submit_flag_toggle(remote_game_id, intent.x, intent.y)
            else:
                future = self.ledger.submit_win_claim(remote_game_id)
        except Exception as error:
            logger.error(f"Could not submit {intent.kind} to the ledger: {error}")
            return
        self.session.in_flight.append(Submission(intent=intent, future=future))

    def _submit_batch(self, batch: RevealBatch) -> None:
        session = self.session
        cell_indices = []
        adjacent_mines = []
        for index, count in zip(batch.cell_indices, batch.adjacent_mines):
            if index in session.submitted_indices:
                continue
            session.submitted_indices.add(index)
            cell_indices.append(index)
            adjacent_mines.append(count)

        if cell_indices:
            self._dispatch(Intent(kind=REVEAL_BATCH, cell_indices=cell_indices, adjacent_mines=adjacent_mines))

    def _after_reveal(self, batch: RevealBatch, now: datetime) -> None:
        session = self.session
        session.moves_count += 1
        session.cells_revealed = count_revealed_cells(session.board)
        self._submit_batch(batch)

        if has_won(session.board, session.config.mine_count):
            self._finish(GameStatus.WON, now)
            self._dispatch(Intent(kind=WIN_CLAIM))

    def _finish(self, status: GameStatus, now: datetime) -> None:
        session = self.session
        session.status = status
        session.finished_at = now
        logger.info(f"Game {status.value} after {session.moves_count} moves "
                    f"({session.cells_revealed} cells revealed)")
