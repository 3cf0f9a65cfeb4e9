"""Type definitions for the ledger-backed Minesweeper."""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from datetime import datetime
from enum import Enum, IntEnum

from ledgersweeper.errors import ConfigurationError


class CellState(str, Enum):
    """Visible state of a cell."""
    CLOSED = 'CLOSED'
    OPEN = 'OPEN'
    FLAGGED = 'FLAGGED'


@dataclass
class Cell:
    """Represents a single cell on the minesweeper board."""
    x: int
    y: int
    state: CellState = CellState.CLOSED
    is_mine: bool = False
    adjacent_mines: int = 0
    revealed_at: Optional[datetime] = None


@dataclass
class Board:
    """Represents the game board. Cells are addressed as cells[y][x]."""
    width: int
    height: int
    cells: List[List[Cell]]
    # Flipped once by the mine generator; before that the layout is undefined
    mines_placed: bool = False


class GameStatus(str, Enum):
    """Possible game states."""
    NOT_STARTED = 'NOT_STARTED'
    IN_PROGRESS = 'IN_PROGRESS'
    WON = 'WON'
    LOST = 'LOST'


class Difficulty(IntEnum):
    """Board presets known to the ledger."""
    BEGINNER = 1
    INTERMEDIATE = 2
    EXPERT = 3


@dataclass
class GameConfig:
    """Configuration for creating a new game."""
    width: int
    height: int
    mine_count: int

    @property
    def max_safe_zone(self) -> int:
        """Largest safe zone a first click can clear on this board."""
        return min(3, self.width) * min(3, self.height)

    def validate(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(f"Board must be non-empty, got {self.width}x{self.height}")
        if self.mine_count < 0:
            raise ConfigurationError(f"Mine count must not be negative, got {self.mine_count}")
        if self.mine_count > self.width * self.height - self.max_safe_zone:
            raise ConfigurationError(
                f"Too many mines for the board size: {self.mine_count} mines on "
                f"{self.width}x{self.height} with a safe zone of {self.max_safe_zone}"
            )


BOARD_CONFIGS = {
    Difficulty.BEGINNER: GameConfig(width=9, height=9, mine_count=10),
    Difficulty.INTERMEDIATE: GameConfig(width=16, height=16, mine_count=40),
    Difficulty.EXPERT: GameConfig(width=30, height=16, mine_count=99),
}


@dataclass
class RevealedCell:
    """One entry of a reveal batch."""
    x: int
    y: int
    adjacent_mines: int


@dataclass
class RevealBatch:
    """Cells opened by a single reveal action, in visitation order.

    ``cell_indices`` holds ``y * width + x`` for each entry and is what the
    ledger receives, positionally paired with ``adjacent_mines``.
    """
    width: int
    cells: List[RevealedCell] = field(default_factory=list)
    cell_indices: List[int] = field(default_factory=list)

    def append(self, x: int, y: int, adjacent_mines: int) -> None:
        self.cells.append(RevealedCell(x=x, y=y, adjacent_mines=adjacent_mines))
        self.cell_indices.append(y * self.width + x)

    def extend(self, other: "RevealBatch") -> None:
        for cell in other.cells:
            self.append(cell.x, cell.y, cell.adjacent_mines)

    @property
    def adjacent_mines(self) -> List[int]:
        return [cell.adjacent_mines for cell in self.cells]

    @property
    def coordinates(self) -> List[Tuple[int, int]]:
        return [(cell.x, cell.y) for cell in self.cells]

    def __len__(self) -> int:
        return len(self.cells)


@dataclass
class MoveRequest:
    """Request to make a move."""
    x: int
    y: int
    action: str  # 'reveal', 'flag', 'chord'


# Ledger wire types. These cross the Temporal boundary and must stay plain
# dataclasses of JSON-friendly fields.

@dataclass
class BatchSubmission:
    """Reveal batch as recorded by the ledger."""
    cell_indices: List[int]
    adjacent_mines: List[int]


@dataclass
class FlagToggle:
    """Flag toggle notification."""
    x: int
    y: int


@dataclass
class SubmissionVerdict:
    """Ledger answer to a submitted batch."""
    accepted: bool
    reason: Optional[str] = None


class LedgerStatus(str, Enum):
    """Status of a game as the ledger sees it."""
    OPEN = 'OPEN'
    WIN_CONFIRMED = 'WIN_CONFIRMED'
    WIN_REJECTED = 'WIN_REJECTED'
    CLOSED = 'CLOSED'


@dataclass
class LedgerState:
    """Append-only record kept by the ledger for one remote game."""
    game_id: str
    difficulty: Difficulty
    # Board the local session plays; presets or a custom layout
    config: GameConfig
    batches: List[BatchSubmission] = field(default_factory=list)
    revealed_indices: List[int] = field(default_factory=list)
    flag_toggles: List[FlagToggle] = field(default_factory=list)
    status: LedgerStatus = LedgerStatus.OPEN
    created_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None
